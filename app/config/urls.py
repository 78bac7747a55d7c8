"""
Root URL configuration.

URL Structure:
    /                                  - ReDoc API documentation
    /schema/                           - OpenAPI schema (YAML)
    /admin/                            - Django admin interface
    /health/                           - Health check endpoint
    /api/v1/chat/
        conversations/                 - List / create-or-get conversation
        conversations/{id}/            - Conversation detail / delete
        conversations/{id}/messages/   - Reverse-chronological message pages
        conversations/{id}/read/       - Mark inbound messages read
        conversations/{id}/delivered/  - Mark inbound messages delivered
        conversations/{id}/restore/    - Un-archive a conversation
        messages/                      - Send a message
    ws/chat/                           - Live updates (see chat.routing)
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

api_v1_patterns = [
    path("chat/", include("chat.urls")),
]

urlpatterns = [
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path("api/v1/", include(api_v1_patterns)),
]

admin.site.site_header = "Chat Admin"
admin.site.site_title = "Chat Admin Portal"
admin.site.index_title = "Conversations and accounts"
