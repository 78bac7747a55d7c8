"""
URL configuration for chat API.

URL Structure:
    Conversations:
        /conversations/                   GET, POST
        /conversations/{id}/              GET, DELETE
        /conversations/{id}/messages/     GET
        /conversations/{id}/read/         POST
        /conversations/{id}/delivered/    POST
        /conversations/{id}/restore/      POST

    Messages:
        /messages/                        POST

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from chat.views import ConversationViewSet, SendMessageView

router = DefaultRouter()
router.register(r"conversations", ConversationViewSet, basename="conversation")

app_name = "chat"

urlpatterns = [
    path("", include(router.urls)),
    path("messages/", SendMessageView.as_view(), name="message-send"),
]
