"""
WebSocket URL routing for the chat application.

URL Patterns:
    ws/chat/ - Live updates for every conversation of the account
    ws/chat/<conversation_id>/ - Same, and joins the conversation room

Authentication:
    JWT token passed as query parameter ?token=<jwt_access_token> or as the
    "jwt" subprotocol; see chat.middleware.JWTAuthMiddleware.
"""

from django.urls import path

from chat import consumers

websocket_urlpatterns = [
    path("ws/chat/", consumers.ChatConsumer.as_asgi()),
    path(
        "ws/chat/<uuid:conversation_id>/",
        consumers.ChatConsumer.as_asgi(),
    ),
]
