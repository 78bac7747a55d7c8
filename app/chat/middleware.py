"""
WebSocket authentication middleware.

Provides JWT authentication for WebSocket connections. Tokens are minted by
the identity provider and only validated here.

Token Passing Methods:
    1. Query string: ws://host/ws/chat/?token=<jwt_token>
    2. Subprotocol: Sec-WebSocket-Protocol: jwt, <jwt_token>

Usage in config/asgi.py:
    application = ProtocolTypeRouter({
        "websocket": JWTAuthMiddleware(
            URLRouter(websocket_urlpatterns)
        ),
    })
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import AccessToken

logger = logging.getLogger(__name__)


def get_token_from_query(scope) -> str | None:
    """Extract ``token`` from the query string."""
    query_string = scope.get("query_string", b"").decode()
    token_list = parse_qs(query_string).get("token", [])
    return token_list[0] if token_list else None


def get_token_from_subprotocol(scope) -> str | None:
    """Extract the token from ``Sec-WebSocket-Protocol: jwt, <token>``."""
    subprotocols = scope.get("subprotocols", [])
    if len(subprotocols) >= 2 and subprotocols[0] == "jwt":
        return subprotocols[1]
    return None


def get_user_for_token(token: str):
    """
    Validate an access token and load its account.

    Returns:
        The active account, or AnonymousUser for invalid tokens, unknown
        accounts and deactivated accounts
    """
    Account = get_user_model()

    try:
        access_token = AccessToken(token)
    except TokenError as e:
        logger.warning(f"Invalid JWT on WebSocket connect: {e}")
        return AnonymousUser()

    user_id = access_token.get(api_settings.USER_ID_CLAIM)
    account = Account.objects.filter(**{api_settings.USER_ID_FIELD: user_id}).first()
    if account is None:
        logger.warning(f"WebSocket token for unknown account {user_id}")
        return AnonymousUser()
    if not account.is_active:
        logger.warning(f"Inactive account attempted WebSocket connection: {user_id}")
        return AnonymousUser()
    return account


class JWTAuthMiddleware(BaseMiddleware):
    """
    Attach the account named by the connection's JWT to ``scope["user"]``.

    Connections without a valid token get AnonymousUser; the consumer
    rejects them with close code 4001.
    """

    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        token = get_token_from_query(scope) or get_token_from_subprotocol(scope)

        if token:
            scope["user"] = await database_sync_to_async(get_user_for_token)(token)
        else:
            scope["user"] = AnonymousUser()

        return await super().__call__(scope, receive, send)
