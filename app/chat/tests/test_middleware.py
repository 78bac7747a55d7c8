"""
Tests for the WebSocket JWT authentication middleware.
"""

from types import SimpleNamespace

import pytest
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.tokens import AccessToken

from chat.middleware import (
    JWTAuthMiddleware,
    get_token_from_query,
    get_token_from_subprotocol,
    get_user_for_token,
)


class TestTokenExtraction:
    def test_token_from_query_string(self):
        scope = {"query_string": b"token=abc.def.ghi&other=1"}

        assert get_token_from_query(scope) == "abc.def.ghi"

    def test_missing_query_token(self):
        assert get_token_from_query({"query_string": b""}) is None
        assert get_token_from_query({}) is None

    def test_token_from_subprotocol(self):
        assert get_token_from_subprotocol({"subprotocols": ["jwt", "abc.def.ghi"]}) == "abc.def.ghi"

    def test_other_subprotocols_are_ignored(self):
        assert get_token_from_subprotocol({"subprotocols": ["graphql-ws"]}) is None
        assert get_token_from_subprotocol({}) is None


class TestGetUserForToken:
    def test_valid_token_returns_account(self, alice):
        token = str(AccessToken.for_user(alice))

        assert get_user_for_token(token) == alice

    def test_garbage_token_is_anonymous(self, db):
        assert isinstance(get_user_for_token("not-a-jwt"), AnonymousUser)

    def test_deactivated_account_is_anonymous(self, alice):
        """
        Tokens of deactivated accounts stop working immediately.

        Why it matters: Tokens outlive account deactivation.
        """
        token = str(AccessToken.for_user(alice))
        alice.is_active = False
        alice.save()

        assert isinstance(get_user_for_token(token), AnonymousUser)

    def test_deleted_account_is_anonymous(self, alice):
        token = str(AccessToken.for_user(alice))
        alice.delete()

        assert isinstance(get_user_for_token(token), AnonymousUser)


class TestJWTAuthMiddleware:
    @pytest.mark.asyncio
    async def test_without_token_user_is_anonymous(self):
        captured = {}

        async def inner(scope, receive, send):
            captured.update(scope)

        await JWTAuthMiddleware(inner)({"type": "websocket", "query_string": b""}, None, None)

        assert isinstance(captured["user"], AnonymousUser)

    @pytest.mark.asyncio
    async def test_token_user_is_attached_to_scope(self, monkeypatch):
        account = SimpleNamespace(phone_number="919800000001", is_authenticated=True)
        seen_tokens = []

        def fake_lookup(token):
            seen_tokens.append(token)
            return account

        monkeypatch.setattr("chat.middleware.get_user_for_token", fake_lookup)
        captured = {}

        async def inner(scope, receive, send):
            captured.update(scope)

        await JWTAuthMiddleware(inner)(
            {"type": "websocket", "query_string": b"", "subprotocols": ["jwt", "tok"]},
            None,
            None,
        )

        assert captured["user"] is account
        assert seen_tokens == ["tok"]
