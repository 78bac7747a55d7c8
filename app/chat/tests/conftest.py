"""
Test configuration and fixtures for chat tests.

This module provides:
- Account fixtures for the two participants and an outsider
- Conversation fixtures (empty and with history)
- API client helpers for authenticated requests
- A channel-layer listener for observing published events

Usage:
    def test_example(conversation, alice_client):
        response = alice_client.get(f"/api/v1/chat/conversations/{conversation.id}/")
        assert response.status_code == 200
"""

import asyncio

import pytest
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from accounts.tests.factories import AccountFactory
from chat.events import account_group_name, conversation_group_name
from chat.services import ConversationService, MessageService
from chat.tests.factories import ALICE, BOB, CAROL


# =============================================================================
# Account Fixtures
# =============================================================================


@pytest.fixture
def alice(db):
    """First participant; the lower identifier of the pair."""
    return AccountFactory(phone_number=ALICE, name="Alice")


@pytest.fixture
def bob(db):
    """Second participant; the higher identifier of the pair."""
    return AccountFactory(phone_number=BOB, name="Bob")


@pytest.fixture
def carol(db):
    """An account that is not part of the alice/bob conversation."""
    return AccountFactory(phone_number=CAROL, name="Carol")


# =============================================================================
# Conversation Fixtures
# =============================================================================


@pytest.fixture
def conversation(alice, bob):
    """Empty conversation between alice and bob."""
    return ConversationService.resolve(ALICE, BOB).data.conversation


@pytest.fixture
def send(alice, bob):
    """
    Send helper that fails the test on a service failure.

    Usage:
        receipt = send(ALICE, BOB, "hello")
    """

    def _send(sender, recipient, text="hello", **kwargs):
        result = MessageService.send_message(sender, recipient, text, **kwargs)
        assert result.success, result.error
        return result.data

    return _send


@pytest.fixture
def conversation_with_history(send):
    """Conversation with three messages alice → bob and two bob → alice."""
    for index in range(3):
        send(ALICE, BOB, f"from alice {index}")
    for index in range(2):
        receipt = send(BOB, ALICE, f"from bob {index}")
    return receipt.conversation


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def authenticated_client_factory(db):
    """
    Factory to create authenticated clients for any account.

    Usage:
        def test_example(authenticated_client_factory, some_account):
            client = authenticated_client_factory(some_account)
            response = client.get("/api/v1/chat/conversations/")
    """

    def _make_client(account):
        client = APIClient()
        refresh = RefreshToken.for_user(account)
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
        return client

    return _make_client


@pytest.fixture
def alice_client(authenticated_client_factory, alice):
    return authenticated_client_factory(alice)


@pytest.fixture
def bob_client(authenticated_client_factory, bob):
    return authenticated_client_factory(bob)


@pytest.fixture
def carol_client(authenticated_client_factory, carol):
    return authenticated_client_factory(carol)


# =============================================================================
# Channel Layer Fixtures
# =============================================================================


class GroupListener:
    """
    Test channel subscribed to channel-layer groups.

    Usage:
        listener.subscribe_conversation(conversation.id)
        ... trigger a write ...
        events = listener.events()
    """

    def __init__(self, channel_layer):
        self.channel_layer = channel_layer
        self.channel_name = async_to_sync(channel_layer.new_channel)()

    def subscribe(self, group: str):
        async_to_sync(self.channel_layer.group_add)(group, self.channel_name)

    def subscribe_conversation(self, conversation_id):
        self.subscribe(conversation_group_name(conversation_id))

    def subscribe_account(self, identifier: str):
        self.subscribe(account_group_name(identifier))

    def drain(self, timeout: float = 0.05) -> list[dict]:
        """Every envelope received so far, oldest first."""

        async def _drain():
            received = []
            while True:
                try:
                    received.append(
                        await asyncio.wait_for(
                            self.channel_layer.receive(self.channel_name),
                            timeout=timeout,
                        )
                    )
                except asyncio.TimeoutError:
                    return received

        return async_to_sync(_drain)()

    def events(self) -> list[str]:
        """Names of the chat events received so far."""
        return [envelope["event"] for envelope in self.drain()]


@pytest.fixture
def channel_layer():
    """The in-memory channel layer, emptied before and after the test."""
    layer = get_channel_layer()
    async_to_sync(layer.flush)()
    yield layer
    async_to_sync(layer.flush)()


@pytest.fixture
def listener(channel_layer):
    return GroupListener(channel_layer)
