"""
Live update fan-out over the Channels layer.

Every state change is published as one envelope to:
    - the conversation room ``conversation_<id>``, joined by clients that
      have the conversation open
    - each participant's account group ``account_<identifier>``, joined by
      every live connection of that account on connect, so list views learn
      about activity in conversations they have not opened

Envelope (what ChatConsumer.chat_event receives):
    {
        "type": "chat.event",
        "event": "message:created",
        "event_id": "<uuid>",
        "payload": {...},
    }

A client subscribed to both a room and its account group receives the same
envelope twice and de-duplicates on ``event_id``.

Delivery is best-effort to currently connected clients. A failed publish is
logged and swallowed: the write already committed and reconnecting clients
re-fetch state over REST.
"""

from __future__ import annotations

import json
import uuid
from typing import TYPE_CHECKING

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from rest_framework.renderers import JSONRenderer

from chat.constants import FANOUT_CONFIG
from chat.serializers import ConversationSerializer, MessageSerializer
from core.services import BaseService

if TYPE_CHECKING:
    from collections.abc import Iterable

    from accounts.directory import Presence
    from chat.models import Conversation, Message


class ChatEvent:
    """Event names pushed to live clients."""

    CONVERSATION_UPDATED = "conversation:updated"
    CONVERSATION_DELETED = "conversation:deleted"
    MESSAGE_CREATED = "message:created"
    MESSAGES_MARKED_AS_READ = "messages:marked-as-read"
    MESSAGES_MARKED_AS_DELIVERED = "messages:marked-as-delivered"
    PRESENCE_UPDATED = "presence:updated"


def conversation_group_name(conversation_id) -> str:
    return f"{FANOUT_CONFIG.CONVERSATION_GROUP_PREFIX}{conversation_id}"


def account_group_name(identifier: str) -> str:
    return f"{FANOUT_CONFIG.ACCOUNT_GROUP_PREFIX}{identifier}"


def to_primitive(data) -> dict:
    """Render serializer output to plain JSON types for the channel layer."""
    return json.loads(JSONRenderer().render(data))


class ConversationEventPublisher(BaseService):
    """
    Publishes chat events to conversation rooms and account groups.

    Call only after the write transaction has committed, in the order the
    writes happened; the channel layer keeps per-group ordering.
    """

    @classmethod
    def publish(
        cls,
        event: str,
        payload: dict,
        conversation_id=None,
        participants: Iterable[str] = (),
    ) -> int:
        """
        Send ``event`` to the room and to every participant's account group.

        Returns:
            Number of groups the event was handed to
        """
        channel_layer = get_channel_layer()
        if channel_layer is None:
            cls.get_logger().warning(f"No channel layer configured, dropping {event}")
            return 0

        envelope = {
            "type": FANOUT_CONFIG.HANDLER_TYPE,
            "event": event,
            "event_id": str(uuid.uuid4()),
            "payload": payload,
        }

        groups = []
        if conversation_id is not None:
            groups.append(conversation_group_name(conversation_id))
        groups.extend(account_group_name(identifier) for identifier in participants)

        delivered = 0
        for group in groups:
            try:
                async_to_sync(channel_layer.group_send)(group, envelope)
            except Exception:
                cls.get_logger().exception(f"Failed to publish {event} to {group}")
                continue
            delivered += 1
        return delivered

    @classmethod
    def conversation_updated(cls, conversation: Conversation) -> int:
        return cls.publish(
            ChatEvent.CONVERSATION_UPDATED,
            {"conversation": to_primitive(ConversationSerializer(conversation).data)},
            conversation_id=conversation.id,
            participants=conversation.participant_identifiers,
        )

    @classmethod
    def message_created(cls, message: Message, conversation: Conversation) -> int:
        return cls.publish(
            ChatEvent.MESSAGE_CREATED,
            {
                "message": to_primitive(MessageSerializer(message).data),
                "conversation_id": str(conversation.id),
            },
            conversation_id=conversation.id,
            participants=conversation.participant_identifiers,
        )

    @classmethod
    def messages_marked(
        cls,
        event: str,
        conversation: Conversation,
        reader: str,
        updated_count: int,
    ) -> int:
        return cls.publish(
            event,
            {
                "conversation_id": str(conversation.id),
                "reader": reader,
                "updated_count": updated_count,
                "conversation": to_primitive(ConversationSerializer(conversation).data),
            },
            conversation_id=conversation.id,
            participants=conversation.participant_identifiers,
        )

    @classmethod
    def conversation_deleted(
        cls,
        conversation_id,
        participants: Iterable[str],
        mode: str,
        deleted_by: str,
    ) -> int:
        return cls.publish(
            ChatEvent.CONVERSATION_DELETED,
            {
                "conversation_id": str(conversation_id),
                "mode": mode,
                "deleted_by": deleted_by,
            },
            conversation_id=conversation_id,
            participants=participants,
        )

    @classmethod
    def presence_updated(cls, presence: Presence, counterparts: Iterable[str]) -> int:
        """Tell an account's contacts that it went online or offline."""
        return cls.publish(
            ChatEvent.PRESENCE_UPDATED,
            presence.to_dict(),
            participants=counterparts,
        )
