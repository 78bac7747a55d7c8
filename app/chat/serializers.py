"""
Serializers for the chat API and live-update payloads.

Read serializers:
    ParticipantSnapshotSerializer: Participant display data with live presence
    LastMessageSerializer: Cached newest-message snapshot
    ConversationSerializer: Conversation with summary and viewer-relative unread count
    MessageSerializer: One message-log entry (``from``/``to`` wire names)

Write serializers:
    ConversationCreateSerializer: Create-or-get by the other participant
    MessageCreateSerializer: Send a message
    MessagePageQuerySerializer: page/page_size query parameters
    ConversationDeleteQuerySerializer: soft/hard delete mode

Design Decisions:
    - The same read serializers render REST responses and WebSocket event
      payloads, so clients parse one shape from both channels.
    - ``from`` is a Python keyword, so it is added in get_fields().
"""

from __future__ import annotations

from drf_spectacular.utils import extend_schema_field
from rest_framework import serializers

from accounts.directory import IdentityDirectory
from chat.constants import MESSAGE_CONFIG, PAGINATION_CONFIG
from chat.models import Conversation, Message, MessageType


# =============================================================================
# Conversation Serializers
# =============================================================================


class ParticipantSnapshotSerializer(serializers.Serializer):
    """Stored display snapshot plus the account's live presence."""

    identifier = serializers.CharField(read_only=True)
    name = serializers.CharField(read_only=True)
    profile_picture = serializers.CharField(read_only=True, allow_blank=True)
    is_online = serializers.BooleanField(read_only=True)
    last_seen = serializers.DateTimeField(read_only=True, allow_null=True)


class LastMessageSerializer(serializers.Serializer):
    """Snapshot of the newest message: text, timestamp, from, status."""

    text = serializers.CharField(read_only=True)
    timestamp = serializers.DateTimeField(read_only=True)
    status = serializers.CharField(read_only=True)

    def get_fields(self):
        fields = super().get_fields()
        fields["from"] = serializers.CharField(read_only=True)
        return fields


class ConversationSerializer(serializers.ModelSerializer):
    """
    Conversation with its denormalized summary.

    ``participants`` carry live presence from ``context["presence"]`` (a
    mapping built once per page by the view) or, without it, from one
    lookup per conversation.

    ``unread_count`` is relative to the viewer passed as
    ``context["viewer"]`` (or the request user). Broadcast payloads have no
    viewer, so they carry ``unread_count: null`` and clients read their own
    entry from ``unread_counts``.
    """

    participants = serializers.SerializerMethodField()
    last_message = LastMessageSerializer(read_only=True, allow_null=True)
    unread_count = serializers.SerializerMethodField(
        help_text="Unread messages addressed to the viewer"
    )
    unread_counts = serializers.DictField(
        child=serializers.IntegerField(),
        read_only=True,
        help_text="Unread messages per participant identifier",
    )

    class Meta:
        model = Conversation
        fields = [
            "id",
            "participants",
            "last_message",
            "unread_count",
            "unread_counts",
            "is_archived",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    @extend_schema_field(ParticipantSnapshotSerializer(many=True))
    def get_participants(self, obj: Conversation) -> list:
        presence = self.context.get("presence")
        if presence is None:
            presence = IdentityDirectory.presence_for(obj.participant_identifiers)

        participants = []
        for snapshot in obj.participants:
            current = presence.get(snapshot.get("identifier"))
            participants.append(
                {
                    **snapshot,
                    "is_online": current.is_online if current else False,
                    "last_seen": current.last_seen if current else None,
                }
            )
        return ParticipantSnapshotSerializer(participants, many=True).data

    def get_unread_count(self, obj: Conversation) -> int | None:
        viewer = self.context.get("viewer")
        if viewer is None:
            request = self.context.get("request")
            user = getattr(request, "user", None)
            viewer = getattr(user, "phone_number", None)
        if viewer is None:
            return None
        return obj.unread_count_for(viewer)


class ConversationCreateSerializer(serializers.Serializer):
    participant = serializers.CharField(
        max_length=32,
        help_text="Identifier of the other participant",
    )


class ConversationDeleteQuerySerializer(serializers.Serializer):
    mode = serializers.ChoiceField(
        choices=[("soft", "Archive"), ("hard", "Delete permanently")],
        default="soft",
        help_text="soft archives the conversation, hard deletes it with all messages",
    )


# =============================================================================
# Message Serializers
# =============================================================================


class MessageSerializer(serializers.ModelSerializer):
    """One message-log entry."""

    conversation_id = serializers.UUIDField(read_only=True)
    to = serializers.CharField(source="recipient", read_only=True)
    type = serializers.CharField(source="message_type", read_only=True)

    class Meta:
        model = Message
        fields = [
            "id",
            "conversation_id",
            "to",
            "sender_name",
            "text",
            "type",
            "timestamp",
            "status",
        ]
        read_only_fields = fields

    def get_fields(self):
        fields = super().get_fields()
        fields["from"] = serializers.CharField(source="sender", read_only=True)
        return fields


class MessageCreateSerializer(serializers.Serializer):
    to = serializers.CharField(
        max_length=32,
        help_text="Identifier of the recipient",
    )
    text = serializers.CharField(
        max_length=MESSAGE_CONFIG.MAX_TEXT_LENGTH,
        help_text="Message body",
    )
    type = serializers.ChoiceField(
        choices=MessageType.choices,
        default=MessageType.TEXT,
        help_text="Kind of message content",
    )


class MessagePageQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(min_value=1, default=1)
    page_size = serializers.IntegerField(
        min_value=1,
        max_value=PAGINATION_CONFIG.MAX_PAGE_SIZE,
        default=PAGINATION_CONFIG.DEFAULT_PAGE_SIZE,
    )
