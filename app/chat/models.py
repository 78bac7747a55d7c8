"""
Chat system models.

Models:
    Conversation: One record per unordered pair of accounts, carrying the
        denormalized last-message snapshot and per-participant unread counters
    Message: Append-only log entry with a forward-only delivery status

Design Decisions:
    - Participants are stored as canonical identifier strings, not foreign
      keys. The pair is kept sorted in participant_lower/participant_higher
      and a unique constraint on that key makes "one conversation per pair"
      a storage guarantee rather than a query-then-create convention.
    - The conversation summary (last_message_*, unread_count_*) is a cache of
      the message log. Services rebuild it from the log whenever the two
      could have drifted.
    - Message status only advances sent -> delivered -> read. Every status
      write filters on the statuses allowed to advance, so a late writer can
      never regress a message.
"""

from __future__ import annotations

from django.db import models
from django.db.models import F, Q

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class MessageStatus(models.TextChoices):
    """
    Delivery status of a message.

    SENT: Persisted, not yet seen by the recipient's device
    DELIVERED: Recipient opened the conversation on a live connection
    READ: Recipient marked the conversation read
    FAILED: Terminal, only reachable from SENT
    """

    SENT = "sent", "Sent"
    DELIVERED = "delivered", "Delivered"
    READ = "read", "Read"
    FAILED = "failed", "Failed"


STATUS_PROGRESSION = (MessageStatus.SENT, MessageStatus.DELIVERED, MessageStatus.READ)


def statuses_before(target: str) -> list[str]:
    """
    Statuses that may advance to ``target``.

    Used as the filter of every conditional status update.

    Example:
        statuses_before(MessageStatus.READ)  # ["sent", "delivered"]
    """
    if target == MessageStatus.FAILED:
        return [MessageStatus.SENT]
    if target not in STATUS_PROGRESSION:
        return []
    return list(STATUS_PROGRESSION[: STATUS_PROGRESSION.index(target)])


def can_advance(current: str, target: str) -> bool:
    """True when ``current`` may move to ``target`` without regressing."""
    return current in statuses_before(target)


class MessageType(models.TextChoices):
    """Kind of message content. Only TEXT carries a body the core interprets."""

    TEXT = "text", "Text"
    IMAGE = "image", "Image"
    DOCUMENT = "document", "Document"
    AUDIO = "audio", "Audio"
    VIDEO = "video", "Video"


class Conversation(UUIDPrimaryKeyMixin, BaseModel):
    """
    Direct conversation between exactly two accounts.

    Fields:
        participant_lower: Lexicographically smaller canonical identifier
        participant_higher: Lexicographically larger canonical identifier
        participants: Display snapshots [{identifier, name, profile_picture}]
        last_message_text: Text of the newest message
        last_message_at: Timestamp of the newest message (None before the first send)
        last_message_sender: Identifier of the newest message's sender
        last_message_status: Status of the newest message
        unread_count_lower: Unread messages addressed to participant_lower
        unread_count_higher: Unread messages addressed to participant_higher
        is_archived: Soft delete flag
        archived_at: When the conversation was archived
    """

    participant_lower = models.CharField(
        max_length=20,
        help_text="Smaller of the two canonical participant identifiers",
    )
    participant_higher = models.CharField(
        max_length=20,
        help_text="Larger of the two canonical participant identifiers",
    )
    participants = models.JSONField(
        default=list,
        blank=True,
        help_text="Participant display snapshots copied from the identity directory",
    )

    last_message_text = models.TextField(
        blank=True,
        default="",
        help_text="Text of the newest message in the log",
    )
    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Timestamp of the newest message in the log",
    )
    last_message_sender = models.CharField(
        max_length=20,
        blank=True,
        default="",
        help_text="Identifier of the newest message's sender",
    )
    last_message_status = models.CharField(
        max_length=10,
        choices=MessageStatus.choices,
        blank=True,
        default="",
        help_text="Delivery status of the newest message",
    )

    unread_count_lower = models.PositiveIntegerField(
        default=0,
        help_text="Unread messages addressed to participant_lower",
    )
    unread_count_higher = models.PositiveIntegerField(
        default=0,
        help_text="Unread messages addressed to participant_higher",
    )

    is_archived = models.BooleanField(
        default=False,
        help_text="Soft-deleted conversations are hidden from the list",
    )
    archived_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the conversation was archived",
    )

    class Meta:
        db_table = "chat_conversation"
        ordering = ["-last_message_at", "-created_at"]
        constraints = [
            # One conversation per unordered pair, archived or not
            models.UniqueConstraint(
                fields=["participant_lower", "participant_higher"],
                name="unique_conversation_participant_pair",
            ),
            # Sorted key; also rules out conversations with oneself
            models.CheckConstraint(
                condition=Q(participant_lower__lt=F("participant_higher")),
                name="participant_lower_less_than_higher",
            ),
        ]
        indexes = [
            models.Index(
                fields=["participant_lower", "-last_message_at"],
                name="chat_conv_lower_recent_idx",
                condition=Q(is_archived=False),
            ),
            models.Index(
                fields=["participant_higher", "-last_message_at"],
                name="chat_conv_higher_recent_idx",
                condition=Q(is_archived=False),
            ),
        ]

    def __str__(self) -> str:
        return f"Conversation({self.participant_lower}, {self.participant_higher})"

    @staticmethod
    def order_pair(first: str, second: str) -> tuple[str, str]:
        """Return the pair as (lower, higher)."""
        return (first, second) if first < second else (second, first)

    @property
    def participant_identifiers(self) -> tuple[str, str]:
        return (self.participant_lower, self.participant_higher)

    def has_participant(self, identifier: str) -> bool:
        return identifier in self.participant_identifiers

    def counterpart_of(self, identifier: str) -> str:
        """Return the other participant's identifier."""
        if identifier == self.participant_lower:
            return self.participant_higher
        if identifier == self.participant_higher:
            return self.participant_lower
        raise ValueError(f"{identifier} is not a participant of {self.pk}")

    def unread_field_for(self, identifier: str) -> str:
        """Name of the counter holding ``identifier``'s unread messages."""
        if identifier == self.participant_lower:
            return "unread_count_lower"
        if identifier == self.participant_higher:
            return "unread_count_higher"
        raise ValueError(f"{identifier} is not a participant of {self.pk}")

    def unread_count_for(self, identifier: str) -> int:
        if not self.has_participant(identifier):
            return 0
        return getattr(self, self.unread_field_for(identifier))

    @property
    def unread_counts(self) -> dict[str, int]:
        return {
            self.participant_lower: self.unread_count_lower,
            self.participant_higher: self.unread_count_higher,
        }

    @property
    def last_message(self) -> dict | None:
        """Snapshot of the newest message, or None before the first send."""
        if self.last_message_at is None:
            return None
        return {
            "text": self.last_message_text,
            "timestamp": self.last_message_at,
            "from": self.last_message_sender,
            "status": self.last_message_status,
        }

    def participant_snapshot(self, identifier: str) -> dict | None:
        for snapshot in self.participants or []:
            if snapshot.get("identifier") == identifier:
                return snapshot
        return None

    def summary_matches(self, message: Message) -> bool:
        """True when the cached last-message snapshot describes ``message``."""
        return (
            self.last_message_at == message.timestamp
            and self.last_message_sender == message.sender
            and self.last_message_text == message.text
        )


class Message(UUIDPrimaryKeyMixin, BaseModel):
    """
    One entry of a conversation's message log.

    Immutable except for ``status``. Messages are never deleted one by one;
    they disappear only with their conversation.

    Fields:
        conversation: Owning conversation
        sender: Canonical identifier of the author
        recipient: Canonical identifier of the other participant
        sender_name: Author display name at send time
        text: Message body
        message_type: Kind of content
        timestamp: Send time, strictly increasing within a conversation
        status: Delivery status (forward-only)
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
        help_text="Conversation this message belongs to",
    )
    sender = models.CharField(
        max_length=20,
        help_text="Canonical identifier of the sender",
    )
    recipient = models.CharField(
        max_length=20,
        help_text="Canonical identifier of the recipient",
    )
    sender_name = models.CharField(
        max_length=150,
        blank=True,
        default="",
        help_text="Sender display name when the message was sent",
    )
    text = models.TextField(
        help_text="Message body",
    )
    message_type = models.CharField(
        max_length=10,
        choices=MessageType.choices,
        default=MessageType.TEXT,
        help_text="Kind of message content",
    )
    timestamp = models.DateTimeField(
        help_text="Send time, strictly increasing within the conversation",
    )
    status = models.CharField(
        max_length=10,
        choices=MessageStatus.choices,
        default=MessageStatus.SENT,
        help_text="Delivery status; only moves forward",
    )

    class Meta:
        db_table = "chat_message"
        ordering = ["timestamp", "id"]
        indexes = [
            # Paging and log tail lookup
            models.Index(
                fields=["conversation", "timestamp"],
                name="chat_msg_conv_ts_idx",
            ),
            # Bulk read/delivered updates for one recipient
            models.Index(
                fields=["conversation", "recipient", "status"],
                name="chat_msg_conv_unread_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Message({self.pk}, {self.sender} -> {self.recipient})"

    def advance_status(self, target: str) -> bool:
        """
        Move this message to ``target`` if that is a forward step.

        The update is conditional on the stored status, so concurrent writers
        cannot regress it.

        Returns:
            True if the row changed
        """
        updated = Message.objects.filter(
            pk=self.pk,
            status__in=statuses_before(target),
        ).update(status=target)
        if updated:
            self.status = target
        return bool(updated)
