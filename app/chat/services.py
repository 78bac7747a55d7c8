"""
Chat system service layer.

Services:
    ConversationService: Resolve (find-or-create) the single conversation of a
        participant pair, list, fetch, archive, restore, hard-delete and
        rebuild conversation summaries
    MessageService: Send messages and page through the message log
    ReadStateService: Advance message status to delivered/read and reconcile
        the conversation summary with the true tail of the log
    PresenceService: Online state from live connections, pushed to contacts

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure()
    - Unexpected failures raise exceptions
    - Each write runs in one transaction; events are published after it
      commits, in write order
    - The conversation summary is a cache of the log; whenever a request can
      race another write, it is re-derived from the log instead of trusted

Error codes:
    VALIDATION_ERROR: Malformed or missing input
    INVALID_PARTICIPANT: Empty identifier or conversation with oneself
    PARTICIPANT_NOT_FOUND: Identifier does not resolve to an active account
    INVALID_CONVERSATION: Conversation does not exist or caller is not in it

Usage:
    from chat.services import MessageService, ReadStateService

    result = MessageService.send_message(sender="919800000001", recipient="9800000002", text="hi")
    if result:
        receipt = result.data  # SendReceipt(message, conversation)

    ReadStateService.mark_read(receipt.conversation.id, reader="919800000002")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from accounts.directory import IdentityDirectory
from accounts.identifiers import canonicalize
from chat.constants import MESSAGE_CONFIG, PAGINATION_CONFIG
from chat.events import ChatEvent, ConversationEventPublisher
from chat.models import (
    Conversation,
    Message,
    MessageStatus,
    MessageType,
    can_advance,
    statuses_before,
)
from core.helpers import calculate_pagination, validate_uuid
from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from accounts.directory import Presence
    from accounts.models import Account


DELETE_MODES = ("soft", "hard")


@dataclass
class Resolution:
    """Outcome of ConversationService.resolve()."""

    conversation: Conversation
    created: bool
    accounts: dict[str, Account] = field(default_factory=dict)


@dataclass
class SendReceipt:
    message: Message
    conversation: Conversation

    @property
    def conversation_id(self):
        return self.conversation.id


@dataclass
class ReadReceipt:
    updated_count: int
    conversation: Conversation


@dataclass
class MessagePage:
    messages: list[Message]
    pagination: dict


# =============================================================================
# ConversationService
# =============================================================================


class ConversationService(BaseService):
    """
    Service for the conversation directory.

    Methods:
        resolve: Find or create the conversation of a participant pair
        list_for: Conversation list of an account
        counterparts_of: Everyone an account has a conversation with
        get_for_participant: Fetch a conversation the caller belongs to
        delete_conversation: Archive (soft) or delete with messages (hard)
        restore_conversation: Un-archive
        rebuild_summary: Recompute the summary from the message log
    """

    @classmethod
    def resolve(cls, participant_a, participant_b) -> ServiceResult[Resolution]:
        """
        Find or create the single conversation between two accounts.

        Implementation:
            1. Canonicalize both identifiers
            2. Reject empty identifiers and self-conversations
            3. Resolve both accounts through the identity directory
            4. Look up by the sorted pair key (one query, order independent)
            5. If missing, create it; the unique constraint on the pair key
               turns a concurrent duplicate create into an IntegrityError,
               which is retried as a lookup

        Returns:
            ServiceResult with Resolution(conversation, created, accounts)

        Error codes:
            INVALID_PARTICIPANT: Identifier missing or both are the same account
            PARTICIPANT_NOT_FOUND: Identifier has no active account
        """
        first = canonicalize(participant_a)
        second = canonicalize(participant_b)

        if not first or not second:
            return ServiceResult.failure(
                "Both participants are required",
                error_code="INVALID_PARTICIPANT",
            )
        if first == second:
            return ServiceResult.failure(
                "Cannot start a conversation with yourself",
                error_code="INVALID_PARTICIPANT",
            )

        accounts = IdentityDirectory.resolve_accounts([first, second])
        missing = [identifier for identifier in (first, second) if identifier not in accounts]
        if missing:
            return ServiceResult.failure(
                f"No account found for {', '.join(missing)}",
                error_code="PARTICIPANT_NOT_FOUND",
            )

        lower, higher = Conversation.order_pair(first, second)

        existing = cls._find_pair(lower, higher)
        if existing is not None:
            return ServiceResult.success(Resolution(existing, False, accounts))

        try:
            with transaction.atomic():
                conversation = Conversation.objects.create(
                    participant_lower=lower,
                    participant_higher=higher,
                    participants=[
                        IdentityDirectory.snapshot(accounts[lower]),
                        IdentityDirectory.snapshot(accounts[higher]),
                    ],
                )
        except IntegrityError:
            # Another request created the pair between our lookup and insert
            conversation = cls._find_pair(lower, higher)
            if conversation is None:
                raise
            cls.get_logger().info(
                f"Conversation create for {lower}/{higher} lost a race, "
                f"using {conversation.id}"
            )
            return ServiceResult.success(Resolution(conversation, False, accounts))

        cls.get_logger().info(
            f"Created conversation {conversation.id} between {lower} and {higher}"
        )
        return ServiceResult.success(Resolution(conversation, True, accounts))

    @classmethod
    def _find_pair(cls, lower: str, higher: str) -> Conversation | None:
        return Conversation.objects.filter(
            participant_lower=lower,
            participant_higher=higher,
        ).first()

    @classmethod
    def list_for(cls, identifier) -> QuerySet[Conversation]:
        """
        Conversations shown in an account's list.

        Non-archived, with at least one message, newest activity first.
        """
        identifier = canonicalize(identifier)
        return Conversation.objects.filter(
            Q(participant_lower=identifier) | Q(participant_higher=identifier),
            is_archived=False,
            last_message_at__isnull=False,
        ).order_by("-last_message_at", "-created_at")

    @classmethod
    def counterparts_of(cls, identifier) -> list[str]:
        """Identifiers of everyone ``identifier`` shares a conversation with."""
        identifier = canonicalize(identifier)
        pairs = Conversation.objects.filter(
            Q(participant_lower=identifier) | Q(participant_higher=identifier)
        ).values_list("participant_lower", "participant_higher")
        return sorted({higher if lower == identifier else lower for lower, higher in pairs})

    @classmethod
    def get_for_participant(cls, conversation_id, identifier) -> ServiceResult[Conversation]:
        """
        Fetch a conversation the caller participates in.

        Error codes:
            INVALID_CONVERSATION: Unknown id, malformed id, or not a participant
        """
        identifier = canonicalize(identifier)
        conversation = None
        if validate_uuid(conversation_id):
            conversation = Conversation.objects.filter(pk=conversation_id).first()

        if conversation is None or not conversation.has_participant(identifier):
            return ServiceResult.failure(
                "Conversation not found",
                error_code="INVALID_CONVERSATION",
            )
        return ServiceResult.success(conversation)

    @classmethod
    def delete_conversation(cls, conversation_id, identifier, mode: str = "soft") -> ServiceResult[None]:
        """
        Archive or permanently delete a conversation.

        soft: sets is_archived; the pair keeps this conversation and the next
            send un-archives it
        hard: deletes the conversation and, by cascade, all its messages

        Both modes publish conversation:deleted.

        Error codes:
            VALIDATION_ERROR: Unknown mode
            INVALID_CONVERSATION: See get_for_participant
        """
        if mode not in DELETE_MODES:
            return ServiceResult.failure(
                f"Delete mode must be one of: {', '.join(DELETE_MODES)}",
                error_code="VALIDATION_ERROR",
            )

        lookup = cls.get_for_participant(conversation_id, identifier)
        if not lookup:
            return lookup
        conversation = lookup.data
        identifier = canonicalize(identifier)
        participants = conversation.participant_identifiers
        conversation_pk = conversation.pk

        if mode == "hard":
            with cls.atomic():
                deleted, per_model = conversation.delete()
            cls.get_logger().info(
                f"Hard deleted conversation {conversation_pk} by {identifier} "
                f"({per_model.get('chat.Message', 0)} messages)"
            )
        else:
            Conversation.objects.filter(pk=conversation_pk).update(
                is_archived=True,
                archived_at=timezone.now(),
                updated_at=timezone.now(),
            )
            cls.get_logger().info(f"Archived conversation {conversation_pk} by {identifier}")

        ConversationEventPublisher.conversation_deleted(
            conversation_pk,
            participants,
            mode=mode,
            deleted_by=identifier,
        )
        return ServiceResult.success(None)

    @classmethod
    def restore_conversation(cls, conversation_id, identifier) -> ServiceResult[Conversation]:
        """Un-archive a soft-deleted conversation."""
        lookup = cls.get_for_participant(conversation_id, identifier)
        if not lookup:
            return lookup
        conversation = lookup.data

        if conversation.is_archived:
            Conversation.objects.filter(pk=conversation.pk).update(
                is_archived=False,
                archived_at=None,
                updated_at=timezone.now(),
            )
            conversation.refresh_from_db()
            ConversationEventPublisher.conversation_updated(conversation)
        return ServiceResult.success(conversation)

    @classmethod
    def rebuild_summary(cls, conversation_id) -> ServiceResult[Conversation]:
        """
        Recompute last-message snapshot and unread counters from the log.

        Returns:
            ServiceResult with the conversation; failure INVALID_CONVERSATION
            when it no longer exists
        """
        with cls.atomic():
            conversation = (
                Conversation.objects.select_for_update()
                .filter(pk=conversation_id)
                .first()
            )
            if conversation is None:
                return ServiceResult.failure(
                    "Conversation not found",
                    error_code="INVALID_CONVERSATION",
                )

            tail = _log_tail(conversation)
            updates = _snapshot_fields(tail)
            for identifier in conversation.participant_identifiers:
                updates[conversation.unread_field_for(identifier)] = _count_unread(
                    conversation, identifier
                )

            changed = {
                name: value
                for name, value in updates.items()
                if getattr(conversation, name) != value
            }
            if changed:
                Conversation.objects.filter(pk=conversation.pk).update(
                    **changed, updated_at=timezone.now()
                )
                conversation.refresh_from_db()

        if changed:
            cls.get_logger().warning(
                f"Repaired summary of conversation {conversation.id}: {sorted(changed)}"
            )
            ConversationEventPublisher.conversation_updated(conversation)
        return ServiceResult.success(conversation)


# =============================================================================
# MessageService
# =============================================================================


class MessageService(BaseService):
    """
    Service for the message log.

    Methods:
        send_message: Validate, resolve, append, summarize, publish
        get_messages: Reverse-chronological page of a conversation's log
    """

    @classmethod
    def send_message(
        cls,
        sender,
        recipient,
        text: str,
        message_type: str = MessageType.TEXT,
    ) -> ServiceResult[SendReceipt]:
        """
        Send a message, creating the conversation on first contact.

        Steps, all inside one transaction:
            1. Resolve (find-or-create) the conversation
            2. Lock the conversation row so concurrent sends serialize
            3. Append the message with status "sent" and a timestamp strictly
               after the current newest message
            4. Point the summary at the new message, bump the recipient's
               unread counter, refresh participant snapshots, un-archive

        Events (after commit): message:created, conversation:updated.

        Error codes:
            VALIDATION_ERROR: Missing recipient, empty/whitespace text, text
                too long, unknown message type
            INVALID_PARTICIPANT, PARTICIPANT_NOT_FOUND: From resolve()
        """
        validation = cls.validate_required(recipient=recipient, text=text)
        if validation is not None:
            return validation

        text = text.strip()
        if len(text) > MESSAGE_CONFIG.MAX_TEXT_LENGTH:
            return ServiceResult.failure(
                f"Message text exceeds {MESSAGE_CONFIG.MAX_TEXT_LENGTH} characters",
                error_code="VALIDATION_ERROR",
                errors={"text": ["Too long."]},
            )
        if message_type not in MessageType.values:
            return ServiceResult.failure(
                f"Unknown message type: {message_type}",
                error_code="VALIDATION_ERROR",
                errors={"type": ["Invalid choice."]},
            )

        with cls.atomic():
            resolution = ConversationService.resolve(sender, recipient)
            if not resolution:
                return resolution

            accounts = resolution.data.accounts
            sender_id = canonicalize(sender)
            recipient_id = canonicalize(recipient)

            conversation = Conversation.objects.select_for_update().get(
                pk=resolution.data.conversation.pk
            )

            timestamp = timezone.now()
            if conversation.last_message_at and timestamp <= conversation.last_message_at:
                timestamp = conversation.last_message_at + timedelta(microseconds=1)

            message = Message.objects.create(
                conversation=conversation,
                sender=sender_id,
                recipient=recipient_id,
                sender_name=accounts[sender_id].display_name,
                text=text,
                message_type=message_type,
                timestamp=timestamp,
                status=MessageStatus.SENT,
            )

            unread_field = conversation.unread_field_for(recipient_id)
            Conversation.objects.filter(pk=conversation.pk).update(
                last_message_text=message.text,
                last_message_at=message.timestamp,
                last_message_sender=message.sender,
                last_message_status=message.status,
                participants=[
                    IdentityDirectory.snapshot(accounts[identifier])
                    for identifier in conversation.participant_identifiers
                ],
                is_archived=False,
                archived_at=None,
                updated_at=timezone.now(),
                **{unread_field: F(unread_field) + 1},
            )
            conversation.refresh_from_db()

        cls.get_logger().info(
            f"{sender_id} sent message {message.id} in conversation {conversation.id}"
        )

        ConversationEventPublisher.message_created(message, conversation)
        ConversationEventPublisher.conversation_updated(conversation)

        return ServiceResult.success(SendReceipt(message, conversation))

    @classmethod
    def get_messages(
        cls,
        conversation_id,
        viewer,
        page: int = 1,
        page_size: int = PAGINATION_CONFIG.DEFAULT_PAGE_SIZE,
    ) -> ServiceResult[MessagePage]:
        """
        Page through a conversation's log, newest first.

        Ordering is (timestamp, id) descending, so concatenating pages 1..N
        yields the whole log with no duplicates or gaps while no new messages
        arrive.

        Returns:
            ServiceResult with MessagePage(messages, pagination) where
            pagination = {current_page, total_pages, total_messages, has_more}

        Error codes:
            VALIDATION_ERROR: page < 1 or page_size outside 1..MAX_PAGE_SIZE
            INVALID_CONVERSATION: See ConversationService.get_for_participant
        """
        if page < 1 or not 1 <= page_size <= PAGINATION_CONFIG.MAX_PAGE_SIZE:
            return ServiceResult.failure(
                f"page must be >= 1 and page_size between 1 and {PAGINATION_CONFIG.MAX_PAGE_SIZE}",
                error_code="VALIDATION_ERROR",
            )

        lookup = ConversationService.get_for_participant(conversation_id, viewer)
        if not lookup:
            return lookup
        conversation = lookup.data

        messages = Message.objects.filter(conversation=conversation).order_by(
            "-timestamp", "-id"
        )
        meta = calculate_pagination(messages.count(), page, page_size)
        window = list(messages[meta["offset"] : meta["offset"] + meta["limit"]])

        return ServiceResult.success(
            MessagePage(
                messages=window,
                pagination={
                    "current_page": meta["current_page"],
                    "total_pages": meta["total_pages"],
                    "total_messages": meta["total"],
                    "has_more": meta["has_more"],
                },
            )
        )


# =============================================================================
# ReadStateService
# =============================================================================


class ReadStateService(BaseService):
    """
    Service advancing delivery status and reconciling the summary.

    Methods:
        mark_read: Mark a reader's inbound messages read
        mark_delivered: Mark a recipient's inbound messages delivered
    """

    @classmethod
    def mark_read(cls, conversation_id, reader) -> ServiceResult[ReadReceipt]:
        """
        Mark every message addressed to ``reader`` as read.

        Only messages with ``recipient == reader`` and status sent/delivered
        change. The summary is then reconciled against the actual newest
        message of the log, not against the cached snapshot:
            - if the newest message is addressed to the reader, its cached
              status becomes read
            - a drifted snapshot is rewritten from the log tail
            - the reader's unread counter is recounted from the log, which is
              0 unless a send committed in between

        Idempotent: a second call with nothing new returns updated_count=0
        and publishes nothing.

        Events (when something changed): conversation:updated,
        messages:marked-as-read.

        Error codes:
            INVALID_CONVERSATION: See ConversationService.get_for_participant
        """
        return cls._advance(
            conversation_id,
            reader,
            target=MessageStatus.READ,
            event=ChatEvent.MESSAGES_MARKED_AS_READ,
        )

    @classmethod
    def mark_delivered(cls, conversation_id, recipient) -> ServiceResult[ReadReceipt]:
        """
        Mark messages addressed to ``recipient`` that are still sent as delivered.

        Never touches read messages; the cached status only moves from sent.

        Events (when something changed): conversation:updated,
        messages:marked-as-delivered.
        """
        return cls._advance(
            conversation_id,
            recipient,
            target=MessageStatus.DELIVERED,
            event=ChatEvent.MESSAGES_MARKED_AS_DELIVERED,
        )

    @classmethod
    def _advance(cls, conversation_id, identifier, target: str, event: str) -> ServiceResult[ReadReceipt]:
        lookup = ConversationService.get_for_participant(conversation_id, identifier)
        if not lookup:
            return lookup
        identifier = canonicalize(identifier)

        with cls.atomic():
            conversation = Conversation.objects.select_for_update().get(pk=lookup.data.pk)

            updated_count = Message.objects.filter(
                conversation=conversation,
                recipient=identifier,
                status__in=statuses_before(target),
            ).update(status=target, updated_at=timezone.now())

            tail = _log_tail(conversation)
            updates = {}
            if tail is not None and not conversation.summary_matches(tail):
                updates.update(_snapshot_fields(tail))
            if (
                tail is not None
                and tail.recipient == identifier
                and can_advance(updates.get("last_message_status", conversation.last_message_status), target)
            ):
                updates["last_message_status"] = target

            if target == MessageStatus.READ:
                unread_field = conversation.unread_field_for(identifier)
                unread = _count_unread(conversation, identifier)
                if getattr(conversation, unread_field) != unread:
                    updates[unread_field] = unread

            if updates:
                Conversation.objects.filter(pk=conversation.pk).update(
                    **updates, updated_at=timezone.now()
                )
                conversation.refresh_from_db()

        if not updated_count and not updates:
            return ServiceResult.success(ReadReceipt(0, conversation))

        cls.get_logger().info(
            f"Marked {updated_count} messages {target} for {identifier} "
            f"in conversation {conversation.id}"
        )

        ConversationEventPublisher.conversation_updated(conversation)
        ConversationEventPublisher.messages_marked(event, conversation, identifier, updated_count)

        return ServiceResult.success(ReadReceipt(updated_count, conversation))


# =============================================================================
# Log helpers
# =============================================================================


def _log_tail(conversation: Conversation) -> Message | None:
    return (
        Message.objects.filter(conversation=conversation)
        .order_by("-timestamp", "-id")
        .first()
    )


def _count_unread(conversation: Conversation, identifier: str) -> int:
    return Message.objects.filter(
        conversation=conversation,
        recipient=identifier,
        status__in=statuses_before(MessageStatus.READ),
    ).count()


def _snapshot_fields(message: Message | None) -> dict:
    if message is None:
        return {
            "last_message_text": "",
            "last_message_at": None,
            "last_message_sender": "",
            "last_message_status": "",
        }
    return {
        "last_message_text": message.text,
        "last_message_at": message.timestamp,
        "last_message_sender": message.sender,
        "last_message_status": message.status,
    }


# =============================================================================
# PresenceService
# =============================================================================


class PresenceService(BaseService):
    """Online state of accounts, driven by their live connections."""

    @classmethod
    def update(cls, identifier, online: bool) -> Presence | None:
        """
        Count one live connection of ``identifier`` in or out.

        When the account goes online or offline (first connection opened,
        last connection closed), presence:updated is published to the
        account groups of everyone it has a conversation with.
        """
        presence = IdentityDirectory.set_presence(identifier, online)
        if presence is None or not presence.changed:
            return presence

        counterparts = ConversationService.counterparts_of(presence.identifier)
        ConversationEventPublisher.presence_updated(presence, counterparts)
        return presence
