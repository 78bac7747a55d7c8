"""
Tests for the chat service layer.

This module tests:
- ConversationService: resolve, list, fetch, delete, restore, rebuild
- MessageService: send and paged history

Test Organization:
    - Each service method has its own test class
    - Each test validates ONE specific behavior
    - Tests use descriptive names following: test_<scenario>_<expected_outcome>

Testing Philosophy:
    Tests focus on observable behavior:
    - ServiceResult success/failure states and error codes
    - Database state of the log and the conversation summary
    - Events published to the channel layer
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone
from freezegun import freeze_time

from accounts.tests.factories import AccountFactory
from chat.events import ChatEvent
from chat.models import Conversation, Message, MessageStatus
from chat.services import ConversationService, MessageService
from chat.tests.factories import ALICE, BOB, CAROL, MessageFactory


# =============================================================================
# ConversationService.resolve
# =============================================================================


class TestConversationServiceResolve:
    """
    Tests for ConversationService.resolve().

    Verifies:
    - One conversation per pair, whatever the argument order
    - Identifier canonicalization
    - Rejection of self-conversations and unknown accounts
    - Recovery when a concurrent create wins the race
    """

    def test_creates_conversation_for_new_pair(self, alice, bob):
        """
        First resolve of a pair creates the conversation.

        Why it matters: This is how every chat starts.
        """
        result = ConversationService.resolve(ALICE, BOB)

        assert result.success is True
        assert result.data.created is True
        conversation = result.data.conversation
        assert conversation.participant_identifiers == (ALICE, BOB)
        assert [p["identifier"] for p in conversation.participants] == [ALICE, BOB]
        assert conversation.last_message is None

    def test_repeated_calls_return_same_conversation(self, alice, bob):
        """
        Resolving the same pair again returns the existing record.

        Why it matters: Resolver idempotence; the pair always lands in one
        thread.
        """
        first = ConversationService.resolve(ALICE, BOB)
        for _ in range(3):
            again = ConversationService.resolve(ALICE, BOB)
            assert again.data.created is False
            assert again.data.conversation.id == first.data.conversation.id

        assert Conversation.objects.count() == 1

    def test_argument_order_does_not_matter(self, alice, bob):
        first = ConversationService.resolve(ALICE, BOB)
        second = ConversationService.resolve(BOB, ALICE)

        assert first.data.conversation.id == second.data.conversation.id

    def test_formatted_identifiers_resolve_to_same_pair(self, alice, bob):
        """
        Local and international spellings reach the same conversation.

        Why it matters: Without canonicalization "98000 00002" and
        "+919800000002" would open two threads with Bob.
        """
        first = ConversationService.resolve(ALICE, "98000 00002")
        second = ConversationService.resolve("+91 98000 00001", "919800000002")

        assert first.data.conversation.id == second.data.conversation.id

    def test_conversation_with_oneself_fails(self, alice):
        result = ConversationService.resolve(ALICE, "9800000001")

        assert result.success is False
        assert result.error_code == "INVALID_PARTICIPANT"

    def test_missing_participant_fails(self, alice):
        result = ConversationService.resolve(ALICE, "  ")

        assert result.success is False
        assert result.error_code == "INVALID_PARTICIPANT"

    def test_unknown_participant_fails(self, alice):
        """
        Identifiers without an account are rejected, nothing is created.

        Why it matters: Conversations must reference real accounts.
        """
        result = ConversationService.resolve(ALICE, "919800009999")

        assert result.success is False
        assert result.error_code == "PARTICIPANT_NOT_FOUND"
        assert Conversation.objects.count() == 0

    def test_inactive_participant_fails(self, alice):
        AccountFactory(phone_number=CAROL, is_active=False)

        result = ConversationService.resolve(ALICE, CAROL)

        assert result.error_code == "PARTICIPANT_NOT_FOUND"

    def test_lost_create_race_returns_winner(self, alice, bob, conversation):
        """
        A create that collides with a concurrent create returns the winner.

        The first lookup is made stale, as if the other request inserted the
        row right after it; the unique constraint then rejects the insert and
        the resolver falls back to the existing row.

        Why it matters: Concurrent first messages must still produce exactly
        one conversation.
        """
        real_find_pair = ConversationService._find_pair.__func__
        calls = []

        def stale_first_lookup(cls, lower, higher):
            calls.append((lower, higher))
            if len(calls) == 1:
                return None
            return real_find_pair(cls, lower, higher)

        with patch.object(ConversationService, "_find_pair", classmethod(stale_first_lookup)):
            result = ConversationService.resolve(BOB, ALICE)

        assert result.success is True
        assert result.data.created is False
        assert result.data.conversation.id == conversation.id
        assert len(calls) == 2
        assert Conversation.objects.count() == 1


# =============================================================================
# MessageService.send_message
# =============================================================================


class TestMessageServiceSend:
    """
    Tests for MessageService.send_message().

    Verifies:
    - First contact creates the conversation
    - The summary points at the newest message
    - The recipient's unread counter increments
    - Input validation
    """

    def test_first_message_creates_conversation(self, alice, bob, listener):
        """
        Alice sends "hello" to Bob with no prior conversation.

        Why it matters: One conversation, one "sent" message, Bob has one
        unread, and Bob's live connections hear about it.
        """
        listener.subscribe_account(BOB)

        result = MessageService.send_message(ALICE, BOB, "hello")

        assert result.success is True
        receipt = result.data
        assert Conversation.objects.count() == 1
        assert receipt.message.status == MessageStatus.SENT
        assert receipt.message.sender == ALICE
        assert receipt.message.recipient == BOB
        assert receipt.message.sender_name == "Alice"
        assert receipt.conversation.unread_count_for(BOB) == 1
        assert receipt.conversation.unread_count_for(ALICE) == 0
        assert listener.events() == [
            ChatEvent.MESSAGE_CREATED,
            ChatEvent.CONVERSATION_UPDATED,
        ]

    def test_message_created_reaches_conversation_room(self, conversation, send, listener):
        listener.subscribe_conversation(conversation.id)

        receipt = send(ALICE, BOB, "hello")

        envelopes = listener.drain()
        created = envelopes[0]
        assert created["event"] == ChatEvent.MESSAGE_CREATED
        assert created["payload"]["message"]["id"] == str(receipt.message.id)
        assert created["payload"]["message"]["from"] == ALICE
        assert created["payload"]["conversation_id"] == str(conversation.id)

    def test_back_to_back_messages_accumulate_unread(self, send):
        """
        Two messages before Bob reads give unread 2 and the second as last.

        Why it matters: The list view shows the latest message and the
        right badge count.
        """
        send(ALICE, BOB, "first")
        receipt = send(ALICE, BOB, "second")

        conversation = receipt.conversation
        assert conversation.unread_count_for(BOB) == 2
        assert conversation.last_message["text"] == "second"
        assert conversation.last_message["from"] == ALICE
        assert conversation.last_message["timestamp"] == receipt.message.timestamp

    def test_replies_count_for_each_reader_separately(self, send):
        send(ALICE, BOB, "hi")
        receipt = send(BOB, ALICE, "hey")

        assert receipt.conversation.unread_counts == {ALICE: 1, BOB: 1}

    def test_summary_matches_log_after_any_sequence(self, send):
        """
        After any sequence of sends the summary equals the log tail.

        Why it matters: The list view never shows a message that is not the
        newest one.
        """
        senders = [ALICE, BOB, BOB, ALICE, BOB, ALICE, ALICE]
        for index, sender in enumerate(senders):
            recipient = BOB if sender == ALICE else ALICE
            receipt = send(sender, recipient, f"message {index}")

        conversation = Conversation.objects.get(pk=receipt.conversation.id)
        tail = Message.objects.filter(conversation=conversation).order_by("-timestamp", "-id").first()
        assert conversation.last_message_text == tail.text
        assert conversation.last_message_at == tail.timestamp
        assert conversation.last_message_sender == tail.sender

    def test_timestamps_strictly_increase_when_clock_stalls(self, send):
        """
        Messages sent within one clock tick still get distinct, ordered times.

        Why it matters: Paging and the summary order messages by timestamp.
        """
        with freeze_time("2026-01-15 10:00:00", real_asyncio=True):
            first = send(ALICE, BOB, "one").message
            second = send(ALICE, BOB, "two").message

        assert second.timestamp > first.timestamp

    def test_text_is_stripped(self, send):
        receipt = send(ALICE, BOB, "  hello  ")

        assert receipt.message.text == "hello"

    def test_send_refreshes_participant_snapshots(self, send, bob):
        """
        A renamed participant shows the new name after the next message.

        Why it matters: Snapshots are copied, so they are refreshed on every
        send instead of staying at their creation values.
        """
        send(ALICE, BOB, "hi")
        bob.name = "Robert"
        bob.save()

        receipt = send(ALICE, BOB, "hi again")

        assert receipt.conversation.participant_snapshot(BOB)["name"] == "Robert"

    def test_send_unarchives_conversation(self, conversation, send):
        ConversationService.delete_conversation(conversation.id, ALICE, mode="soft")

        receipt = send(BOB, ALICE, "are you there?")

        assert receipt.conversation.is_archived is False
        assert receipt.conversation.archived_at is None

    def test_blank_text_fails(self, alice, bob, listener):
        """
        Whitespace-only text is rejected before anything is written.

        Why it matters: An empty message would become the conversation's
        last message in every list.
        """
        listener.subscribe_account(BOB)

        result = MessageService.send_message(ALICE, BOB, "   ")

        assert result.success is False
        assert result.error_code == "VALIDATION_ERROR"
        assert "text" in result.errors
        assert Message.objects.count() == 0
        assert Conversation.objects.count() == 0
        assert listener.events() == []

    def test_missing_recipient_fails(self, alice):
        result = MessageService.send_message(ALICE, None, "hello")

        assert result.success is False
        assert result.error_code == "VALIDATION_ERROR"
        assert "recipient" in result.errors

    @pytest.mark.parametrize(
        "recipient, text, field",
        [
            (BOB, 123, "text"),
            (BOB, ["hello"], "text"),
            (919800000002, "hello", "recipient"),
        ],
    )
    def test_non_string_values_fail_validation(self, alice, bob, recipient, text, field):
        """
        Values that are not strings fail validation instead of raising.

        Why it matters: WebSocket frames are arbitrary JSON; an exception
        here would drop the client's connection.
        """
        result = MessageService.send_message(ALICE, recipient, text)

        assert result.success is False
        assert result.error_code == "VALIDATION_ERROR"
        assert field in result.errors
        assert Message.objects.count() == 0

    def test_text_too_long_fails(self, alice, bob):
        result = MessageService.send_message(ALICE, BOB, "x" * 4097)

        assert result.error_code == "VALIDATION_ERROR"

    def test_unknown_message_type_fails(self, alice, bob):
        result = MessageService.send_message(ALICE, BOB, "hello", message_type="sticker")

        assert result.error_code == "VALIDATION_ERROR"

    def test_unknown_recipient_fails_without_side_effects(self, alice, listener):
        listener.subscribe_account(ALICE)

        result = MessageService.send_message(ALICE, "919800009999", "hello")

        assert result.error_code == "PARTICIPANT_NOT_FOUND"
        assert Conversation.objects.count() == 0
        assert listener.events() == []

    def test_message_to_oneself_fails(self, alice):
        result = MessageService.send_message(ALICE, ALICE, "note to self")

        assert result.error_code == "INVALID_PARTICIPANT"


# =============================================================================
# MessageService.get_messages
# =============================================================================


class TestMessageServiceGetMessages:
    """
    Tests for MessageService.get_messages().

    Verifies:
    - Reverse-chronological pages
    - Walking all pages reproduces the log exactly
    - Access limited to participants
    """

    def test_pages_reproduce_full_log(self, send):
        """
        Concatenating every page gives the whole log, no duplicates or gaps.

        Why it matters: Infinite scroll must never skip or repeat messages.
        """
        for index in range(7):
            receipt = send(ALICE, BOB, f"message {index}")
        conversation_id = receipt.conversation.id

        collected = []
        page = 1
        while True:
            result = MessageService.get_messages(conversation_id, BOB, page=page, page_size=3)
            assert result.success is True
            collected.extend(result.data.messages)
            if not result.data.pagination["has_more"]:
                break
            page += 1

        log = list(Message.objects.filter(conversation_id=conversation_id).order_by("timestamp", "id"))
        assert list(reversed(collected)) == log
        assert len({message.id for message in collected}) == 7
        assert page == 3

    def test_first_page_is_newest(self, conversation_with_history):
        result = MessageService.get_messages(conversation_with_history.id, ALICE, page=1, page_size=2)

        texts = [message.text for message in result.data.messages]
        assert texts == ["from bob 1", "from bob 0"]
        assert result.data.pagination == {
            "current_page": 1,
            "total_pages": 3,
            "total_messages": 5,
            "has_more": True,
        }

    def test_page_past_end_is_empty(self, conversation_with_history):
        result = MessageService.get_messages(conversation_with_history.id, ALICE, page=9, page_size=25)

        assert result.data.messages == []
        assert result.data.pagination["has_more"] is False

    def test_invalid_paging_fails(self, conversation):
        assert MessageService.get_messages(conversation.id, ALICE, page=0).error_code == "VALIDATION_ERROR"
        assert (
            MessageService.get_messages(conversation.id, ALICE, page_size=101).error_code
            == "VALIDATION_ERROR"
        )

    def test_outsider_cannot_read_history(self, conversation_with_history, carol):
        """
        Only participants can page through a conversation.

        Why it matters: Message privacy.
        """
        result = MessageService.get_messages(conversation_with_history.id, CAROL)

        assert result.error_code == "INVALID_CONVERSATION"

    def test_malformed_conversation_id_fails(self, alice):
        result = MessageService.get_messages("not-a-uuid", ALICE)

        assert result.error_code == "INVALID_CONVERSATION"


# =============================================================================
# ConversationService.list_for / get_for_participant
# =============================================================================


class TestConversationServiceList:
    def test_lists_active_conversations_newest_first(self, send, carol):
        send(ALICE, BOB, "to bob")
        send(ALICE, CAROL, "to carol")

        conversations = list(ConversationService.list_for(ALICE))

        assert [c.counterpart_of(ALICE) for c in conversations] == [CAROL, BOB]

    def test_excludes_conversations_without_messages(self, conversation):
        """
        Resolving without sending does not add a row to the list.

        Why it matters: Opening a contact must not clutter the list.
        """
        assert list(ConversationService.list_for(ALICE)) == []

    def test_excludes_other_accounts_conversations(self, send, carol):
        send(ALICE, BOB, "hi")

        assert list(ConversationService.list_for(CAROL)) == []

    def test_get_for_participant_rejects_outsider(self, conversation, carol):
        result = ConversationService.get_for_participant(conversation.id, CAROL)

        assert result.error_code == "INVALID_CONVERSATION"


# =============================================================================
# ConversationService.delete_conversation / restore_conversation
# =============================================================================


class TestConversationServiceDelete:
    """
    Tests for ConversationService.delete_conversation().

    Verifies:
    - hard removes the conversation and every message
    - soft archives and keeps the log
    - both publish conversation:deleted
    """

    def test_hard_delete_removes_conversation_and_messages(self, send, listener):
        """
        Hard delete of a conversation with five messages.

        Why it matters: The record and all messages are gone, the list no
        longer shows it, and live clients are told.
        """
        for index in range(5):
            receipt = send(ALICE, BOB, f"message {index}")
        conversation_id = receipt.conversation.id
        listener.subscribe_conversation(conversation_id)

        result = ConversationService.delete_conversation(conversation_id, ALICE, mode="hard")

        assert result.success is True
        assert not Conversation.objects.filter(pk=conversation_id).exists()
        assert Message.objects.filter(conversation_id=conversation_id).count() == 0
        assert list(ConversationService.list_for(ALICE)) == []

        envelopes = listener.drain()
        assert [e["event"] for e in envelopes] == [ChatEvent.CONVERSATION_DELETED]
        assert envelopes[0]["payload"] == {
            "conversation_id": str(conversation_id),
            "mode": "hard",
            "deleted_by": ALICE,
        }

    def test_soft_delete_archives_and_keeps_log(self, conversation_with_history, listener):
        listener.subscribe_account(BOB)

        result = ConversationService.delete_conversation(conversation_with_history.id, ALICE)

        assert result.success is True
        conversation = Conversation.objects.get(pk=conversation_with_history.id)
        assert conversation.is_archived is True
        assert conversation.archived_at is not None
        assert conversation.messages.count() == 5
        assert list(ConversationService.list_for(ALICE)) == []
        assert listener.events() == [ChatEvent.CONVERSATION_DELETED]

    def test_unknown_mode_fails(self, conversation):
        result = ConversationService.delete_conversation(conversation.id, ALICE, mode="shred")

        assert result.error_code == "VALIDATION_ERROR"
        assert Conversation.objects.filter(pk=conversation.id).exists()

    def test_outsider_cannot_delete(self, conversation, carol):
        result = ConversationService.delete_conversation(conversation.id, CAROL, mode="hard")

        assert result.error_code == "INVALID_CONVERSATION"
        assert Conversation.objects.filter(pk=conversation.id).exists()

    def test_restore_unarchives(self, conversation_with_history, listener):
        ConversationService.delete_conversation(conversation_with_history.id, ALICE)
        listener.subscribe_conversation(conversation_with_history.id)

        result = ConversationService.restore_conversation(conversation_with_history.id, BOB)

        assert result.success is True
        assert result.data.is_archived is False
        assert [c.id for c in ConversationService.list_for(ALICE)] == [conversation_with_history.id]
        assert listener.events() == [ChatEvent.CONVERSATION_UPDATED]

    def test_restore_of_active_conversation_is_noop(self, conversation_with_history, listener):
        listener.subscribe_conversation(conversation_with_history.id)

        result = ConversationService.restore_conversation(conversation_with_history.id, ALICE)

        assert result.success is True
        assert listener.events() == []


# =============================================================================
# ConversationService.rebuild_summary
# =============================================================================


class TestConversationServiceRebuildSummary:
    """
    Tests for ConversationService.rebuild_summary().

    Factory-created messages bypass the service, which is how drift between
    the log and the summary is produced here.
    """

    def test_repairs_drifted_snapshot_and_counters(self, conversation_with_history, listener):
        """
        A message missing from the summary is picked up from the log.

        Why it matters: The periodic reconciliation repairs any summary
        left wrong by manual data fixes.
        """
        stray = MessageFactory(
            conversation=conversation_with_history,
            sender=ALICE,
            text="written behind the service's back",
            timestamp=timezone.now() + timedelta(seconds=5),
        )
        listener.subscribe_conversation(conversation_with_history.id)

        result = ConversationService.rebuild_summary(conversation_with_history.id)

        conversation = result.data
        assert conversation.last_message_text == stray.text
        assert conversation.last_message_at == stray.timestamp
        assert conversation.unread_count_for(BOB) == 4
        assert conversation.unread_count_for(ALICE) == 2
        assert listener.events() == [ChatEvent.CONVERSATION_UPDATED]

    def test_consistent_summary_is_left_alone(self, conversation_with_history, listener):
        listener.subscribe_conversation(conversation_with_history.id)
        before = Conversation.objects.get(pk=conversation_with_history.id).updated_at

        result = ConversationService.rebuild_summary(conversation_with_history.id)

        assert result.success is True
        assert result.data.updated_at == before
        assert listener.events() == []

    def test_empty_log_clears_snapshot(self, conversation_with_history):
        Message.objects.filter(conversation=conversation_with_history).delete()

        result = ConversationService.rebuild_summary(conversation_with_history.id)

        assert result.data.last_message is None
        assert result.data.unread_counts == {ALICE: 0, BOB: 0}

    def test_missing_conversation_fails(self, db):
        result = ConversationService.rebuild_summary("5b0c4f8e-2f4e-4c50-9b8a-3a3b0f0e8d11")

        assert result.error_code == "INVALID_CONVERSATION"
