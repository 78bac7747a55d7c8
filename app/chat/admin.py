"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Conversation inspection (summary fields are read-only; use the
  "Rebuild summary" action to repair them from the log)
- Message moderation
"""

from django.contrib import admin

from chat.models import Conversation, Message
from chat.services import ConversationService


class MessageInline(admin.TabularInline):
    """Newest messages of a conversation."""

    model = Message
    extra = 0
    can_delete = False
    fields = ["timestamp", "sender", "recipient", "message_type", "status", "text"]
    readonly_fields = fields
    ordering = ["-timestamp"]
    show_change_link = True


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    """Admin interface for Conversation model."""

    list_display = [
        "id",
        "participant_lower",
        "participant_higher",
        "last_message_at",
        "last_message_status",
        "unread_count_lower",
        "unread_count_higher",
        "is_archived",
    ]
    list_filter = ["is_archived", "last_message_status", "created_at"]
    search_fields = ["id", "participant_lower", "participant_higher"]
    readonly_fields = [
        "participant_lower",
        "participant_higher",
        "participants",
        "last_message_text",
        "last_message_at",
        "last_message_sender",
        "last_message_status",
        "unread_count_lower",
        "unread_count_higher",
        "archived_at",
        "created_at",
        "updated_at",
    ]
    inlines = [MessageInline]
    ordering = ["-last_message_at"]
    actions = ["rebuild_summaries"]

    @admin.action(description="Rebuild summary from message log")
    def rebuild_summaries(self, request, queryset):
        repaired = 0
        for conversation_id in queryset.values_list("pk", flat=True):
            if ConversationService.rebuild_summary(conversation_id):
                repaired += 1
        self.message_user(request, f"Rebuilt {repaired} conversation summaries.")


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = [
        "id",
        "conversation",
        "sender",
        "recipient",
        "message_type",
        "status",
        "timestamp",
    ]
    list_filter = ["status", "message_type", "timestamp"]
    search_fields = ["sender", "recipient", "conversation__id"]
    readonly_fields = [
        "conversation",
        "sender",
        "recipient",
        "sender_name",
        "timestamp",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["conversation"]
    ordering = ["-timestamp"]
