"""
Chat application configuration.

This app provides the two-party chat engine:
- One conversation per participant pair
- Append-only message log with sent/delivered/read status
- Denormalized conversation summary with per-participant unread counts
- Live updates over Django Channels
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"
