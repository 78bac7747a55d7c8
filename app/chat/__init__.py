"""
Chat app: two-party direct messaging.

This app handles:
- Conversations between exactly two accounts, one per pair
- The append-only message log with sent/delivered/read status
- Per-participant unread counts and last-message summaries
- Live updates over WebSockets (events, typing, presence)

WebSocket Support:
    Uses Django Channels for real-time communication.
    See consumers.py for WebSocket handlers.
    See routing.py for WebSocket URL patterns.

Usage:
    from chat.services import MessageService, ReadStateService

    result = MessageService.send_message(
        sender="919800000001",
        recipient="919800000002",
        text="Hello!",
    )
    if result:
        ReadStateService.mark_read(result.data.conversation.id, "919800000002")
"""
