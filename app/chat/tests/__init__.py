"""
Tests for chat app.

This package contains test modules for:
- test_models.py: Conversation/Message models and status progression
- test_services.py: ConversationService and MessageService
- test_read_state.py: ReadStateService (read and delivered reconciliation)
- test_presence.py: PresenceService and presence in payloads
- test_events.py: ConversationEventPublisher fan-out
- test_views.py: REST API endpoints
- test_middleware.py: WebSocket JWT authentication
- test_consumers.py: ChatConsumer WebSocket protocol
- test_tasks.py: Summary reconciliation Celery tasks
- test_integration.py: End-to-end conversation workflows

Usage:
    pytest chat/tests/
    pytest chat/tests/test_consumers.py
"""
