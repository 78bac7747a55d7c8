"""
Celery tasks for chat app.

This module defines async tasks for:
- Rebuilding a conversation summary from its message log
- Periodic reconciliation of recently active conversations

The summary is a cache of the log. Writes keep it exact, so these tasks
normally find nothing to change; they exist to repair drift left by manual
data fixes or interrupted deployments.

Related files:
    - services.py: ConversationService.rebuild_summary
    - config/settings.py: CELERY_BEAT_SCHEDULE

Usage:
    from chat.tasks import reconcile_conversation_summary

    reconcile_conversation_summary.delay(str(conversation_id))
"""

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def reconcile_conversation_summary(self, conversation_id: str) -> bool:
    """
    Rebuild one conversation summary from its log.

    Args:
        conversation_id: UUID of the conversation

    Returns:
        True if the conversation exists, False if it was deleted meanwhile
    """
    from chat.services import ConversationService

    result = ConversationService.rebuild_summary(conversation_id)
    if not result:
        logger.info(f"Conversation {conversation_id} gone before reconciliation")
        return False
    return True


@shared_task
def reconcile_recent_conversations(hours: int | None = None) -> int:
    """
    Queue summary reconciliation for conversations active in the last ``hours``.

    Args:
        hours: Look-back window, defaults to CHAT_SUMMARY_RECONCILE_HOURS

    Returns:
        Number of conversations queued
    """
    from chat.models import Conversation

    hours = hours if hours is not None else settings.CHAT_SUMMARY_RECONCILE_HOURS
    cutoff = timezone.now() - timedelta(hours=hours)

    conversation_ids = Conversation.objects.filter(updated_at__gte=cutoff).values_list(
        "pk", flat=True
    )

    queued = 0
    for conversation_id in conversation_ids.iterator():
        reconcile_conversation_summary.delay(str(conversation_id))
        queued += 1

    logger.info(f"Queued summary reconciliation for {queued} conversations")
    return queued
