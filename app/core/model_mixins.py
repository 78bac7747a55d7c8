"""
Reusable abstract model mixins.

Available Mixins:
    UUIDPrimaryKeyMixin: Use a random UUID as primary key

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin

    class Conversation(UUIDPrimaryKeyMixin, BaseModel):
        ...
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use a UUID primary key instead of an auto-increment integer.

    Conversation and message ids are handed to clients and used as
    WebSocket group names, so they must not be guessable or reveal volume.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True
