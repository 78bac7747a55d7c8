"""
Service layer primitives shared by every app.

- ServiceResult: explicit success/failure wrapper returned by service methods
- BaseService: stateless base class with logging and transaction helpers

Services own the business rules. Views translate HTTP or WebSocket input into
service calls and map the returned ServiceResult onto a response; models only
describe storage.

Expected failures (bad input, missing participants, unknown conversations)
come back as ServiceResult.failure with a machine-readable error_code.
Unexpected failures (database outages, bugs) are raised and handled by the
API exception handler in core.views.

Usage:
    from core.services import BaseService, ServiceResult

    class ConversationService(BaseService):
        @classmethod
        def archive(cls, conversation) -> ServiceResult[Conversation]:
            with cls.atomic():
                conversation.is_archived = True
                conversation.save(update_fields=["is_archived", "updated_at"])

            cls.get_logger().info(f"Archived conversation {conversation.id}")
            return ServiceResult.success(conversation)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures

    Usage:
        result = MessageService.send_message(sender, recipient, text)
        if result:
            message = result.data.message
        else:
            print(f"Error: {result.error} ({result.error_code})")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """Create a successful result carrying ``data``."""
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Services are stateless: every operation is a @classmethod. Use
    ServiceResult for expected failures and let unexpected ones raise.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named after the concrete service, e.g. ``chat.services.MessageService``."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Run the block inside a database transaction.

        Nested use creates a savepoint, so an IntegrityError caught around an
        inner block leaves the outer transaction usable.
        """
        with transaction.atomic():
            yield

    @classmethod
    def validate_required(cls, **kwargs) -> ServiceResult | None:
        """
        Return a VALIDATION_ERROR failure when any value is missing or blank.

        Values must be strings; None, blank strings and non-string values
        are all reported. Returns None when every value is present.

        Example:
            validation = cls.validate_required(recipient=recipient, text=text)
            if validation is not None:
                return validation
        """
        errors = {}
        for field_name, value in kwargs.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[field_name] = ["This field is required."]
            elif not isinstance(value, str):
                errors[field_name] = ["Must be a string."]

        if errors:
            fields = ", ".join(errors)
            return ServiceResult.failure(
                f"Missing or invalid fields: {fields}",
                error_code="VALIDATION_ERROR",
                errors=errors,
            )
        return None
