"""
Application exception hierarchy.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input validation failures (400)
    ├── NotFoundError - Referenced resource does not exist (404)
    └── ConflictError - State conflicts such as duplicate creates (409)

Every exception carries a machine-readable ``error_code`` and renders to the
same ``{"error", "error_code", "details"?}`` body through
core.views.api_exception_handler, using the class ``status_code``.

Usage:
    from core.exceptions import NotFoundError

    raise NotFoundError(
        "Conversation not found",
        error_code="INVALID_CONVERSATION",
        details={"conversation_id": str(conversation_id)},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, ids)
    """

    default_error_code: str = "APPLICATION_ERROR"
    status_code: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Conversation not found",
                "error_code": "INVALID_CONVERSATION",
                "details": {"conversation_id": "..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for malformed or missing input the caller must fix. For DRF
    serializer validation, use DRF's built-in validation.
    """

    default_error_code: str = "VALIDATION_ERROR"
    status_code: int = 400


class NotFoundError(BaseApplicationError):
    """Raised when a referenced account or conversation does not exist."""

    default_error_code: str = "NOT_FOUND"
    status_code: int = 404


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current state.

    Duplicate-create races inside the conversation resolver are recovered
    locally and never surface as this error.
    """

    default_error_code: str = "CONFLICT"
    status_code: int = 409
