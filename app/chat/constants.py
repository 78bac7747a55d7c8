"""
Constants and configuration for the chat module.

This module centralizes configuration values for:
- Message validation limits
- Message page sizes
- Live update group naming

Import example:
    from chat.constants import MESSAGE_CONFIG, PAGINATION_CONFIG
"""

from typing import Final


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    MAX_TEXT_LENGTH: Final[int] = 4096  # Characters
    DEFAULT_TYPE: Final[str] = "text"


# =============================================================================
# Pagination Configuration
# =============================================================================


class PAGINATION_CONFIG:
    """Page-number pagination of the message log."""

    DEFAULT_PAGE_SIZE: Final[int] = 25
    MAX_PAGE_SIZE: Final[int] = 100


# =============================================================================
# Live Update Configuration
# =============================================================================


class FANOUT_CONFIG:
    """
    Channel layer group naming.

    Group names may only contain ASCII alphanumerics, hyphens, underscores
    and periods, and must stay under 100 characters.
    """

    CONVERSATION_GROUP_PREFIX: Final[str] = "conversation_"
    ACCOUNT_GROUP_PREFIX: Final[str] = "account_"
    HANDLER_TYPE: Final[str] = "chat.event"
    TYPING_HANDLER_TYPE: Final[str] = "chat.typing"


# =============================================================================
# WebSocket Close Codes
# =============================================================================


class CLOSE_CODES:
    """Application close codes sent to WebSocket clients."""

    NOT_AUTHENTICATED: Final[int] = 4001
    FORBIDDEN: Final[int] = 4003
    NOT_FOUND: Final[int] = 4004
