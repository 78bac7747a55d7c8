"""
Domain-agnostic helper functions.

- UUID validation for ids arriving from untrusted clients
- Page/offset arithmetic for page-number pagination

Usage:
    from core.helpers import calculate_pagination, validate_uuid
"""

from __future__ import annotations

import math
import uuid


def validate_uuid(value) -> bool:
    """
    Check if ``value`` is a UUID or a string in UUID format.

    Example:
        validate_uuid("550e8400-e29b-41d4-a716-446655440000")  # True
        validate_uuid("not-a-uuid")  # False
    """
    if isinstance(value, uuid.UUID):
        return True
    try:
        uuid.UUID(str(value))
        return True
    except (ValueError, TypeError, AttributeError):
        return False


def calculate_pagination(total: int, page: int, per_page: int) -> dict:
    """
    Calculate page-number pagination metadata.

    The requested page is reported back unchanged, even past the last page,
    so clients that walk pages until ``has_more`` is false never loop.

    Args:
        total: Total number of items
        page: Requested page number (1-indexed)
        per_page: Items per page

    Returns:
        Dict with current_page, total_pages, total, has_more, offset, limit

    Example:
        calculate_pagination(total=60, page=2, per_page=25)
        # {
        #     "current_page": 2,
        #     "total_pages": 3,
        #     "total": 60,
        #     "has_more": True,
        #     "offset": 25,
        #     "limit": 25,
        # }
    """
    total_pages = math.ceil(total / per_page) if per_page > 0 else 0
    offset = (page - 1) * per_page

    return {
        "current_page": page,
        "total_pages": total_pages,
        "total": total,
        "has_more": offset + per_page < total,
        "offset": offset,
        "limit": per_page,
    }
