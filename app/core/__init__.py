"""
Core Application - Infrastructure & Base Classes

Generic building blocks used by the domain apps (accounts, chat):

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError, ValidationError, NotFoundError,
      ConflictError

Helpers (import from core.helpers):
    - validate_uuid, calculate_pagination

Views (import from core.views):
    - health_check, api_exception_handler

Note:
    Models and model mixins are NOT imported here to avoid AppRegistryNotReady
    errors. Import them directly from their modules.
"""

from .services import BaseService, ServiceResult

from .exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

from .helpers import calculate_pagination, validate_uuid

__all__ = [
    # Services
    "BaseService",
    "ServiceResult",
    # Exceptions
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    # Helpers
    "calculate_pagination",
    "validate_uuid",
]
