"""
Core Application - shared infrastructure for the domain apps.

Models (import from core.models):
    - BaseModel: Abstract model with created_at/updated_at

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key

Services (import from core.services):
    - BaseService: Logger and transaction helpers for service classes
    - ServiceResult: Success/failure wrapper for expected outcomes

Exceptions (import from core.exceptions):
    - BaseApplicationError and the ValidationError / NotFoundError /
      PermissionDeniedError / ConflictError / ExternalServiceError family

Helpers (import from core.helpers):
    - get_client_ip, mask_phone

Note:
    Models and mixins are not re-exported here; importing them before the
    app registry is ready raises AppRegistryNotReady.
"""

from .exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from .helpers import get_client_ip, mask_phone
from .services import BaseService, ServiceResult

__all__ = [
    "BaseService",
    "ServiceResult",
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "PermissionDeniedError",
    "ConflictError",
    "ExternalServiceError",
    "get_client_ip",
    "mask_phone",
]
