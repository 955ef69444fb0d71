"""Pydantic schemas for API requests and responses."""

from service.schemas.common import ErrorResponse
from service.schemas.validation import (
    ValidateRequest,
    ValidationResponse,
    StorageUsageResponse
)

__all__ = [
    "ErrorResponse",
    "ValidateRequest",
    "ValidationResponse",
    "StorageUsageResponse"
]
