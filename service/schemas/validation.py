"""Pydantic schemas for validation and storage endpoints."""

from typing import List, Optional
from pydantic import BaseModel, Field


class ValidateRequest(BaseModel):
    """Request model for DAG validation."""
    root: str
    blocks: Optional[List[str]] = None
    timeout: Optional[float] = Field(default=None, gt=0)


class ValidationResponse(BaseModel):
    """Response model for a validation report."""
    is_complete: bool
    missing_blocks: List[str]
    invalid_blocks: List[str]
    reachable_size: int
    can_restore: bool
    error_details: List[str]


class StorageUsageResponse(BaseModel):
    """Response model for storage usage."""
    bytes: int
    blocks: int
