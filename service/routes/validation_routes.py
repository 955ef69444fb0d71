"""DAG validation API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from common.logging_config import get_logger
from service.config import MAX_REQUEST_TIMEOUT
from service.schemas.common import ErrorResponse
from service.schemas.validation import ValidateRequest, ValidationResponse
from service.service_locator import get_validator
from validator import config as validator_config
from validator.context import ValidationContext
from validator.validator import Validator

logger = get_logger(__name__)

router = APIRouter(prefix="/validate", tags=["Validation"])


def require_validator(validator: Optional[Validator] = Depends(get_validator)) -> Validator:
    """Dependency that fails with 503 until a block store is configured"""
    if validator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Block store is not configured"
        )
    return validator


@router.post(
    "",
    response_model=ValidationResponse,
    responses={
        400: {"model": ErrorResponse},
        408: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    }
)
async def validate_dag(
    request: ValidateRequest,
    validator: Validator = Depends(require_validator)
):
    """
    Validate a DAG and a candidate block list against the block store.

    Parameters:
        - root: Root CID of the DAG
        - blocks: Candidate CIDs (may be empty; must be present)
        - timeout: Optional deadline in seconds

    Returns:
        - Validation report (missing/invalid blocks, reachable size, flags)

    Raises:
        - 400: Empty root, absent block list or undecodable root CID
        - 408: Validation cancelled before the block list was checked
        - 503: Block store not configured
    """
    timeout = request.timeout or validator_config.DEFAULT_TIMEOUT
    if timeout is not None:
        timeout = min(timeout, MAX_REQUEST_TIMEOUT)

    ctx = ValidationContext(timeout=timeout)
    report = await validator.validate(ctx, request.root, request.blocks)

    if not report.is_complete:
        logger.info(
            f"DAG {request.root} incomplete: missing={len(report.missing_blocks)} "
            f"invalid={len(report.invalid_blocks)}"
        )

    return ValidationResponse(**report.to_dict())
