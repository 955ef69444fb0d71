"""Block storage API routes."""

from fastapi import APIRouter, Depends, HTTPException, status

from blockstore.base import BlockStore
from service.schemas.validation import StorageUsageResponse
from service.service_locator import get_block_store

router = APIRouter(prefix="/storage", tags=["Storage"])


@router.get("/usage", response_model=StorageUsageResponse)
async def storage_usage(store: BlockStore = Depends(get_block_store)):
    """
    Report bytes and block count held by the block store.

    Raises:
        - 503: Block store not configured
    """
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Block store is not configured"
        )
    usage = await store.disk_usage()
    blocks = len(await store.all_cids())
    return StorageUsageResponse(bytes=usage, blocks=blocks)
