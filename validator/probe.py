"""Existence and size queries against the block store."""

from blockstore.base import BlockStore
from blockstore.cid import ContentIdentifier
from common.exceptions import StoreError, ValidationCancelledError
from common.logging_config import get_logger
from validator.context import ValidationContext

logger = get_logger(__name__)


class BlockProbe:
    """
    Pass-through store queries that honour the validation context.

    Every store exception other than cancellation is surfaced as a
    StoreError carrying the identifier, so callers can record it and carry on.
    """

    def __init__(self, store: BlockStore):
        self.store = store

    async def has(self, ctx: ValidationContext, cid: ContentIdentifier) -> bool:
        """
        Check whether a block is present.

        Raises:
            StoreError: If the store fails to answer
            ValidationCancelledError: If the context ends first
        """
        return await self._call(ctx, cid, "checking", self.store.has(cid))

    async def size(self, ctx: ValidationContext, cid: ContentIdentifier) -> int:
        """
        Size a block, reading it only when the store cannot size it cheaply.

        Raises:
            StoreError: If the block is absent or the store fails
            ValidationCancelledError: If the context ends first
        """
        size = await self._call(ctx, cid, "sizing", self.store.get_size(cid))
        if size is None:
            data = await self.get(ctx, cid)
            size = len(data)
        return size

    async def get(self, ctx: ValidationContext, cid: ContentIdentifier) -> bytes:
        """
        Fetch a block payload.

        Raises:
            StoreError: If the block is absent or the store fails
            ValidationCancelledError: If the context ends first
        """
        return await self._call(ctx, cid, "fetching", self.store.get(cid))

    async def _call(self, ctx: ValidationContext, cid: ContentIdentifier, action: str, coro):
        try:
            return await ctx.guard(coro)
        except (StoreError, ValidationCancelledError):
            raise
        except Exception as e:
            logger.debug(f"Store error {action} block {cid}: {e}")
            raise StoreError(f"error {action} block {cid}: {e}", cid=str(cid)) from e
