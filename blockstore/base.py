"""Block store interface consumed by the validator."""

from typing import List, Optional

from blockstore.checksum_validator import compute_digest, verify_block
from blockstore.cid import ContentIdentifier, compute_cid
from common.exceptions import ChecksumMismatchError, StoreError


class BlockStore:
    """
    Content-addressed block store.

    Subclasses implement the storage-specific methods. All methods are
    coroutines; absent blocks raise BlockNotFoundError from get(), other
    failures raise StoreError.
    """

    hash_on_read: bool = False

    async def has(self, cid: ContentIdentifier) -> bool:
        """Return True if the block is present."""
        raise NotImplementedError

    async def get_size(self, cid: ContentIdentifier) -> Optional[int]:
        """
        Return the block size in bytes.

        Returns None when the store cannot size the block without reading it;
        callers then fall back to len(await get(cid)).

        Raises:
            BlockNotFoundError: If the block is absent
        """
        raise NotImplementedError

    async def get(self, cid: ContentIdentifier) -> bytes:
        """
        Return the block payload.

        Raises:
            BlockNotFoundError: If the block is absent
            ChecksumMismatchError: If hash_on_read is set and the data is corrupt
        """
        raise NotImplementedError

    async def put_block(self, cid: ContentIdentifier, data: bytes) -> None:
        """Store data under cid without verifying it."""
        raise NotImplementedError

    async def delete(self, cid: ContentIdentifier) -> bool:
        """Delete a block; return False if it was absent."""
        raise NotImplementedError

    async def all_cids(self) -> List[ContentIdentifier]:
        """List identifiers of every stored block."""
        raise NotImplementedError

    async def disk_usage(self) -> int:
        """Total bytes of stored block payloads."""
        total = 0
        for cid in await self.all_cids():
            size = await self.get_size(cid)
            total += size if size is not None else len(await self.get(cid))
        return total

    async def put(self, data: bytes, version: int = 0, codec="dag-pb") -> ContentIdentifier:
        """
        Hash data, store it and return its identifier.

        Args:
            data: Block payload
            version: CID version for the new identifier
            codec: Codec name or code for the new identifier

        Returns:
            ContentIdentifier the block was stored under
        """
        cid = compute_cid(data, version=version, codec=codec)
        await self.put_block(cid, data)
        return cid

    def _verify(self, cid: ContentIdentifier, data: bytes) -> bytes:
        if not self.hash_on_read:
            return data
        try:
            matches = verify_block(cid, data)
        except ValueError as e:
            raise StoreError(f"cannot verify block {cid}: {e}", cid=str(cid)) from e
        if not matches:
            actual = compute_digest(data, cid.hash_code).hex()
            raise ChecksumMismatchError(str(cid), actual)
        return data
