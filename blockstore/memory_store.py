"""In-memory block store: multihash key -> (identifier, payload)."""

import threading
from typing import Dict, List, Optional, Tuple

from blockstore.base import BlockStore
from blockstore.cid import ContentIdentifier
from common.exceptions import BlockNotFoundError
from common.logging_config import get_logger

logger = get_logger(__name__)


class MemoryBlockStore(BlockStore):
    """
    Thread-safe in-memory block store.

    Blocks are keyed by multihash, so the CIDv0 and CIDv1 forms of the same
    content resolve to one entry.
    """

    def __init__(self, hash_on_read: bool = False):
        """
        Initialize empty block store.

        Args:
            hash_on_read: Verify digests on every get()
        """
        self.hash_on_read = hash_on_read
        self._blocks: Dict[str, Tuple[ContentIdentifier, bytes]] = {}
        self._lock = threading.Lock()

    async def has(self, cid: ContentIdentifier) -> bool:
        with self._lock:
            return cid.key() in self._blocks

    async def get_size(self, cid: ContentIdentifier) -> Optional[int]:
        with self._lock:
            entry = self._blocks.get(cid.key())
        if entry is None:
            raise BlockNotFoundError(str(cid))
        return len(entry[1])

    async def get(self, cid: ContentIdentifier) -> bytes:
        with self._lock:
            entry = self._blocks.get(cid.key())
        if entry is None:
            raise BlockNotFoundError(str(cid))
        return self._verify(cid, entry[1])

    async def put_block(self, cid: ContentIdentifier, data: bytes) -> None:
        with self._lock:
            self._blocks[cid.key()] = (cid, bytes(data))
        logger.debug(f"Stored block {cid} ({len(data)} bytes)")

    async def delete(self, cid: ContentIdentifier) -> bool:
        with self._lock:
            removed = self._blocks.pop(cid.key(), None)
        return removed is not None

    async def all_cids(self) -> List[ContentIdentifier]:
        with self._lock:
            return [cid for cid, _ in self._blocks.values()]

    async def disk_usage(self) -> int:
        with self._lock:
            return sum(len(data) for _, data in self._blocks.values())

    def count(self) -> int:
        """
        Get number of blocks in the store.

        Returns:
            Count of blocks
        """
        with self._lock:
            return len(self._blocks)
