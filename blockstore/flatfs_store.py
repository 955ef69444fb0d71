"""Manages physical block files on disk in a sharded flatfs layout."""

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Iterator, List, Optional, Union

from blockstore.base import BlockStore
from blockstore.checksum_validator import IncrementalDigestCalculator
from blockstore.cid import ContentIdentifier
from blockstore.encoding import b32decode_lower
from common.constants import (
    BLOCK_FILE_EXTENSION,
    BLOCKS_DIR_NAME,
    CODEC_RAW,
    SHARD_SUFFIX_LENGTH,
    WRITABLE_PROBE_NAME,
)
from common.exceptions import BlockNotFoundError, ChecksumMismatchError, StoreError
from common.logging_config import get_logger

logger = get_logger(__name__)

SHARDING_FILE_NAME = "SHARDING"


def ensure_writable(path: Union[str, Path]) -> None:
    """
    Create path if needed and check that files can be written in it.

    Args:
        path: Directory to probe

    Raises:
        StoreError: If the directory cannot be created or written
    """
    directory = Path(path)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        probe = directory / WRITABLE_PROBE_NAME
        probe.touch()
        probe.unlink()
    except OSError as e:
        raise StoreError(f"'{directory}' is not writable: {e}") from e


def next_to_last_shard(key: str, suffix_length: int = SHARD_SUFFIX_LENGTH) -> str:
    """
    Compute the shard directory for a key (flatfs next-to-last/N function).

    Args:
        key: Block key
        suffix_length: Shard name length

    Returns:
        The suffix_length characters before the last character of key,
        left-padded with '_' for short keys
    """
    padded = key.rjust(suffix_length + 1, "_")
    offset = len(padded) - suffix_length - 1
    return padded[offset:offset + suffix_length]


class FlatFSBlockStore(BlockStore):
    """
    One file per block under <repo>/blocks/<shard>/<KEY>.data.

    Keys are the uppercase base32 multihash of the identifier. Blocking file
    I/O runs in worker threads so the event loop keeps serving other walks.
    """

    def __init__(self, repo_path: Union[str, Path], hash_on_read: bool = False):
        """
        Open (creating if needed) a flatfs block directory.

        Args:
            repo_path: Repository root; blocks live in its 'blocks' subdirectory
            hash_on_read: Verify digests on every get()

        Raises:
            StoreError: If the blocks directory is not writable
        """
        self.repo_path = Path(os.path.expanduser(str(repo_path)))
        self.blocks_dir = self.repo_path / BLOCKS_DIR_NAME
        self.hash_on_read = hash_on_read

        ensure_writable(self.blocks_dir)
        sharding_file = self.blocks_dir / SHARDING_FILE_NAME
        if not sharding_file.exists():
            sharding_file.write_text(f"/repo/flatfs/shard/v1/next-to-last/{SHARD_SUFFIX_LENGTH}\n")

        logger.info(f"Flatfs block store opened [path={self.blocks_dir}]")

    def get_block_path(self, cid: ContentIdentifier) -> Path:
        """
        Get file path for a block.

        Args:
            cid: Block identifier

        Returns:
            Path object for block file
        """
        key = cid.key()
        return self.blocks_dir / next_to_last_shard(key) / f"{key}{BLOCK_FILE_EXTENSION}"

    def write_block(self, cid: ContentIdentifier, data: bytes) -> str:
        """
        Write block data to disk via a temporary file and rename.

        Returns:
            String path to written file

        Raises:
            OSError: If write operation fails
        """
        filepath = self.get_block_path(cid)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            dir=filepath.parent, prefix=f"{filepath.name}.", suffix=".tmp", delete=False
        ) as temp_file:
            temp_path = Path(temp_file.name)
        try:
            temp_path.write_bytes(data)
            os.replace(temp_path, filepath)
        finally:
            temp_path.unlink(missing_ok=True)
        return str(filepath)

    def read_block_streaming(self, cid: ContentIdentifier, piece_size: int = 64 * 1024) -> Iterator[bytes]:
        """
        Stream block data in pieces.

        Args:
            cid: Block identifier
            piece_size: Size of each piece in bytes (default 64KB)

        Yields:
            Block data pieces

        Raises:
            FileNotFoundError: If block does not exist
        """
        with open(self.get_block_path(cid), 'rb') as f:
            while True:
                piece = f.read(piece_size)
                if not piece:
                    break
                yield piece

    def read_block(self, cid: ContentIdentifier) -> bytes:
        """
        Read an entire block, verifying its digest while streaming when
        hash_on_read is set.

        Raises:
            BlockNotFoundError: If block does not exist
            ChecksumMismatchError: If the digest does not match
            StoreError: If the file cannot be read
        """
        calculator = None
        if self.hash_on_read:
            try:
                calculator = IncrementalDigestCalculator(cid.hash_code)
            except ValueError as e:
                raise StoreError(f"cannot verify block {cid}: {e}", cid=str(cid)) from e

        pieces = []
        try:
            for piece in self.read_block_streaming(cid):
                if calculator is not None:
                    calculator.update(piece)
                pieces.append(piece)
        except FileNotFoundError:
            raise BlockNotFoundError(str(cid)) from None
        except OSError as e:
            raise StoreError(f"failed to read block {cid}: {e}", cid=str(cid)) from e

        if calculator is not None:
            digest = calculator.finalize()
            if digest != cid.digest:
                raise ChecksumMismatchError(str(cid), digest.hex())
        return b"".join(pieces)

    def delete_block(self, cid: ContentIdentifier) -> bool:
        """
        Delete block file from disk.

        Returns:
            True if file was deleted, False if it didn't exist
        """
        try:
            self.get_block_path(cid).unlink()
            return True
        except FileNotFoundError:
            return False

    def block_exists(self, cid: ContentIdentifier) -> bool:
        """Check if block file exists on disk."""
        return self.get_block_path(cid).is_file()

    def get_block_size(self, cid: ContentIdentifier) -> Optional[int]:
        """
        Get size of block file in bytes.

        Returns:
            Size in bytes, or None if block doesn't exist
        """
        try:
            return self.get_block_path(cid).stat().st_size
        except FileNotFoundError:
            return None

    def list_all_keys(self) -> List[str]:
        """
        List all block keys in the blocks directory.

        Returns:
            List of keys (without .data extension)
        """
        if not self.blocks_dir.exists():
            return []
        return [filepath.stem for filepath in self.blocks_dir.glob(f"*/*{BLOCK_FILE_EXTENSION}")]

    def total_size(self) -> int:
        """Sum of all block file sizes."""
        return sum(
            filepath.stat().st_size
            for filepath in self.blocks_dir.glob(f"*/*{BLOCK_FILE_EXTENSION}")
        )

    async def has(self, cid: ContentIdentifier) -> bool:
        try:
            return await asyncio.to_thread(self.block_exists, cid)
        except OSError as e:
            raise StoreError(f"error checking block {cid}: {e}", cid=str(cid)) from e

    async def get_size(self, cid: ContentIdentifier) -> Optional[int]:
        try:
            size = await asyncio.to_thread(self.get_block_size, cid)
        except OSError as e:
            raise StoreError(f"error sizing block {cid}: {e}", cid=str(cid)) from e
        if size is None:
            raise BlockNotFoundError(str(cid))
        return size

    async def get(self, cid: ContentIdentifier) -> bytes:
        return await asyncio.to_thread(self.read_block, cid)

    async def put_block(self, cid: ContentIdentifier, data: bytes) -> None:
        try:
            filepath = await asyncio.to_thread(self.write_block, cid, data)
        except OSError as e:
            raise StoreError(f"failed to write block {cid}: {e}", cid=str(cid)) from e
        logger.debug(f"Stored block {cid} at {filepath}")

    async def delete(self, cid: ContentIdentifier) -> bool:
        return await asyncio.to_thread(self.delete_block, cid)

    async def all_cids(self) -> List[ContentIdentifier]:
        """
        List stored blocks.

        The on-disk key only records the multihash, so identifiers come back
        as CIDv1 raw; they address the same files as the original CIDs.
        """
        keys = await asyncio.to_thread(self.list_all_keys)
        cids = []
        for key in keys:
            try:
                multihash = b32decode_lower(key)
            except ValueError:
                logger.warning(f"Skipping unrecognised file in blocks directory: {key}")
                continue
            cids.append(ContentIdentifier(version=1, codec=CODEC_RAW, multihash=multihash))
        return cids

    async def disk_usage(self) -> int:
        return await asyncio.to_thread(self.total_size)
