"""
Restores a file from a chunked DAG in the block store.

Usage:

    extractor = DAGExtractor(store, root, "~/restore/payload.bin")
    extractor.with_progress(lambda done, total, name: print(f"{done}/{total} {name}"))
    written = await extractor.extract(ValidationContext(timeout=60), overwrite=True)

Raw leaves are concatenated in link order under dag-pb interior nodes, which
is the layout the importer writes. Data lands in <path>.part and is renamed
into place only once every leaf has been written, so an interrupted or
failed extraction never leaves a truncated file behind.
"""

import asyncio
import os
import shutil
import threading
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from blockstore.base import BlockStore
from blockstore.cid import ContentIdentifier
from common.constants import CODEC_DAG_PB, CODEC_RAW, PART_FILE_SUFFIX, PROGRESS_UPDATE_THRESHOLD
from common.exceptions import (
    ExtractionError,
    LinkDecodeError,
    PathExistsError,
    PathTraversalError,
    UnsupportedLayoutError,
)
from common.logging_config import get_logger
from validator.context import ValidationContext, background
from validator.links import decode_dag_pb_links
from validator.probe import BlockProbe

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int, str], None]


class ProgressTracker:
    """Counts extracted bytes and reports them to an optional callback."""

    def __init__(self, total: int = 0, callback: Optional[ProgressCallback] = None):
        self._lock = threading.Lock()
        self._total = total
        self._completed = 0
        self.callback = callback

    @property
    def total(self) -> int:
        with self._lock:
            return self._total

    @property
    def completed(self) -> int:
        with self._lock:
            return self._completed

    def set_total(self, total: int) -> None:
        with self._lock:
            self._total = total

    def update(self, size: int, name: str) -> None:
        """
        Add size bytes and invoke the callback with (completed, total, name).
        """
        with self._lock:
            self._completed += size
            completed, total = self._completed, self._total
        if self.callback is not None:
            self.callback(completed, total, name)


def is_sub_path(path: Path, base: Path) -> bool:
    """True if path lies strictly inside base (both absolute and normalised)."""
    return str(path).startswith(str(base).rstrip(os.sep) + os.sep)


def ensure_no_symlink_in_path(base: Path, target: Path) -> None:
    """
    Check that target is inside base and that no component between them,
    including target itself, is a symlink.

    Raises:
        PathTraversalError: If target escapes base or crosses a symlink
    """
    if not is_sub_path(target, base):
        raise PathTraversalError(str(target))

    current = base
    for part in target.relative_to(base).parts:
        current = current / part
        if current.is_symlink():
            raise PathTraversalError(str(current))
        if not current.exists():
            return


def remove_path(path: Path) -> None:
    """
    Remove a file or a whole directory tree.

    Raises:
        ExtractionError: If the path cannot be removed
    """
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except OSError as e:
        raise ExtractionError(f"failed to remove {path}: {e}") from e


class DAGExtractor:
    """
    Writes the payload of one DAG to a file.

    The target is normalised to an absolute path. base_dir (default: the
    target's parent directory) bounds where the file may be written.
    """

    def __init__(
        self,
        store: BlockStore,
        root: str,
        path: Union[str, Path],
        base_dir: Optional[Union[str, Path]] = None
    ):
        """
        Args:
            store: Block store holding the DAG
            root: Root CID string
            path: File to write
            base_dir: Directory the file must stay inside
        """
        self.probe = BlockProbe(store)
        self.root = root
        self.path = Path(os.path.abspath(os.path.expanduser(str(path))))
        if base_dir is None:
            self.base_dir = self.path.parent
        else:
            self.base_dir = Path(os.path.abspath(os.path.expanduser(str(base_dir))))
        self.tracker = ProgressTracker()

    def with_progress(self, callback: ProgressCallback) -> 'DAGExtractor':
        """Set the progress callback; returns self for chaining."""
        self.tracker.callback = callback
        return self

    async def extract(self, ctx: Optional[ValidationContext] = None, overwrite: bool = False) -> int:
        """
        Restore the DAG to self.path.

        An existing regular file of the expected size is left alone when
        overwrite is set; anything else at the path is replaced.

        Args:
            ctx: Cancellation context (None for a background context)
            overwrite: Allow replacing an existing path

        Returns:
            Number of payload bytes in the restored file

        Raises:
            InvalidIdentifierError: If the root CID does not decode
            PathTraversalError: If the target escapes base_dir or crosses a symlink
            PathExistsError: If the target exists and overwrite is False
            UnsupportedLayoutError: If a node is neither raw nor dag-pb
            StoreError: If a block is absent or unreadable
            ValidationCancelledError: If ctx ends first
            ExtractionError: If the file cannot be written
        """
        ctx = ctx or background()
        root = ContentIdentifier.parse(self.root)
        ensure_no_symlink_in_path(self.base_dir, self.path)

        leaves = await self._plan(ctx, root)
        total = sum(size for _, size in leaves)
        self.tracker.set_total(total)
        logger.info(f"Extracting {root} to {self.path}: {len(leaves)} leaves, {total} bytes")

        if os.path.lexists(self.path):
            if not overwrite:
                raise PathExistsError(str(self.path))
            if self.path.is_file() and self.path.stat().st_size == total:
                logger.info(f"Skipping {self.path}: existing file already has {total} bytes")
                self.tracker.update(total, self.path.name)
                return total
            remove_path(self.path)

        await self._write(ctx, leaves)
        logger.info(f"Extracted {root} to {self.path}")
        return total

    async def _plan(self, ctx: ValidationContext, cid: ContentIdentifier) -> List[Tuple[ContentIdentifier, int]]:
        """List the raw leaves under cid in file order, with their sizes."""
        if cid.codec == CODEC_RAW:
            return [(cid, await self.probe.size(ctx, cid))]
        if cid.codec != CODEC_DAG_PB:
            raise UnsupportedLayoutError(f"cannot extract {cid}: codec 0x{cid.codec:x} is not part of a file layout")

        data = await self.probe.get(ctx, cid)
        try:
            children = decode_dag_pb_links(data)
        except LinkDecodeError as e:
            raise UnsupportedLayoutError(f"cannot extract {cid}: {e}") from e

        leaves = []
        for child in children:
            leaves.extend(await self._plan(ctx, child))
        return leaves

    async def _write(self, ctx: ValidationContext, leaves: List[Tuple[ContentIdentifier, int]]) -> None:
        part_path = self.path.with_name(self.path.name + PART_FILE_SUFFIX)
        written = False
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            part_path.unlink(missing_ok=True)
            with open(part_path, 'xb') as part:
                pending = 0
                for cid, _ in leaves:
                    data = await self.probe.get(ctx, cid)
                    await asyncio.to_thread(part.write, data)
                    pending += len(data)
                    if pending >= PROGRESS_UPDATE_THRESHOLD:
                        self.tracker.update(pending, self.path.name)
                        pending = 0
                if pending:
                    self.tracker.update(pending, self.path.name)
                part.flush()
                await asyncio.to_thread(os.fsync, part.fileno())
            os.replace(part_path, self.path)
            written = True
        except OSError as e:
            raise ExtractionError(f"failed to write {self.path}: {e}") from e
        finally:
            if not written and os.path.lexists(part_path):
                part_path.unlink()
