"""
Concurrent DAG traversal.

A bounded pool of asyncio workers drains a shared queue of identifiers. The
visited set and the running size total sit behind one lock so that a node is
claimed and counted by exactly one worker, however many of its parents are
expanded at the same time.
"""

import asyncio
import threading
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Set, Tuple

from blockstore.cid import ContentIdentifier
from common.constants import DEFAULT_WALK_CONCURRENCY
from common.exceptions import (
    BlockCheckException,
    BlockNotFoundError,
    LinkDecodeError,
    StoreError,
    TraversalError,
    ValidationCancelledError,
)
from common.logging_config import get_logger
from validator.context import ValidationContext
from validator.links import LinkResolver
from validator.probe import BlockProbe

logger = get_logger(__name__)


@dataclass(frozen=True)
class WalkOutcome:
    """
    Result of one DAG walk.

    Attributes:
        required: Canonical identifiers of every node reached (partial on error)
        size: Sum of sizes of the distinct nodes that could be sized
        error: TraversalError or ValidationCancelledError if the walk stopped early
        errors: Store errors on non-root blocks, which the walk stepped past
    """
    required: FrozenSet[str]
    size: int
    error: Optional[BlockCheckException] = None
    errors: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.error is None


class _WalkState:
    """Visited set, size total and first failure of one walk."""

    def __init__(self):
        self._lock = threading.Lock()
        self._visited: Set[str] = set()
        self._size = 0
        self._errors: List[str] = []
        self.error: Optional[BlockCheckException] = None
        self.stopped = asyncio.Event()

    def claim(self, key: str) -> bool:
        """Atomically mark key visited; False if another worker got there first."""
        with self._lock:
            if key in self._visited:
                return False
            self._visited.add(key)
            return True

    def seen(self, key: str) -> bool:
        with self._lock:
            return key in self._visited

    def add_size(self, size: int) -> None:
        with self._lock:
            self._size += size

    def add_error(self, message: str) -> None:
        with self._lock:
            self._errors.append(message)

    def fail(self, error: BlockCheckException) -> None:
        with self._lock:
            if self.error is None:
                self.error = error
        self.stopped.set()

    def outcome(self) -> WalkOutcome:
        with self._lock:
            return WalkOutcome(
                required=frozenset(self._visited),
                size=self._size,
                error=self.error,
                errors=tuple(self._errors)
            )


class DAGWalker:
    """
    Discovers every block reachable from a root and sums their sizes.

    Blocks that do not decode under their codec are leaves. Children that
    are absent from the store stay in the required set (so they can be
    reported missing) but contribute no size. A store error on a child is
    recorded in WalkOutcome.errors and the child is treated as an unsized
    leaf. The walk fails only when the root cannot be fetched or the
    context ends.
    """

    def __init__(
        self,
        probe: BlockProbe,
        resolver: Optional[LinkResolver] = None,
        concurrency: int = DEFAULT_WALK_CONCURRENCY
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.probe = probe
        self.resolver = resolver or LinkResolver()
        self.concurrency = concurrency

    async def walk(self, ctx: ValidationContext, root: ContentIdentifier) -> WalkOutcome:
        """
        Walk the DAG rooted at root.

        Args:
            ctx: Validation context checked before every unit of work
            root: Root identifier

        Returns:
            WalkOutcome with the required set, total size and any failure
        """
        state = _WalkState()
        queue: asyncio.Queue = asyncio.Queue()
        queue.put_nowait(root)

        workers = [
            asyncio.create_task(self._worker(ctx, root, queue, state))
            for _ in range(self.concurrency)
        ]
        drained = asyncio.ensure_future(queue.join())
        stopped = asyncio.ensure_future(state.stopped.wait())
        cancelled = asyncio.ensure_future(ctx.wait_cancelled())
        try:
            done, _ = await asyncio.wait({drained, stopped, cancelled}, return_when=asyncio.FIRST_COMPLETED)
            if cancelled in done and drained not in done:
                state.fail(ValidationCancelledError(cancelled.result()))
        finally:
            for task in (drained, stopped, cancelled, *workers):
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        outcome = state.outcome()
        if outcome.ok:
            logger.debug(f"Walk from {root} reached {len(outcome.required)} blocks ({outcome.size} bytes)")
        else:
            logger.warning(f"Walk from {root} stopped after {len(outcome.required)} blocks: {outcome.error}")
        return outcome

    async def _worker(
        self,
        ctx: ValidationContext,
        root: ContentIdentifier,
        queue: asyncio.Queue,
        state: _WalkState
    ) -> None:
        while True:
            cid = await queue.get()
            try:
                if state.error is None:
                    await self._visit(ctx, cid, cid == root, queue, state)
            except (TraversalError, ValidationCancelledError) as e:
                state.fail(e)
            except Exception as e:
                logger.error(f"Unexpected error visiting {cid}: {e!r}", exc_info=True)
                state.fail(TraversalError(f"unexpected error visiting {cid}: {e!r}"))
            finally:
                queue.task_done()

    async def _visit(
        self,
        ctx: ValidationContext,
        cid: ContentIdentifier,
        is_root: bool,
        queue: asyncio.Queue,
        state: _WalkState
    ) -> None:
        ctx.raise_if_cancelled()

        if not state.claim(str(cid)):
            return

        try:
            size = await self.probe.size(ctx, cid)
        except BlockNotFoundError:
            if is_root:
                raise TraversalError(f"root block {cid} not found") from None
            logger.debug(f"Required block {cid} is absent from the store")
            return
        except StoreError as e:
            if is_root:
                raise TraversalError(str(e)) from e
            self._step_past(cid, e, state)
            return
        state.add_size(size)

        if self.resolver.is_leaf_codec(cid.codec):
            return

        try:
            data = await self.probe.get(ctx, cid)
        except BlockNotFoundError:
            if is_root:
                raise TraversalError(f"root block {cid} not found") from None
            return
        except StoreError as e:
            if is_root:
                raise TraversalError(str(e)) from e
            self._step_past(cid, e, state)
            return

        try:
            children = self.resolver.resolve(cid, data)
        except LinkDecodeError as e:
            logger.debug(f"Treating {cid} as a leaf: {e}")
            return

        for child in children:
            if not state.seen(str(child)):
                queue.put_nowait(child)

    def _step_past(self, cid: ContentIdentifier, error: StoreError, state: _WalkState) -> None:
        logger.warning(f"Store error on required block {cid}, continuing walk: {error}")
        state.add_error(str(error))
