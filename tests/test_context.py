"""Tests for the validation cancellation context and store probe."""

import asyncio
import threading
import time

import pytest

from blockstore.cid import compute_cid
from blockstore.memory_store import MemoryBlockStore
from common.exceptions import BlockNotFoundError, StoreError, ValidationCancelledError
from validator.context import CANCELLED_REASON, DEADLINE_REASON, ValidationContext, background
from validator.probe import BlockProbe


class UnsizedStore(MemoryBlockStore):
    """Store that cannot size blocks without reading them."""

    def __init__(self):
        super().__init__()
        self.reads = 0

    async def get_size(self, cid):
        await super().get_size(cid)
        return None

    async def get(self, cid):
        self.reads += 1
        return await super().get(cid)


class BrokenStore(MemoryBlockStore):
    """Store whose every query fails."""

    async def has(self, cid):
        raise RuntimeError("disk on fire")

    async def get_size(self, cid):
        raise OSError("I/O error")


class TestValidationContext:
    """Test cancellation and deadlines."""

    def test_fresh_context_is_live(self):
        ctx = background()

        assert ctx.cancelled is False
        assert ctx.reason is None
        assert ctx.deadline is None
        assert ctx.remaining() is None
        ctx.raise_if_cancelled()

    def test_cancel(self):
        ctx = ValidationContext()

        ctx.cancel()

        assert ctx.cancelled is True
        with pytest.raises(ValidationCancelledError, match=CANCELLED_REASON):
            ctx.raise_if_cancelled()

    def test_first_reason_wins(self):
        ctx = ValidationContext()

        ctx.cancel("operator abort")
        ctx.cancel("second reason")

        assert ctx.reason == "operator abort"

    def test_deadline_expires(self):
        ctx = ValidationContext(timeout=0)

        assert ctx.remaining() == 0.0
        with pytest.raises(ValidationCancelledError, match=DEADLINE_REASON):
            ctx.raise_if_cancelled()

    def test_remaining_counts_down(self):
        ctx = ValidationContext(timeout=60)

        assert 0 < ctx.remaining() <= 60
        assert ctx.cancelled is False

    @pytest.mark.asyncio
    async def test_guard_returns_result(self):
        ctx = ValidationContext(timeout=5)

        assert await ctx.guard(asyncio.sleep(0, result=42)) == 42

    @pytest.mark.asyncio
    async def test_guard_propagates_errors(self):
        async def failing():
            raise KeyError("boom")

        with pytest.raises(KeyError):
            await ValidationContext().guard(failing())

    @pytest.mark.asyncio
    async def test_guard_on_cancelled_context(self):
        ctx = ValidationContext()
        ctx.cancel()

        with pytest.raises(ValidationCancelledError):
            await ctx.guard(asyncio.sleep(10))

    @pytest.mark.asyncio
    async def test_cancel_from_another_thread_abandons_call(self):
        ctx = ValidationContext()
        timer = threading.Timer(0.05, ctx.cancel)
        timer.start()

        started = time.monotonic()
        with pytest.raises(ValidationCancelledError, match=CANCELLED_REASON):
            await ctx.guard(asyncio.sleep(10))

        assert time.monotonic() - started < 5
        timer.join()

    @pytest.mark.asyncio
    async def test_deadline_abandons_call(self):
        ctx = ValidationContext(timeout=0.05)

        with pytest.raises(ValidationCancelledError, match=DEADLINE_REASON):
            await ctx.guard(asyncio.sleep(10))

        assert ctx.reason == DEADLINE_REASON

    @pytest.mark.asyncio
    async def test_wait_cancelled_wakes_on_cancel(self):
        ctx = ValidationContext()
        timer = threading.Timer(0.05, ctx.cancel, args=("operator abort",))
        timer.start()

        reason = await asyncio.wait_for(ctx.wait_cancelled(), timeout=5)

        assert reason == "operator abort"
        timer.join()

    @pytest.mark.asyncio
    async def test_wait_cancelled_wakes_on_deadline(self):
        ctx = ValidationContext(timeout=0.05)

        assert await asyncio.wait_for(ctx.wait_cancelled(), timeout=5) == DEADLINE_REASON
        assert ctx.cancelled is True


class TestBlockProbe:
    """Test BlockProbe store queries."""

    @pytest.mark.asyncio
    async def test_has_and_size(self, memory_store):
        cid = await memory_store.put(b"twelve bytes")
        probe = BlockProbe(memory_store)
        ctx = background()

        assert await probe.has(ctx, cid) is True
        assert await probe.size(ctx, cid) == 12
        assert await probe.has(ctx, compute_cid(b"other")) is False

    @pytest.mark.asyncio
    async def test_size_falls_back_to_reading(self):
        store = UnsizedStore()
        cid = await store.put(b"abc")
        probe = BlockProbe(store)

        assert await probe.size(background(), cid) == 3
        assert store.reads == 1

    @pytest.mark.asyncio
    async def test_absent_block_size(self, memory_store):
        probe = BlockProbe(memory_store)

        with pytest.raises(BlockNotFoundError):
            await probe.size(background(), compute_cid(b"absent"))

    @pytest.mark.asyncio
    async def test_store_errors_are_wrapped(self):
        probe = BlockProbe(BrokenStore())
        cid = compute_cid(b"anything")

        with pytest.raises(StoreError) as exc_info:
            await probe.has(background(), cid)

        assert exc_info.value.cid == str(cid)
        assert "disk on fire" in str(exc_info.value)

        with pytest.raises(StoreError, match="I/O error"):
            await probe.size(background(), cid)

    @pytest.mark.asyncio
    async def test_cancelled_context_is_not_wrapped(self, memory_store):
        ctx = ValidationContext()
        ctx.cancel()

        with pytest.raises(ValidationCancelledError):
            await BlockProbe(memory_store).has(ctx, compute_cid(b"x"))
