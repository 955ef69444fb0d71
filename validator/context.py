"""Cancellation capability threaded through one validation call."""

import asyncio
import threading
import time
from typing import Awaitable, Optional, Set, Tuple, TypeVar

from common.exceptions import ValidationCancelledError

T = TypeVar("T")

CANCELLED_REASON = "context canceled"
DEADLINE_REASON = "context deadline exceeded"


class ValidationContext:
    """
    Cancellation token with an optional deadline.

    cancel() may be called from any thread. Coroutines that are waiting in
    guard() are woken through their own event loop.
    """

    def __init__(self, timeout: Optional[float] = None):
        """
        Args:
            timeout: Seconds until the context expires (None for no deadline)
        """
        self._lock = threading.Lock()
        self._reason: Optional[str] = None
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._waiters: Set[Tuple[asyncio.AbstractEventLoop, asyncio.Event]] = set()

    @property
    def deadline(self) -> Optional[float]:
        """Monotonic deadline, if any."""
        return self._deadline

    @property
    def reason(self) -> Optional[str]:
        """Why the context ended, or None while it is live."""
        self._check_deadline()
        with self._lock:
            return self._reason

    @property
    def cancelled(self) -> bool:
        return self.reason is not None

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline (None for no deadline)."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def cancel(self, reason: str = CANCELLED_REASON) -> None:
        """
        Cancel the context. Later calls keep the first reason.

        Args:
            reason: Message carried by the resulting ValidationCancelledError
        """
        with self._lock:
            if self._reason is not None:
                return
            self._reason = reason
            waiters = list(self._waiters)

        for loop, event in waiters:
            try:
                loop.call_soon_threadsafe(event.set)
            except RuntimeError:
                # loop already closed; nobody is waiting on it any more
                pass

    def raise_if_cancelled(self) -> None:
        """
        Raises:
            ValidationCancelledError: If the context is cancelled or expired
        """
        reason = self.reason
        if reason is not None:
            raise ValidationCancelledError(reason)

    def _check_deadline(self) -> None:
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel(DEADLINE_REASON)

    async def wait_cancelled(self) -> str:
        """
        Wait until the context is cancelled or its deadline passes.

        Returns:
            The reason the context ended
        """
        loop = asyncio.get_running_loop()
        event = asyncio.Event()
        waiter = (loop, event)
        with self._lock:
            self._waiters.add(waiter)
        try:
            if not self.cancelled:
                try:
                    await asyncio.wait_for(event.wait(), timeout=self.remaining())
                except asyncio.TimeoutError:
                    self.cancel(DEADLINE_REASON)
            return self.reason or CANCELLED_REASON
        finally:
            with self._lock:
                self._waiters.discard(waiter)

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await a store call, abandoning it if the context ends first.

        Args:
            awaitable: The in-flight store operation

        Returns:
            The operation's result

        Raises:
            ValidationCancelledError: If the context ends before the operation
        """
        loop = asyncio.get_running_loop()
        event = asyncio.Event()
        waiter = (loop, event)
        # register before checking so a concurrent cancel() cannot be missed
        with self._lock:
            self._waiters.add(waiter)

        task = asyncio.ensure_future(awaitable)
        cancel_wait = asyncio.ensure_future(event.wait())
        try:
            self.raise_if_cancelled()
            done, _ = await asyncio.wait(
                {task, cancel_wait},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
            if task in done:
                return task.result()
            if not done:
                self.cancel(DEADLINE_REASON)
            task.cancel()
            raise ValidationCancelledError(self.reason or CANCELLED_REASON)
        finally:
            cancel_wait.cancel()
            if not task.done():
                task.cancel()
            with self._lock:
                self._waiters.discard(waiter)


def background() -> ValidationContext:
    """A context that is never cancelled unless cancel() is called on it."""
    return ValidationContext()
