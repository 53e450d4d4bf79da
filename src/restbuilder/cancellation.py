"""Cancellation handle used to bound a single call.

A `CancellationToken` is either created by the builder for one execution (and
closed afterwards) or supplied by the caller, who keeps ownership: the
builder never closes a token it did not create.
"""

import asyncio
import time

from .exceptions import InvalidOperationError


class CancellationToken:
    """Deadline-based cancellation signal for asyncio code.

    The token holds no event-loop state of its own. Each `wait` creates its
    waiter in the running loop, so one token can be reused across calls made
    from different event loops.

    Attributes:
        timeout_ms: The timeout the token was armed with, if any.
    """

    def __init__(self, timeout_ms: int | None = None):
        """Initializes the token, optionally armed with a timeout.

        Args:
            timeout_ms: Milliseconds after which cancellation is requested.
        """
        self._cancelled = False
        self._deadline: float | None = None
        self._closed = False
        self._waiters: set[asyncio.Event] = set()
        self.timeout_ms: int | None = None
        if timeout_ms is not None:
            self.cancel_after(timeout_ms)

    @property
    def is_cancellation_requested(self) -> bool:
        if self._cancelled:
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._cancelled = True
            return True
        return False

    @property
    def closed(self) -> bool:
        return self._closed

    def _wake_waiters(self) -> None:
        for waiter in self._waiters:
            waiter.set()

    def cancel(self) -> None:
        """Requests cancellation immediately."""
        self._cancelled = True
        self._wake_waiters()

    def cancel_after(self, timeout_ms: int) -> None:
        """Schedules cancellation ``timeout_ms`` milliseconds from now.

        Raises:
            InvalidOperationError: If the token has been closed.
        """
        if self._closed:
            raise InvalidOperationError("Cannot re-arm a closed cancellation token")
        self.timeout_ms = timeout_ms
        self._deadline = time.monotonic() + max(timeout_ms, 0) / 1000
        # Pending waits pick up the new deadline.
        self._wake_waiters()

    def remaining(self) -> float | None:
        """Seconds left until the deadline, or None when no deadline is set."""
        if self._deadline is None:
            return None
        return max(self._deadline - time.monotonic(), 0.0)

    async def wait(self) -> None:
        """Waits until cancellation is requested or the deadline passes."""
        while not self.is_cancellation_requested:
            waiter = asyncio.Event()
            self._waiters.add(waiter)
            try:
                await asyncio.wait_for(waiter.wait(), timeout=self.remaining())
            except TimeoutError:
                pass
            finally:
                self._waiters.discard(waiter)

    def close(self) -> None:
        """Releases the token; a closed token can no longer be re-armed."""
        self._closed = True
        self._deadline = None

    def __repr__(self) -> str:
        return (
            f"CancellationToken(timeout_ms={self.timeout_ms}, "
            f"cancelled={self._cancelled}, closed={self._closed})"
        )
