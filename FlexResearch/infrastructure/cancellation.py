"""
Cooperative cancellation and deadlines.

A CancellationToken and a Deadline can be handed to admission, the completion
gateway, unit execution and batch runs. Both are checked before every wait and
every call; a token also interrupts a wait in progress.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional

from .errors import OperationCancelledError


Clock = Callable[[], float]
SleepFn = Callable[[float], Awaitable[None]]


class CancellationToken:
    """One-shot cancellation signal shared between a caller and its work."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


class Deadline:
    """Absolute point in time, measured on the given clock."""

    def __init__(self, expires_at: float, clock: Clock = time.monotonic):
        self.expires_at = expires_at
        self._clock = clock

    @classmethod
    def within(cls, seconds: float, clock: Clock = time.monotonic) -> "Deadline":
        return cls(clock() + seconds, clock)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self._clock() >= self.expires_at


def raise_if_cancelled(
    cancel: Optional[CancellationToken] = None,
    deadline: Optional[Deadline] = None,
) -> None:
    """Raise OperationCancelledError if the token fired or the deadline passed."""
    if cancel is not None and cancel.cancelled:
        raise OperationCancelledError(
            f"Operation cancelled ({cancel.reason})", reason=cancel.reason or "cancelled"
        )
    if deadline is not None and deadline.expired:
        raise OperationCancelledError("Deadline exceeded", reason="deadline")


async def interruptible_sleep(
    delay: float,
    sleep: SleepFn = asyncio.sleep,
    cancel: Optional[CancellationToken] = None,
    deadline: Optional[Deadline] = None,
) -> None:
    """
    Sleep for `delay` seconds unless cancelled first.

    A wait that would run past the deadline fails immediately instead of
    sleeping into it.
    """
    raise_if_cancelled(cancel, deadline)
    if deadline is not None and delay > deadline.remaining():
        raise OperationCancelledError(
            f"Deadline exceeded: wait of {delay:.2f}s exceeds remaining "
            f"{deadline.remaining():.2f}s",
            reason="deadline",
        )

    if cancel is None:
        await sleep(delay)
        return

    sleeper = asyncio.ensure_future(sleep(delay))
    watcher = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({sleeper, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (sleeper, watcher):
            if not task.done():
                task.cancel()
        await asyncio.gather(sleeper, watcher, return_exceptions=True)

    raise_if_cancelled(cancel, deadline)
