"""
AdmissionController: sliding-window gate in front of the completion service.

At most `max_requests` admissions are granted in any trailing window of
`window_seconds`, measured at admission time. Callers that find the window
full are suspended until the oldest admission ages out, then re-check.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Callable, Optional

from ..infrastructure.cancellation import (
    CancellationToken,
    Clock,
    Deadline,
    SleepFn,
    interruptible_sleep,
    raise_if_cancelled,
)
from ..utils import console
from ..utils.timing import timing


logger = logging.getLogger("flexresearch.admission")

WaitObserver = Callable[[float, int], None]


class AdmissionController:
    """
    Sliding-window rate limiter.

    The purge / count / record-or-wait decision runs under one asyncio.Lock so
    two callers never both claim the last free slot. The lock is released
    while a caller sleeps; after waking the whole decision is repeated.

    Args:
        max_requests: Admissions allowed per window (N)
        window_seconds: Length of the trailing window (W)
        buffer_seconds: Added to each computed wait to stay clear of the boundary
        clock: Monotonic time source, seconds
        sleep: Coroutine used to suspend a waiting caller
        on_wait: Called with (wait_seconds, in_window) whenever a caller is suspended
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        buffer_seconds: float = 0.1,
        clock: Clock = time.monotonic,
        sleep: SleepFn = asyncio.sleep,
        on_wait: Optional[WaitObserver] = None,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if buffer_seconds < 0:
            raise ValueError("buffer_seconds must not be negative")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.buffer_seconds = buffer_seconds
        self._clock = clock
        self._sleep = sleep
        self.on_wait = on_wait

        self._window: deque[float] = deque()
        self._lock = asyncio.Lock()

        self.total_admitted = 0
        self.total_waits = 0

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "AdmissionController":
        """Build from an AdmissionSettings section."""
        return cls(
            max_requests=settings.max_requests,
            window_seconds=settings.window_seconds,
            buffer_seconds=settings.buffer_seconds,
            **kwargs,
        )

    def _purge(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._window and self._window[0] <= cutoff:
            self._window.popleft()

    async def admit(
        self,
        cancel: Optional[CancellationToken] = None,
        deadline: Optional[Deadline] = None,
    ) -> float:
        """
        Wait until a slot is free, then reserve it.

        Returns the admission timestamp. Without a token or deadline this
        never fails; with one it raises OperationCancelledError instead of
        waiting past it.
        """
        while True:
            raise_if_cancelled(cancel, deadline)

            async with self._lock:
                now = self._clock()
                self._purge(now)
                if len(self._window) < self.max_requests:
                    self._window.append(now)
                    self.total_admitted += 1
                    logger.debug(
                        "Admitted at %.3f (%d/%d in window)",
                        now, len(self._window), self.max_requests,
                    )
                    return now

                oldest = self._window[0]
                wait = self.window_seconds - (now - oldest) + self.buffer_seconds
                in_window = len(self._window)

            self.total_waits += 1
            logger.info(
                "Admission window full (%d/%d), waiting %.3fs",
                in_window, self.max_requests, wait,
            )
            console.admission_wait(wait, in_window, self.max_requests)
            if self.on_wait is not None:
                self.on_wait(wait, in_window)

            started = time.perf_counter()
            await interruptible_sleep(wait, self._sleep, cancel, deadline)
            timing().record(
                "admit_wait", "admission", (time.perf_counter() - started) * 1000,
                requested_s=round(wait, 3),
            )

    def remaining(self) -> int:
        """Slots currently free in the window."""
        self._purge(self._clock())
        return self.max_requests - len(self._window)

    def window_snapshot(self) -> list[float]:
        """Copy of the admission timestamps currently in the window."""
        self._purge(self._clock())
        return list(self._window)
