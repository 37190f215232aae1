"""
Rate Window — proactive requests-per-minute gate for the upstream LLM.

One RateWindow instance is shared by every upstream call the process makes
(it lives on the RequestScheduler). Callers `await acquire_slot()` right
before each network call; the coroutine returns only when one more request
fits inside the 60-second window.

Algorithm (sliding log):
  - admissions are recorded as monotonic timestamps
  - timestamps older than the window are evicted on every call
  - window_start = oldest admission still in the window
  - if count < limit            → record now, return
  - else wait  window - (now - window_start) + safety_margin, then re-check

Re-checking after every wake-up is what makes concurrent waiters safe: each
one re-evaluates the log against the clock instead of assuming the window was
reset for it. No lock is needed because check-and-record has no await in
between.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


@dataclass(frozen=True)
class RateWindowState:
    """Snapshot for logging and the /info endpoint."""
    window_start: float | None
    count:        int
    limit:        int


class RateWindow:
    """
    Requests-per-minute gate.

    clock and sleep are injectable so tests can drive time by hand.
    """

    def __init__(
        self,
        max_requests_per_minute: int,
        safety_margin_ms:        int = 250,
        window_seconds:          float = WINDOW_SECONDS,
        clock:                   Callable[[], float] = time.monotonic,
        sleep:                   Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_requests_per_minute < 1:
            raise ValueError("max_requests_per_minute must be >= 1")
        self._limit   = max_requests_per_minute
        self._window  = window_seconds
        self._margin  = safety_margin_ms / 1000
        self._clock   = clock
        self._sleep   = sleep
        self._admitted: deque[float] = deque()

    @property
    def limit(self) -> int:
        return self._limit

    def state(self) -> RateWindowState:
        self._evict(self._clock())
        return RateWindowState(
            window_start=self._admitted[0] if self._admitted else None,
            count=len(self._admitted),
            limit=self._limit,
        )

    def _evict(self, now: float) -> None:
        while self._admitted and now - self._admitted[0] >= self._window:
            self._admitted.popleft()

    async def acquire_slot(self) -> None:
        """Suspend until one more request fits in the window, then record it."""
        while True:
            now = self._clock()
            self._evict(now)

            if len(self._admitted) < self._limit:
                self._admitted.append(now)
                return

            wait = self._window - (now - self._admitted[0]) + self._margin
            logger.info(
                "RateWindow | limit=%d reached, waiting=%.2fs",
                self._limit, wait,
            )
            await self._sleep(wait)
