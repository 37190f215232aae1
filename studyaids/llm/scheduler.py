"""
Request Scheduler — the one object that owns all shared scheduling state.

    BoundedQueue   how many generation requests run at once
    RateWindow     how many upstream calls start per minute
    RetryPolicy    how rate-limit rejections are absorbed

Constructed once per process (FastAPI lifespan → StudyService) and injected
into the StructuredGenerator. Tests build independent instances with a fake
clock and sleep instead of sharing module-level singletons.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Awaitable, Callable, TypeVar

from studyaids.core.config import Settings
from studyaids.llm.queue import BoundedQueue
from studyaids.llm.rate_window import RateWindow, RateWindowState
from studyaids.llm.retry import RetryPolicy, with_retries

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestScheduler:

    def __init__(
        self,
        concurrency:             int,
        requests_per_minute:     int,
        retry_policy:            RetryPolicy,
        max_queue_depth:         int | None = None,
        safety_margin_ms:        int = 250,
        clock:                   Callable[[], float] = time.monotonic,
        sleep:                   Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng:                     Callable[[], float] = random.random,
    ) -> None:
        self.queue  = BoundedQueue(concurrency, max_depth=max_queue_depth)
        self.window = RateWindow(
            requests_per_minute,
            safety_margin_ms=safety_margin_ms,
            clock=clock,
            sleep=sleep,
        )
        self.retry_policy = retry_policy
        self._sleep = sleep
        self._rng   = rng

    @classmethod
    def from_settings(cls, settings: Settings) -> "RequestScheduler":
        return cls(
            concurrency=settings.llm_concurrency,
            requests_per_minute=settings.llm_requests_per_minute,
            retry_policy=RetryPolicy(
                retries=settings.llm_retries,
                base_delay_ms=settings.llm_retry_base_delay_ms,
            ),
            max_queue_depth=settings.llm_queue_max_depth,
            safety_margin_ms=settings.rate_window_safety_margin_ms,
        )

    async def sleep(self, seconds: float) -> None:
        await self._sleep(seconds)

    def submit(self, task: Callable[[], Awaitable[T]]) -> "asyncio.Future[T]":
        """Queue a generation request; see BoundedQueue.submit."""
        return self.queue.submit(task)

    async def call(self, fn: Callable[[], Awaitable[T]]) -> T:
        """One gated, retried upstream call — every retry passes the gate again."""

        async def _gated() -> T:
            await self.window.acquire_slot()
            return await fn()

        return await with_retries(
            _gated,
            retries=self.retry_policy.retries,
            base_delay_ms=self.retry_policy.base_delay_ms,
            sleep=self._sleep,
            rng=self._rng,
        )

    def snapshot(self) -> dict[str, Any]:
        state: RateWindowState = self.window.state()
        return {
            "concurrency":         self.queue.concurrency,
            "active":              self.queue.active_count,
            "waiting":             self.queue.waiting_count,
            "requests_per_minute": state.limit,
            "requests_in_window":  state.count,
        }

    async def aclose(self) -> None:
        logger.info(
            "RequestScheduler | shutting down active=%d waiting=%d",
            self.queue.active_count, self.queue.waiting_count,
        )
        await self.queue.aclose()
