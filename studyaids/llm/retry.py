"""
Retry Executor — exponential back-off for upstream rate-limit rejections.

Retry policy:
  Retryable:      RateLimited (HTTP 429 from the generation backend)
  Non-retryable:  everything else, propagates after a single invocation

  Attempt i (0-indexed) waits  base_delay_ms × 2^i + jitter[0, 150 ms)
  If the upstream sent a Retry-After hint, the wait is at least that long.
  After `retries` retries the last RateLimited is re-raised.

RateWindow paces proactively; this module only absorbs the throttling the
upstream still applies on top of it.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from studyaids.core.errors import RateLimited

logger = logging.getLogger(__name__)

T = TypeVar("T")

JITTER_MS = 150


@dataclass(frozen=True)
class RetryPolicy:
    retries:       int = 4
    base_delay_ms: int = 800


def backoff_delay_ms(attempt: int, base_delay_ms: int, rng: Callable[[], float] = random.random) -> float:
    """Delay before retry number `attempt` (0-indexed)."""
    return base_delay_ms * (2 ** attempt) + rng() * JITTER_MS


async def with_retries(
    fn:            Callable[[], Awaitable[T]],
    retries:       int,
    base_delay_ms: int,
    sleep:         Callable[[float], Awaitable[None]] = asyncio.sleep,
    rng:           Callable[[], float] = random.random,
) -> T:
    """
    Run `fn` and retry it on RateLimited.

    Raises:
        RateLimited: when the upstream is still throttling after `retries` retries.
        Exception:   any non-rate-limit failure, unretried.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except RateLimited as exc:
            if attempt >= retries:
                logger.error("Retry | rate limited, giving up after %d retries", retries)
                raise

            delay_ms = backoff_delay_ms(attempt, base_delay_ms, rng)
            if exc.retry_after_s is not None:
                delay_ms = max(delay_ms, exc.retry_after_s * 1000)

            logger.warning(
                "Retry | rate limited attempt=%d/%d delay_ms=%.0f error=%s",
                attempt + 1, retries, delay_ms, exc,
            )
            attempt += 1
            await sleep(delay_ms / 1000)
