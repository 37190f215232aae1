"""
Bounded Queue — FIFO admission with a fixed concurrency ceiling.

    future = queue.submit(lambda: call_upstream(...))
    result = await future

Invariants:
  - 0 <= active_count <= concurrency, always
  - dispatch order == submission order
  - a failing task settles only its own future; dispatch carries on

Dispatch is driven by two events: a new submission, and a running task
finishing (_release, called inside _run before the caller's future is
settled). Both call _dispatch(), which starts waiting entries while there
is free capacity. Everything runs on the event loop thread, so the counter
and the waiting list need no lock.

The waiting list is capped at max_depth; submit() raises QueueFull instead of
letting a burst of uploads grow memory without bound.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from studyaids.core.errors import QueueFull

logger = logging.getLogger(__name__)

Task = Callable[[], Awaitable[Any]]


@dataclass
class QueueEntry:
    task:   Task
    future: asyncio.Future


class BoundedQueue:
    """Runs submitted coroutine factories with at most `concurrency` in flight."""

    def __init__(self, concurrency: int, max_depth: int | None = None) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._concurrency = concurrency
        self._max_depth   = max_depth
        self._waiting: deque[QueueEntry] = deque()
        self._running: set[asyncio.Task] = set()
        self._active = 0

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def active_count(self) -> int:
        return self._active

    @property
    def waiting_count(self) -> int:
        return len(self._waiting)

    def submit(self, task: Task) -> asyncio.Future:
        """
        Enqueue `task` and return a future settled with its outcome.

        Raises:
            QueueFull: if max_depth entries are already waiting.
        """
        if self._max_depth is not None and len(self._waiting) >= self._max_depth:
            logger.warning(
                "BoundedQueue | rejecting submission waiting=%d max_depth=%d",
                len(self._waiting), self._max_depth,
            )
            raise QueueFull(
                f"Generation queue is full ({self._max_depth} requests waiting). Try again shortly."
            )

        future = asyncio.get_running_loop().create_future()
        self._waiting.append(QueueEntry(task=task, future=future))
        logger.debug(
            "BoundedQueue | queued waiting=%d active=%d",
            len(self._waiting), self._active,
        )
        self._dispatch()
        return future

    def _dispatch(self) -> None:
        while self._active < self._concurrency and self._waiting:
            entry = self._waiting.popleft()
            if entry.future.cancelled():
                continue   # caller gave up before dispatch

            self._active += 1
            running = asyncio.ensure_future(self._run(entry))
            self._running.add(running)
            running.add_done_callback(self._on_done)

    async def _run(self, entry: QueueEntry) -> None:
        # Slot released before the caller's future settles
        try:
            result = await entry.task()
        except asyncio.CancelledError:
            self._release()
            entry.future.cancel()
            raise
        except Exception as exc:
            self._release()
            if not entry.future.done():
                entry.future.set_exception(exc)
        else:
            self._release()
            if not entry.future.done():
                entry.future.set_result(result)

    def _release(self) -> None:
        """Completion event: free the slot and pull the next entry."""
        self._active -= 1
        self._dispatch()

    def _on_done(self, running: asyncio.Task) -> None:
        self._running.discard(running)

    async def aclose(self) -> None:
        """Wait for in-flight tasks; waiting entries are cancelled."""
        while self._waiting:
            self._waiting.popleft().future.cancel()
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)
