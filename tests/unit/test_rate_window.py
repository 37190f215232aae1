"""
Unit Tests — RateWindow
═══════════════════════
Virtual time throughout (FakeClock): a full 60 s window costs nothing.

Coverage targets:
  ✅ Requests under the limit are admitted without waiting
  ✅ The (limit+1)-th request waits for the oldest admission to age out
  ✅ Wait includes the safety margin
  ✅ No sliding 60 s window ever holds more than `limit` admissions
  ✅ Concurrent waiters re-check after waking (no over-admission)
  ✅ State snapshot reports window_start / count / limit
  ✅ Invalid limit rejected
"""

from __future__ import annotations

import asyncio

import pytest

from studyaids.llm.rate_window import WINDOW_SECONDS, RateWindow


def _window(fake_clock, limit: int, margin_ms: int = 250) -> RateWindow:
    return RateWindow(limit, safety_margin_ms=margin_ms, clock=fake_clock, sleep=fake_clock.sleep)


def _max_in_any_window(times: list[float]) -> int:
    times = sorted(times)
    best = 0
    for i, start in enumerate(times):
        best = max(best, sum(1 for t in times[i:] if t - start < WINDOW_SECONDS))
    return best


@pytest.mark.unit
class TestRateWindowAdmission:

    async def test_under_limit_admits_immediately(self, fake_clock):
        window = _window(fake_clock, limit=3)
        for _ in range(3):
            await window.acquire_slot()
        assert fake_clock.sleeps == []
        assert window.state().count == 3

    async def test_over_limit_waits_for_oldest_to_expire(self, fake_clock):
        window = _window(fake_clock, limit=2, margin_ms=250)
        start = fake_clock()
        await window.acquire_slot()
        fake_clock.advance(10)
        await window.acquire_slot()

        await window.acquire_slot()

        # oldest admission at `start` leaves the window at start+60; +0.25 margin
        assert fake_clock.sleeps == [pytest.approx(50.25)]
        assert fake_clock() == pytest.approx(start + 60.25)

    async def test_zero_margin_waits_exactly_to_window_edge(self, fake_clock):
        window = _window(fake_clock, limit=1, margin_ms=0)
        await window.acquire_slot()
        await window.acquire_slot()
        assert fake_clock.sleeps == [pytest.approx(60.0)]

    async def test_entries_older_than_window_are_evicted(self, fake_clock):
        window = _window(fake_clock, limit=2)
        await window.acquire_slot()
        await window.acquire_slot()
        fake_clock.advance(WINDOW_SECONDS)
        assert window.state().count == 0
        await window.acquire_slot()
        assert fake_clock.sleeps == []


@pytest.mark.unit
class TestRateWindowSlidingProperty:

    async def test_sequential_burst_never_exceeds_limit(self, fake_clock):
        window = _window(fake_clock, limit=3)
        admitted: list[float] = []
        for _ in range(10):
            await window.acquire_slot()
            admitted.append(fake_clock())
            fake_clock.advance(1.5)

        assert _max_in_any_window(admitted) <= 3

    async def test_concurrent_waiters_never_exceed_limit(self, fake_clock):
        window = _window(fake_clock, limit=2)
        admitted: list[float] = []

        async def worker():
            await window.acquire_slot()
            admitted.append(fake_clock())

        await asyncio.gather(*(worker() for _ in range(7)))

        assert len(admitted) == 7
        assert _max_in_any_window(admitted) <= 2


@pytest.mark.unit
class TestRateWindowState:

    async def test_state_snapshot(self, fake_clock):
        window = _window(fake_clock, limit=5)
        assert window.state().window_start is None

        first = fake_clock()
        await window.acquire_slot()
        fake_clock.advance(3)
        await window.acquire_slot()

        state = window.state()
        assert state.window_start == first
        assert state.count == 2
        assert state.limit == 5

    def test_limit_below_one_rejected(self, fake_clock):
        with pytest.raises(ValueError):
            _window(fake_clock, limit=0)
