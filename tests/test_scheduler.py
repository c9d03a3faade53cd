"""
Tests for the refresh scheduler.

Uses ManualTimer so timer behaviour is deterministic; one test drives the
asyncio backend for real.
"""

import asyncio

import pytest

from triagegrid.core.errors import InvalidInterval
from triagegrid.grid.scheduler import AsyncioTimer, ManualTimer, RefreshScheduler


@pytest.fixture
def timer():
    return ManualTimer()


@pytest.fixture
def ticks():
    return []


@pytest.fixture
def scheduler(timer, ticks):
    return RefreshScheduler(lambda: ticks.append(timer.now), timer=timer)


class TestRefreshScheduler:
    def test_starts_stopped(self, scheduler):
        assert scheduler.state == "stopped"
        assert scheduler.interval_ms is None

    def test_ticks_at_interval(self, scheduler, timer, ticks):
        scheduler.start(30000)
        timer.advance(95)

        assert ticks == [30.0, 60.0, 90.0]
        assert len(timer.pending) == 1

    def test_reconfigure_before_first_tick(self, scheduler, timer, ticks):
        """30s then 10s before the first tick: one timer, firing every 10s."""
        scheduler.start(30000)
        timer.advance(5)
        scheduler.set_interval(10000)

        assert len(timer.pending) == 1
        timer.advance(10)
        assert ticks == [15.0]
        timer.advance(20)
        assert ticks == [15.0, 25.0, 35.0]
        assert len(timer.pending) == 1
        assert scheduler.interval_ms == 10000

    def test_stop_cancels_pending_timer(self, scheduler, timer, ticks):
        scheduler.start(1000)
        scheduler.stop()

        assert timer.pending == []
        timer.advance(10)
        assert ticks == []
        assert scheduler.state == "stopped"

    def test_stop_is_idempotent(self, scheduler):
        scheduler.stop()
        scheduler.start(1000)
        scheduler.stop()
        scheduler.stop()
        assert not scheduler.is_running

    def test_start_twice_keeps_one_timer(self, scheduler, timer):
        scheduler.start(1000)
        scheduler.start(1000)
        scheduler.start(2000)

        assert len(timer.pending) == 1
        assert scheduler.interval_ms == 2000

    def test_set_interval_while_stopped_does_not_start(self, scheduler, timer):
        scheduler.set_interval(5000)

        assert not scheduler.is_running
        assert timer.pending == []

    def test_invalid_interval(self, scheduler):
        with pytest.raises(InvalidInterval):
            scheduler.start(0)
        with pytest.raises(InvalidInterval):
            scheduler.set_interval(-5)

    def test_failing_tick_keeps_schedule(self, timer):
        calls = []

        def boom():
            calls.append(timer.now)
            raise RuntimeError("fetch exploded")

        scheduler = RefreshScheduler(boom, timer=timer)
        scheduler.start(1000)
        timer.advance(3)

        assert calls == [1.0, 2.0, 3.0]
        assert scheduler.is_running


def test_asyncio_backend():
    ticks = []

    async def run():
        scheduler = RefreshScheduler(lambda: ticks.append(1), timer=AsyncioTimer())
        scheduler.start(10)
        await asyncio.sleep(0.1)
        scheduler.stop()
        count = len(ticks)
        await asyncio.sleep(0.05)
        return count

    stopped_at = asyncio.run(run())

    assert stopped_at >= 1
    assert len(ticks) == stopped_at
