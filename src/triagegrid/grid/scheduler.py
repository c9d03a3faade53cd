"""
Refresh scheduler.

A two-state machine (stopped / running) that fires ``on_tick`` every
``interval_ms``. Only one timer is ever pending: every transition cancels
the previous handle before arming a new one.
"""

import asyncio
from typing import Any, Callable, List, Optional, Protocol, Tuple

import structlog

from ..core.errors import InvalidInterval

log = structlog.get_logger()


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Timer(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioTimer:
    """Timer backed by the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class _ManualHandle:
    def __init__(self, timer: "ManualTimer", due: float, callback: Callable[[], None]):
        self._timer = timer
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        if not self.cancelled:
            self.cancelled = True
            self._timer._pending.remove(self)


class ManualTimer:
    """Deterministic timer driven by ``advance``; for tests and loop-less hosts."""

    def __init__(self) -> None:
        self.now = 0.0
        self._pending: List[_ManualHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualHandle:
        handle = _ManualHandle(self, self.now + delay, callback)
        self._pending.append(handle)
        return handle

    @property
    def pending(self) -> List[Tuple[float, Any]]:
        return [(h.due, h.callback) for h in self._pending]

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due callbacks in order. Returns fired count."""
        target = self.now + seconds
        fired = 0
        while True:
            due = [h for h in self._pending if h.due <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.due)
            self._pending.remove(handle)
            handle.cancelled = True
            self.now = handle.due
            handle.callback()
            fired += 1
        self.now = target
        return fired


class RefreshScheduler:
    """Interval-driven trigger for re-fetching records.

    Ticks never wait for the fetch they start; overlapping fetches are the
    fetch collaborator's concern.
    """

    def __init__(self, on_tick: Callable[[], Any], timer: Optional[Timer] = None):
        self._on_tick = on_tick
        self._timer: Timer = timer or AsyncioTimer()
        self._handle: Optional[TimerHandle] = None
        self._interval_ms: Optional[int] = None

    @property
    def is_running(self) -> bool:
        return self._interval_ms is not None

    @property
    def state(self) -> str:
        return "running" if self.is_running else "stopped"

    @property
    def interval_ms(self) -> Optional[int]:
        return self._interval_ms

    def start(self, interval_ms: int) -> None:
        if interval_ms is None or interval_ms <= 0:
            raise InvalidInterval(interval_ms)
        if self._interval_ms == interval_ms and self._handle is not None:
            return
        self._cancel()
        self._interval_ms = interval_ms
        self._arm()
        log.info("scheduler.started", interval_ms=interval_ms)

    def set_interval(self, interval_ms: int) -> None:
        """Change the interval; restarts the timer when running."""
        if interval_ms is None or interval_ms <= 0:
            raise InvalidInterval(interval_ms)
        if self.is_running:
            self.start(interval_ms)

    def stop(self) -> None:
        if not self.is_running:
            return
        self._cancel()
        self._interval_ms = None
        log.info("scheduler.stopped")

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _arm(self) -> None:
        self._handle = self._timer.call_later(self._interval_ms / 1000.0, self._tick)

    def _tick(self) -> None:
        self._handle = None
        if not self.is_running:
            return
        # Re-arm first so a failing tick cannot stop the schedule
        self._arm()
        try:
            self._on_tick()
        except Exception as e:
            log.warning("scheduler.tick_error", error=str(e))
