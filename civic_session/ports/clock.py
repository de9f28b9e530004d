"""Wall-clock time and timer scheduling."""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import time
from typing import Callable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class TimerHandle(Protocol):
    @property
    def cancelled(self) -> bool: ...

    def cancel(self) -> None: ...


@runtime_checkable
class Clock(Protocol):
    """Protocol for time and timers used by every session component."""

    def now(self) -> float:
        """Current wall-clock time in seconds."""
        ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""
        ...

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` every ``interval`` seconds until cancelled."""
        ...


class _LoopTimer:
    def __init__(self) -> None:
        self._handle: asyncio.TimerHandle | None = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class SystemClock:
    """Real time, with timers scheduled on the running asyncio loop.

    Background throttling can delay these timers arbitrarily; callers
    re-validate deadlines against ``now()`` instead of trusting them.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> _LoopTimer:
        timer = _LoopTimer()

        def _fire() -> None:
            timer._handle = None
            if not timer.cancelled:
                callback()

        timer._handle = self._get_loop().call_later(delay, _fire)
        return timer

    def call_every(self, interval: float, callback: Callable[[], None]) -> _LoopTimer:
        timer = _LoopTimer()
        loop = self._get_loop()

        def _fire() -> None:
            if timer.cancelled:
                return
            timer._handle = loop.call_later(interval, _fire)
            callback()

        timer._handle = loop.call_later(interval, _fire)
        return timer


class _ManualTimer:
    def __init__(self, clock: ManualClock, interval: float | None) -> None:
        self._clock = clock
        self.interval = interval
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class ManualClock:
    """Virtual clock for tests and simulations.

    Time only moves when ``advance()`` is called. Due timers fire in due
    order (ties in scheduling order) with ``now()`` set to their due time.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._seq = itertools.count()
        self._queue: list[tuple[float, int, _ManualTimer, Callable[[], None]]] = []

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualTimer:
        timer = _ManualTimer(self, None)
        self._schedule(self._now + max(delay, 0.0), timer, callback)
        return timer

    def call_every(self, interval: float, callback: Callable[[], None]) -> _ManualTimer:
        if interval <= 0:
            raise ValueError("interval must be positive")
        timer = _ManualTimer(self, interval)
        self._schedule(self._now + interval, timer, callback)
        return timer

    def _schedule(self, due: float, timer: _ManualTimer, callback: Callable[[], None]) -> None:
        heapq.heappush(self._queue, (due, next(self._seq), timer, callback))

    @property
    def pending(self) -> int:
        """Number of live timers still scheduled."""
        return sum(1 for _, _, timer, _ in self._queue if not timer.cancelled)

    def advance(self, seconds: float) -> None:
        """Move time forward, firing every timer that falls due."""
        if seconds < 0:
            raise ValueError("cannot move time backwards")
        target = self._now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, timer, callback = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = due
            if timer.interval is not None:
                self._schedule(due + timer.interval, timer, callback)
            try:
                callback()
            except Exception:
                logger.exception("Timer callback failed")
        self._now = target
