"""Inactivity state machine: Active -> Warning -> Expired.

The clock is polled on a fixed interval instead of arming one deadline
timer, because hidden tabs throttle or suspend timers. Every poll (and every
return to visibility) re-derives the phase from ``now - last_activity_at``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from .ports.clock import Clock, TimerHandle

logger = logging.getLogger(__name__)

REASON_INACTIVITY = "inactivity"


class SessionPhase(str, Enum):
    ACTIVE = "active"
    WARNING = "warning"
    EXPIRED = "expired"


@dataclass
class SessionState:
    last_activity_at: float
    is_tab_visible: bool = True
    warning_issued: bool = False
    is_expired: bool = False


@dataclass(frozen=True)
class SessionStatus:
    phase: SessionPhase
    last_activity_at: float
    time_since_activity: float
    time_until_timeout: float
    is_tab_visible: bool

    @property
    def is_expired(self) -> bool:
        return self.phase is SessionPhase.EXPIRED

    @property
    def is_warning(self) -> bool:
        return self.phase is SessionPhase.WARNING


class SessionClock:
    """Owns ``SessionState`` and decides when to warn and when to expire."""

    def __init__(
        self,
        clock: Clock,
        *,
        session_timeout: float = 600,
        warning_window: float = 120,
        check_interval: float = 60,
        on_warning: Callable[[float], None] | None = None,
        on_timeout: Callable[[str], None] | None = None,
    ) -> None:
        if not 0 <= warning_window < session_timeout:
            raise ValueError("warning_window must be shorter than session_timeout")
        self._clock = clock
        self.session_timeout = session_timeout
        self.warning_window = warning_window
        self.check_interval = check_interval
        self.on_warning = on_warning
        self.on_timeout = on_timeout
        self.state = SessionState(last_activity_at=clock.now())
        self._timer: TimerHandle | None = None

    @property
    def phase(self) -> SessionPhase:
        if self.state.is_expired:
            return SessionPhase.EXPIRED
        if self.state.warning_issued:
            return SessionPhase.WARNING
        return SessionPhase.ACTIVE

    @property
    def running(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        if self._timer is not None or self.state.is_expired:
            return
        self._timer = self._clock.call_every(self.check_interval, self.check)

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def check(self) -> SessionPhase:
        """Evaluate the idle time and fire at most one transition."""
        state = self.state
        if state.is_expired:
            return SessionPhase.EXPIRED

        idle = self._clock.now() - state.last_activity_at
        if idle >= self.session_timeout:
            state.is_expired = True
            self.stop()
            logger.info("Session expired after %.0fs idle", idle)
            if self.on_timeout is not None:
                self.on_timeout(REASON_INACTIVITY)
        elif idle >= self.session_timeout - self.warning_window and not state.warning_issued:
            state.warning_issued = True
            remaining = self.session_timeout - idle
            logger.info("Session warning: %.0fs remaining", remaining)
            if self.on_warning is not None:
                self.on_warning(remaining)
        return self.phase

    def record_activity(self, timestamp: float | None = None) -> bool:
        """Stamp activity. Returns False once the session has expired."""
        state = self.state
        if state.is_expired:
            return False
        ts = self._clock.now() if timestamp is None else timestamp
        if ts - state.last_activity_at >= self.session_timeout:
            # The deadline passed while no poll ran; expire instead of reviving.
            self.check()
            if state.is_expired:
                return False
        state.last_activity_at = max(state.last_activity_at, ts)
        if state.warning_issued:
            logger.debug("Activity during warning window, back to active")
            state.warning_issued = False
        return True

    def extend(self, timestamp: float | None = None) -> bool:
        return self.record_activity(timestamp)

    def set_visible(self, visible: bool) -> None:
        self.state.is_tab_visible = visible
        if visible:
            # Timers may have been throttled while hidden.
            self.check()

    def expire(self) -> None:
        """Enter Expired without emitting a timeout (logout paths)."""
        self.state.is_expired = True
        self.stop()

    def reset(self, timestamp: float | None = None) -> None:
        """Start a fresh session after re-authentication."""
        self.stop()
        ts = self._clock.now() if timestamp is None else timestamp
        self.state = SessionState(last_activity_at=ts, is_tab_visible=self.state.is_tab_visible)

    def status(self) -> SessionStatus:
        since = self._clock.now() - self.state.last_activity_at
        return SessionStatus(
            phase=self.phase,
            last_activity_at=self.state.last_activity_at,
            time_since_activity=since,
            time_until_timeout=self.session_timeout - since,
            is_tab_visible=self.state.is_tab_visible,
        )
