"""User activity tracking."""

from __future__ import annotations

import logging
from typing import Callable

from .ports.browser import ActivitySource
from .ports.clock import Clock

logger = logging.getLogger(__name__)

ACTIVITY_SIGNALS = ("pointerdown", "pointermove", "keypress", "scroll", "touchstart", "click")


class ActivityTracker:
    """Stamps ``last_activity_at`` on every interaction signal.

    No debouncing: consumers only ask whether anything happened since their
    last check, so each signal simply overwrites the timestamp.
    """

    def __init__(
        self,
        source: ActivitySource,
        clock: Clock,
        on_activity: Callable[[float], None] | None = None,
        signals: tuple[str, ...] = ACTIVITY_SIGNALS,
    ) -> None:
        self._source = source
        self._clock = clock
        self.on_activity = on_activity
        self._signals = signals
        self._removers: list[Callable[[], None]] = []
        self.last_activity_at = clock.now()

    @property
    def started(self) -> bool:
        return bool(self._removers)

    def start(self) -> None:
        if self._removers:
            return
        for signal in self._signals:
            self._removers.append(self._source.add_listener(signal, self._handle, capture=True))

    def stop(self) -> None:
        for remove in self._removers:
            remove()
        self._removers.clear()

    def _handle(self, signal: str) -> None:
        try:
            self.last_activity_at = max(self.last_activity_at, self._clock.now())
            if self.on_activity is not None:
                self.on_activity(self.last_activity_at)
        except Exception:
            logger.exception("Activity handler failed for %s", signal)
