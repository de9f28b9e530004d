"""Session lifecycle composition root.

Wires activity tracking, the inactivity clock, background refresh,
cross-tab broadcast and the navigation guard, and fans their events out to
subscribers (warning banners, forced redirects).
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Protocol

from . import ocsf
from .activity import ActivityTracker
from .broadcast import BroadcastKind, BroadcastRecord, CrossTabBroadcaster, to_millis
from .errors import RefreshRejectedError, SessionError
from .navigation import NavigationGuard
from .ports.browser import ActivitySource
from .ports.clock import Clock, TimerHandle
from .refresher import TokenRefresher
from .session_clock import REASON_INACTIVITY, SessionClock, SessionStatus
from .tokens import TokenStore

logger = logging.getLogger(__name__)

REASON_REFRESH_REJECTED = "refresh rejected"
REASON_LOGGED_OUT = "logged out"
REASON_REMOTE_LOGOUT = "logged out in another tab"


class SessionEvent(str, Enum):
    ACTIVITY = "activity"
    WARNING = "warning"
    REFRESH = "refresh"
    EXTEND = "extend"
    TIMEOUT = "timeout"
    LOGOUT = "logout"


Subscriber = Callable[[SessionEvent, dict[str, Any]], None]


class LogoutClient(Protocol):
    async def logout(self) -> None: ...


class SessionCoordinator:
    def __init__(
        self,
        *,
        clock: Clock,
        activity_source: ActivitySource,
        tracker: ActivityTracker,
        session_clock: SessionClock,
        refresher: TokenRefresher,
        broadcaster: CrossTabBroadcaster,
        guard: NavigationGuard,
        tokens: TokenStore,
        client: LogoutClient | None = None,
        monitor_start_delay: float = 0,
    ) -> None:
        self._clock = clock
        self._activity_source = activity_source
        self.tracker = tracker
        self.session_clock = session_clock
        self.refresher = refresher
        self.broadcaster = broadcaster
        self.guard = guard
        self.tokens = tokens
        self._client = client
        self.monitor_start_delay = monitor_start_delay

        self._subscribers: list[Subscriber] = []
        self._detach: list[Callable[[], None]] = []
        self._start_timer: TimerHandle | None = None
        self.logged_out = False

        tracker.on_activity = self._on_activity
        session_clock.on_warning = self._on_warning
        session_clock.on_timeout = self._on_timeout
        refresher.on_success = self._on_refresh_success
        refresher.on_rejected = self._on_refresh_rejected

    # ── Subscribers ────────────────────────────────────────────────────────

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def notify(self, event: SessionEvent, data: dict[str, Any]) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event, data)
            except Exception:
                logger.exception("Session subscriber failed on %s", event.value)

    # ── Lifecycle ──────────────────────────────────────────────────────────

    def start(self) -> None:
        """Attach listeners, then start timers after ``monitor_start_delay``."""
        if not self._detach:
            self.tracker.start()
            self.guard.install()
            self._detach = [
                self.tracker.stop,
                self.guard.uninstall,
                self._activity_source.add_visibility_listener(self._on_visibility),
                self.broadcaster.subscribe(self._on_broadcast),
            ]
        if self.logged_out:
            return
        if self.monitor_start_delay > 0:
            if self._start_timer is None:
                self._start_timer = self._clock.call_later(self.monitor_start_delay, self._start_timers)
        else:
            self._start_timers()

    def _start_timers(self) -> None:
        self._start_timer = None
        if self.logged_out:
            return
        self.session_clock.start()
        self.refresher.start()

    def _stop_timers(self) -> None:
        if self._start_timer is not None:
            self._start_timer.cancel()
            self._start_timer = None
        self.session_clock.stop()
        self.refresher.stop()

    def close(self) -> None:
        """Stop timers and detach every listener."""
        self._stop_timers()
        for detach in self._detach:
            detach()
        self._detach = []

    def restart(self, token: str | None = None) -> None:
        """Begin a new session after a fresh login."""
        if token is not None:
            self.tokens.set(token)
        now = self._clock.now()
        self.guard.clear_logged_out()
        self.broadcaster.reset(since=to_millis(now))
        self.session_clock.reset(now)
        self.logged_out = False
        logger.info("Session restarted")
        self.start()

    def status(self) -> SessionStatus:
        return self.session_clock.status()

    # ── Imperative actions ─────────────────────────────────────────────────

    def extend_session(self) -> None:
        now = self._clock.now()
        if not self.session_clock.extend(now):
            logger.debug("extend_session ignored: session already expired")
            return
        last = self.session_clock.state.last_activity_at
        self.notify(SessionEvent.EXTEND, {"last_activity": last})

    def logout(self, reason: str = REASON_LOGGED_OUT) -> None:
        """End the session locally and tell every sibling tab. Idempotent."""
        if self.logged_out:
            return
        email = self.tokens.email()
        self._end_session()
        self.tokens.clear()
        try:
            self.broadcaster.clear_refresh()
            self.broadcaster.publish(BroadcastRecord.logout(to_millis(self._clock.now())))
        except Exception:
            logger.exception("Failed to publish logout broadcast")
        self._finish_logout(reason, email)

    async def sign_out(self) -> None:
        """User-initiated logout: best-effort server call, then local logout."""
        if self._client is not None:
            try:
                await self._client.logout()
            except SessionError as e:
                logger.error("Logout error: %s", e)
        self.logout(REASON_LOGGED_OUT)

    # ── Internal transitions ───────────────────────────────────────────────

    def _end_session(self) -> None:
        self.logged_out = True
        self._stop_timers()
        self.session_clock.expire()

    def _finish_logout(self, reason: str, email: str | None) -> None:
        self.guard.set_logged_out()
        self.guard.block()
        ocsf.logoff_event(reason=reason, user_email=email, timeout=reason == REASON_INACTIVITY)
        logger.info("Logged out: %s", reason)
        self.notify(SessionEvent.LOGOUT, {"reason": reason})

    def _on_activity(self, timestamp: float) -> None:
        if self.logged_out:
            return
        if self.session_clock.record_activity(timestamp):
            self.notify(SessionEvent.ACTIVITY, {"last_activity": self.session_clock.state.last_activity_at})

    def _on_visibility(self, visible: bool) -> None:
        if self.logged_out:
            self.session_clock.state.is_tab_visible = visible
            return
        self.session_clock.set_visible(visible)

    def _on_warning(self, time_remaining: float) -> None:
        self.notify(SessionEvent.WARNING, {"time_remaining": time_remaining})

    def _on_timeout(self, reason: str) -> None:
        self.notify(SessionEvent.TIMEOUT, {"reason": reason})
        self.logout(reason)

    def _on_refresh_success(self, token: str) -> None:
        if self.logged_out:
            return
        now = self._clock.now()
        if not self.session_clock.record_activity(now) or self.logged_out:
            logger.info("Discarding refresh result: session already expired")
            return
        self.tokens.set(token)
        try:
            self.broadcaster.publish(BroadcastRecord.refresh(to_millis(now), token))
        except Exception:
            logger.exception("Failed to publish refresh broadcast")
        ocsf.refresh_event(success=True, user_email=self.tokens.email())
        self.notify(SessionEvent.REFRESH, {"token": token})

    def _on_refresh_rejected(self, error: RefreshRejectedError) -> None:
        ocsf.refresh_event(
            success=False,
            user_email=self.tokens.email(),
            message=f"Token refresh rejected: HTTP {error.status_code}",
        )
        self.logout(REASON_REFRESH_REJECTED)

    def _on_broadcast(self, record: BroadcastRecord) -> None:
        if self.logged_out:
            return
        if record.kind is BroadcastKind.LOGOUT:
            email = self.tokens.email()
            self._end_session()
            self.tokens.clear()
            self._finish_logout(REASON_REMOTE_LOGOUT, email)
        elif record.kind is BroadcastKind.REFRESH:
            stamped = self.session_clock.record_activity(min(record.timestamp / 1000, self._clock.now()))
            if not stamped or self.logged_out:
                logger.info("Ignoring sibling refresh: session already expired")
                return
            if record.token:
                self.tokens.set(record.token)
            self.notify(SessionEvent.REFRESH, {"token": record.token})
