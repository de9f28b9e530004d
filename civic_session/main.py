"""Session manager wiring for the civic issue-reporting portal client."""

from __future__ import annotations

from .activity import ActivityTracker
from .broadcast import CrossTabBroadcaster
from .client import AuthApiClient
from .config import Settings, get_settings
from .coordinator import SessionCoordinator
from .navigation import LoggedOutFlag, NavigationBlockList, NavigationGuard
from .ports.browser import ActivitySource, NavigationController, SimulatedDocument, SimulatedHistory
from .ports.clock import Clock, SystemClock
from .ports.storage import InMemoryStore, KeyValueBroadcast, KeyValueStore, SharedMemoryMedium
from .refresher import TokenRefresher
from .session_clock import SessionClock
from .tokens import TokenStore


def create_coordinator(
    *,
    settings: Settings | None = None,
    clock: Clock | None = None,
    document: ActivitySource | None = None,
    history: NavigationController | None = None,
    shared: KeyValueBroadcast | None = None,
    local: KeyValueStore | None = None,
    client: AuthApiClient | None = None,
) -> SessionCoordinator:
    """Build one tab's session coordinator.

    Args:
        settings: Configuration (default: ``get_settings()``).
        clock: Time source (default: ``SystemClock``).
        document: Interaction/visibility signals (default: ``SimulatedDocument``).
        history: History controller (default: ``SimulatedHistory``).
        shared: Medium shared with sibling tabs (default: a private
            ``SharedMemoryMedium`` view, i.e. no siblings).
        local: Tab-local store for the token and logged-out flag.
        client: Auth API client (default: built from ``settings``).
    """
    s = settings or get_settings()
    if clock is None:
        clock = SystemClock()
    if document is None:
        document = SimulatedDocument()
    if history is None:
        history = SimulatedHistory()
    if shared is None:
        shared = SharedMemoryMedium().attach()
    if local is None:
        local = InMemoryStore()
    if client is None:
        client = AuthApiClient(
            s.api_base_url,
            timeout=s.request_timeout,
            rejection_statuses=s.rejection_statuses,
        )

    tokens = TokenStore(local)
    tracker = ActivityTracker(document, clock)
    session_clock = SessionClock(
        clock,
        session_timeout=s.session_timeout,
        warning_window=s.warning_window,
        check_interval=s.check_interval,
    )
    refresher = TokenRefresher(
        client,
        clock,
        refresh_interval=s.refresh_interval,
        is_visible=lambda: session_clock.state.is_tab_visible,
    )
    guard = NavigationGuard(
        history,
        NavigationBlockList(s.protected_paths, s.public_paths),
        LoggedOutFlag(local),
        has_token=lambda: tokens.has_token(clock.now()),
        login_path=s.login_path,
        sentinel_entries=s.sentinel_entries,
    )

    return SessionCoordinator(
        clock=clock,
        activity_source=document,
        tracker=tracker,
        session_clock=session_clock,
        refresher=refresher,
        broadcaster=CrossTabBroadcaster(shared),
        guard=guard,
        tokens=tokens,
        client=client,
        monitor_start_delay=s.monitor_start_delay,
    )
