"""Tests for the SessionClock state machine."""

import pytest
from hypothesis import given, settings, strategies as st

from civic_session.ports import ManualClock
from civic_session.session_clock import REASON_INACTIVITY, SessionClock, SessionPhase

TIMEOUT = 600
WINDOW = 120


def _make(clock=None, **kwargs):
    clock = clock or ManualClock()
    warnings, timeouts = [], []
    sc = SessionClock(
        clock,
        session_timeout=TIMEOUT,
        warning_window=WINDOW,
        check_interval=60,
        on_warning=warnings.append,
        on_timeout=timeouts.append,
        **kwargs,
    )
    return clock, sc, warnings, timeouts


def test_starts_active():
    _, sc, _, _ = _make()
    assert sc.phase is SessionPhase.ACTIVE
    assert not sc.state.warning_issued
    assert not sc.state.is_expired


def test_rejects_window_not_shorter_than_timeout():
    with pytest.raises(ValueError):
        SessionClock(ManualClock(), session_timeout=60, warning_window=60)


def test_no_warning_before_window():
    clock, sc, warnings, _ = _make()
    clock.advance(479)
    assert sc.check() is SessionPhase.ACTIVE
    assert warnings == []


def test_warning_once_per_idle_episode():
    clock, sc, warnings, _ = _make()
    sc.start()

    clock.advance(480)
    assert sc.phase is SessionPhase.WARNING
    assert warnings == [120]

    clock.advance(60)
    sc.check()
    assert len(warnings) == 1


def test_activity_clears_warning():
    clock, sc, warnings, _ = _make()
    sc.start()
    clock.advance(480)
    assert sc.phase is SessionPhase.WARNING

    clock.advance(30)
    assert sc.record_activity()
    assert sc.phase is SessionPhase.ACTIVE
    assert not sc.state.warning_issued

    # a new idle episode warns again (next poll after the window opens)
    clock.advance(540)
    assert len(warnings) == 2


def test_expires_once_and_stops_polling():
    clock, sc, warnings, timeouts = _make()
    sc.start()

    clock.advance(600)
    assert sc.phase is SessionPhase.EXPIRED
    assert timeouts == [REASON_INACTIVITY]
    assert not sc.running

    clock.advance(3600)
    sc.check()
    assert timeouts == [REASON_INACTIVITY]


def test_expired_is_terminal_for_activity():
    clock, sc, _, _ = _make()
    clock.advance(600)
    sc.check()
    assert not sc.record_activity()
    assert sc.phase is SessionPhase.EXPIRED


def test_late_activity_after_missed_deadline_expires():
    """Throttled timers missed the deadline; the late interaction must not revive it."""
    clock, sc, _, timeouts = _make()
    clock.advance(700)  # no polling happened
    assert not sc.record_activity()
    assert timeouts == [REASON_INACTIVITY]


def test_last_activity_is_monotonic():
    clock, sc, _, _ = _make(ManualClock(start=1000))
    sc.record_activity(1100)
    sc.record_activity(1050)
    assert sc.state.last_activity_at == 1100


def test_becoming_visible_forces_immediate_check():
    clock, sc, _, timeouts = _make()
    sc.set_visible(False)
    clock.advance(650)  # hidden tab: no timers fired
    assert timeouts == []

    sc.set_visible(True)
    assert timeouts == [REASON_INACTIVITY]
    assert sc.state.is_tab_visible


def test_expire_is_silent_and_reset_restores_active():
    clock, sc, _, timeouts = _make()
    sc.start()
    sc.expire()
    assert sc.phase is SessionPhase.EXPIRED
    assert timeouts == []
    assert not sc.running

    clock.advance(10)
    sc.reset()
    assert sc.phase is SessionPhase.ACTIVE
    assert sc.state.last_activity_at == clock.now()


def test_status_snapshot():
    clock, sc, _, _ = _make(ManualClock(start=0))
    clock.advance(500)
    sc.check()
    status = sc.status()
    assert status.is_warning
    assert status.time_since_activity == 500
    assert status.time_until_timeout == 100
    assert not status.is_expired


@settings(max_examples=200, deadline=None)
@given(gaps=st.lists(st.floats(min_value=0, max_value=TIMEOUT - 1), min_size=1, max_size=40))
def test_never_expires_while_gaps_stay_under_timeout(gaps):
    clock, sc, _, timeouts = _make()
    sc.start()
    for gap in gaps:
        clock.advance(gap)
        assert sc.record_activity()
    clock.advance(TIMEOUT - 1)
    sc.check()
    assert timeouts == []
    assert sc.phase is not SessionPhase.EXPIRED


@settings(max_examples=100, deadline=None)
@given(
    idle=st.floats(min_value=TIMEOUT, max_value=TIMEOUT * 20),
    checks=st.integers(min_value=1, max_value=10),
)
def test_exactly_one_timeout_per_idle_episode(idle, checks):
    clock, sc, warnings, timeouts = _make()
    sc.start()
    clock.advance(idle)
    for _ in range(checks):
        sc.check()
        sc.set_visible(True)
    assert timeouts == [REASON_INACTIVITY]
    assert len(warnings) <= 1
