"""Tests for NavigationGuard, the block list and the logged-out flag."""

import pytest

from civic_session.config import DEFAULT_PROTECTED_PATHS
from civic_session.navigation import LOGGED_OUT_KEY, LoggedOutFlag, NavigationBlockList, NavigationGuard
from civic_session.ports import InMemoryStore, SimulatedHistory


@pytest.fixture
def block_list():
    return NavigationBlockList(DEFAULT_PROTECTED_PATHS, ["/login", "/register", "/"])


@pytest.fixture
def store():
    return InMemoryStore()


def _guard(history, block_list, store, has_token=True, sentinel_entries=10):
    guard = NavigationGuard(
        history,
        block_list,
        LoggedOutFlag(store),
        has_token=lambda: has_token,
        login_path="/login",
        sentinel_entries=sentinel_entries,
    )
    guard.install()
    return guard


# ── Block list ────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "path",
    [
        "/citizen-dashboard",
        "/admin-dashboard/complaints/42",
        "/field-staff-dashboard",
        "/profile",
        "/reports-history?page=2",
        "/report-issue#map",
        "/settings",
    ],
)
def test_protected_paths(block_list, path):
    assert block_list.is_protected(path)


@pytest.mark.parametrize("path", ["/", "/login", "/register", "/public-feed", "/about", ""])
def test_unprotected_paths(block_list, path):
    assert not block_list.is_protected(path)


def test_block_list_is_read_only(block_list):
    with pytest.raises(AttributeError):
        block_list.prefixes.add("/x")


# ── Logged-out flag ───────────────────────────────────────────────────────


def test_logged_out_flag_round_trip(store):
    flag = LoggedOutFlag(store)
    assert not flag.is_set()
    flag.set()
    assert flag.is_set()
    assert store.get(LOGGED_OUT_KEY) == "true"
    flag.clear()
    assert not flag.is_set()


def test_logged_out_flag_ignores_other_values(store):
    store.set(LOGGED_OUT_KEY, "false")
    assert not LoggedOutFlag(store).is_set()


# ── Guard ─────────────────────────────────────────────────────────────────


def test_block_replaces_pushes_sentinels_and_hard_navigates(block_list, store):
    history = SimulatedHistory("/login")
    history.visit("/citizen-dashboard")
    guard = _guard(history, block_list, store, sentinel_entries=3)

    guard.block()

    # original login entry, replaced entry, 3 sentinels, hard-navigation entry
    assert history.entries == ["/login"] * 6
    assert history.loads == ["/login"]
    assert history.current_path() == "/login"
    assert guard.block_count == 1


def test_block_twice_converges(block_list, store):
    history = SimulatedHistory("/citizen-dashboard")
    guard = _guard(history, block_list, store)
    guard.block()
    guard.block()
    assert history.current_path() == "/login"
    assert "/citizen-dashboard" not in history.entries


def test_pop_onto_protected_path_when_logged_out_blocks(block_list, store):
    history = SimulatedHistory("/login")
    history.visit("/citizen-dashboard")
    history.visit("/login")
    guard = _guard(history, block_list, store)
    guard.set_logged_out()

    history.back()

    assert guard.block_count == 1
    assert history.current_path() == "/login"
    assert history.loads == ["/login"]


def test_pop_without_token_blocks_even_if_flag_clear(block_list, store):
    history = SimulatedHistory("/profile")
    history.visit("/login")
    guard = _guard(history, block_list, store, has_token=False)

    history.back()
    assert guard.block_count == 1


def test_pop_while_logged_in_is_allowed(block_list, store):
    history = SimulatedHistory("/profile")
    history.visit("/settings")
    guard = _guard(history, block_list, store, has_token=True)

    history.back()
    assert guard.block_count == 0
    assert history.current_path() == "/profile"


def test_pop_onto_public_path_is_allowed(block_list, store):
    history = SimulatedHistory("/")
    history.visit("/login")
    guard = _guard(history, block_list, store, has_token=False)
    guard.set_logged_out()

    history.back()
    assert guard.block_count == 0


def test_clear_logged_out(block_list, store):
    guard = _guard(SimulatedHistory("/"), block_list, store)
    guard.set_logged_out()
    guard.clear_logged_out()
    assert not guard.should_block("/profile")


def test_uninstall_detaches_pop_listener(block_list, store):
    history = SimulatedHistory("/profile")
    history.visit("/login")
    guard = _guard(history, block_list, store, has_token=False)
    guard.uninstall()

    history.back()
    assert guard.block_count == 0


def test_back_gesture_never_reaches_protected_page_after_logout(block_list, store):
    history = SimulatedHistory("/login")
    history.visit("/citizen-dashboard")
    history.visit("/reports-history")
    history.visit("/citizen-dashboard")
    guard = _guard(history, block_list, store)
    guard.set_logged_out()
    guard.block()

    seen = []
    for _ in range(30):
        seen.append(history.back())

    assert "/citizen-dashboard" not in seen
    assert "/reports-history" not in seen
