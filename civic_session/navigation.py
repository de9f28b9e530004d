"""Post-logout navigation guarding."""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from .ports.browser import NavigationController
from .ports.storage import KeyValueStore

logger = logging.getLogger(__name__)

LOGGED_OUT_KEY = "user_logged_out"
_LOGGED_OUT_VALUE = "true"


def _normalize(path: str) -> str:
    for sep in ("?", "#"):
        path = path.split(sep, 1)[0]
    return path or "/"


class NavigationBlockList:
    """Read-only set of protected path prefixes."""

    def __init__(self, prefixes: Iterable[str], public_paths: Iterable[str] = ()) -> None:
        self.prefixes = frozenset(p for p in prefixes if p)
        self.public_paths = frozenset(public_paths)

    def is_protected(self, path: str) -> bool:
        path = _normalize(path)
        if path in self.public_paths:
            return False
        return any(path.startswith(prefix) for prefix in self.prefixes)


class LoggedOutFlag:
    """Tab-local marker that this tab has logged out."""

    def __init__(self, store: KeyValueStore, key: str = LOGGED_OUT_KEY) -> None:
        self._store = store
        self._key = key

    def is_set(self) -> bool:
        return self._store.get(self._key) == _LOGGED_OUT_VALUE

    def set(self) -> None:
        self._store.set(self._key, _LOGGED_OUT_VALUE)

    def clear(self) -> None:
        self._store.remove(self._key)


class NavigationGuard:
    """Keeps logged-out users from stepping back onto protected pages.

    The pop listener blocks when the landed-on path is protected and either
    the logged-out flag is set or no usable token is present, so it still
    works if one of the two signals is stale.
    """

    def __init__(
        self,
        controller: NavigationController,
        block_list: NavigationBlockList,
        flag: LoggedOutFlag,
        *,
        has_token: Callable[[], bool] = lambda: False,
        login_path: str = "/login",
        sentinel_entries: int = 10,
    ) -> None:
        self._controller = controller
        self.block_list = block_list
        self.flag = flag
        self._has_token = has_token
        self.login_path = login_path
        self.sentinel_entries = sentinel_entries
        self.block_count = 0
        self._remove_listener: Callable[[], None] | None = None

    def install(self) -> None:
        if self._remove_listener is None:
            self._remove_listener = self._controller.add_pop_listener(self._on_pop)

    def uninstall(self) -> None:
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None

    def is_protected(self, path: str) -> bool:
        return self.block_list.is_protected(path)

    def set_logged_out(self) -> None:
        self.flag.set()

    def clear_logged_out(self) -> None:
        self.flag.clear()

    def should_block(self, path: str) -> bool:
        if not self.is_protected(path):
            return False
        return self.flag.is_set() or not self._has_token()

    def block(self) -> None:
        """Pin the tab to the login page.

        Replaces the current entry, stacks sentinel login entries against
        shallow back presses, then loads the login page as a full document
        so no protected in-memory state survives. Repeated calls converge
        on the same end state.
        """
        self.block_count += 1
        logger.info("Blocking navigation from %s", self._controller.current_path())
        self._controller.replace(self.login_path)
        for _ in range(self.sentinel_entries):
            self._controller.push(self.login_path)
        self._controller.hard_navigate(self.login_path)

    def _on_pop(self, path: str) -> None:
        if self.should_block(path):
            self.block()
