"""Browser capabilities: interaction signals, visibility and history."""

from __future__ import annotations

import logging
from typing import Callable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


def _remover(registry: list, item) -> Callable[[], None]:
    def remove() -> None:
        if item in registry:
            registry.remove(item)

    return remove


@runtime_checkable
class ActivitySource(Protocol):
    """Protocol for user interaction and tab visibility signals."""

    def add_listener(
        self, signal: str, callback: Callable[[str], None], capture: bool = True
    ) -> Callable[[], None]:
        """Call ``callback(signal)`` whenever ``signal`` fires. Returns a remover."""
        ...

    def add_visibility_listener(self, callback: Callable[[bool], None]) -> Callable[[], None]:
        """Call ``callback(visible)`` whenever tab visibility changes."""
        ...


@runtime_checkable
class NavigationController(Protocol):
    """Protocol for the history stack and document location."""

    def current_path(self) -> str: ...

    def replace(self, path: str) -> None:
        """Replace the current history entry."""
        ...

    def push(self, path: str) -> None:
        """Push a new history entry without loading a document."""
        ...

    def hard_navigate(self, path: str) -> None:
        """Load ``path`` as a full document, discarding in-memory page state."""
        ...

    def add_pop_listener(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """Call ``callback(path)`` after each back/forward traversal."""
        ...


class SimulatedDocument:
    """In-memory ``ActivitySource`` driven by ``dispatch()`` and ``set_visible()``."""

    def __init__(self, visible: bool = True) -> None:
        self.visible = visible
        self._listeners: list[tuple[str, Callable[[str], None], bool]] = []
        self._visibility: list[Callable[[bool], None]] = []

    def add_listener(
        self, signal: str, callback: Callable[[str], None], capture: bool = True
    ) -> Callable[[], None]:
        entry = (signal, callback, capture)
        self._listeners.append(entry)
        return _remover(self._listeners, entry)

    def add_visibility_listener(self, callback: Callable[[bool], None]) -> Callable[[], None]:
        self._visibility.append(callback)
        return _remover(self._visibility, callback)

    def listener_count(self, signal: str | None = None) -> int:
        return sum(1 for s, _, _ in self._listeners if signal is None or s == signal)

    def dispatch(self, signal: str) -> None:
        # Capture-phase listeners run before bubbling ones.
        ordered = sorted(self._listeners, key=lambda entry: not entry[2])
        for s, callback, _ in ordered:
            if s == signal:
                callback(signal)

    def set_visible(self, visible: bool) -> None:
        if visible == self.visible:
            return
        self.visible = visible
        for callback in list(self._visibility):
            callback(visible)


class SimulatedHistory:
    """In-memory ``NavigationController`` modelling a browser history stack."""

    def __init__(self, initial_path: str = "/") -> None:
        self.entries: list[str] = [initial_path]
        self.index = 0
        self.loads: list[str] = []
        self._pop_listeners: list[Callable[[str], None]] = []

    def current_path(self) -> str:
        return self.entries[self.index]

    def replace(self, path: str) -> None:
        self.entries[self.index] = path

    def push(self, path: str) -> None:
        del self.entries[self.index + 1 :]
        self.entries.append(path)
        self.index += 1

    def hard_navigate(self, path: str) -> None:
        self.push(path)
        self.loads.append(path)

    def visit(self, path: str) -> None:
        """In-app route change, as the router does on a link click."""
        self.push(path)

    def add_pop_listener(self, callback: Callable[[str], None]) -> Callable[[], None]:
        self._pop_listeners.append(callback)
        return _remover(self._pop_listeners, callback)

    def back(self) -> str:
        if self.index > 0:
            self.index -= 1
            self._pop()
        return self.current_path()

    def forward(self) -> str:
        if self.index < len(self.entries) - 1:
            self.index += 1
            self._pop()
        return self.current_path()

    def _pop(self) -> None:
        path = self.current_path()
        for callback in list(self._pop_listeners):
            try:
                callback(path)
            except Exception:
                logger.exception("popstate listener failed for %s", path)
