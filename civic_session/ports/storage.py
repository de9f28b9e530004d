"""Key-value storage: tab-local stores and a shared broadcast medium."""

from __future__ import annotations

import logging
from typing import Callable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

ChangeHandler = Callable[[str, str | None], None]


@runtime_checkable
class KeyValueStore(Protocol):
    """Protocol for a store private to one tab."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


@runtime_checkable
class KeyValueBroadcast(Protocol):
    """Protocol for a store shared by all same-origin tabs.

    Writes are announced to the other tabs' subscribers; the writer itself
    is never notified of its own change.
    """

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def subscribe(self, handler: ChangeHandler) -> Callable[[], None]:
        """Register ``handler(key, new_value)``. Returns an unsubscribe callable."""
        ...


class InMemoryStore:
    """Dict-backed tab-local store."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class SharedMemoryMedium:
    """In-process stand-in for ``localStorage`` shared between tabs.

    Each tab calls ``attach()`` to get its own view. Notifications are
    delivered synchronously, in the same event-loop turn as the write.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._views: list[SharedView] = []

    def attach(self) -> SharedView:
        view = SharedView(self)
        self._views.append(view)
        return view

    def detach(self, view: SharedView) -> None:
        if view in self._views:
            self._views.remove(view)

    def _write(self, origin: SharedView, key: str, value: str | None) -> None:
        if value is None:
            if key not in self._data:
                return
            del self._data[key]
        else:
            self._data[key] = value
        for view in list(self._views):
            if view is not origin:
                view._deliver(key, value)


class SharedView:
    """One tab's view of a ``SharedMemoryMedium``."""

    def __init__(self, medium: SharedMemoryMedium) -> None:
        self._medium = medium
        self._handlers: list[ChangeHandler] = []

    def get(self, key: str) -> str | None:
        return self._medium._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._medium._write(self, key, value)

    def remove(self, key: str) -> None:
        self._medium._write(self, key, None)

    def subscribe(self, handler: ChangeHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def close(self) -> None:
        self._handlers.clear()
        self._medium.detach(self)

    def _deliver(self, key: str, value: str | None) -> None:
        for handler in list(self._handlers):
            try:
                handler(key, value)
            except Exception:
                logger.exception("Storage change handler failed for key %s", key)
