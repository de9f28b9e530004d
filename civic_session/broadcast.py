"""Cross-tab propagation of refresh and logout events."""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Callable

from pydantic import BaseModel, ValidationError

from .ports.storage import KeyValueBroadcast

logger = logging.getLogger(__name__)

REFRESH_KEY = "session_refresh"
LOGOUT_KEY = "session_logout"


class BroadcastKind(str, Enum):
    REFRESH = "refresh"
    LOGOUT = "logout"


_KEYS = {BroadcastKind.REFRESH: REFRESH_KEY, BroadcastKind.LOGOUT: LOGOUT_KEY}
_KINDS = {key: kind for kind, key in _KEYS.items()}


class BroadcastRecord(BaseModel):
    kind: BroadcastKind
    timestamp: int  # milliseconds since the epoch, as written by Date.now()
    token: str | None = None

    @classmethod
    def refresh(cls, timestamp: int, token: str | None) -> "BroadcastRecord":
        return cls(kind=BroadcastKind.REFRESH, timestamp=timestamp, token=token)

    @classmethod
    def logout(cls, timestamp: int) -> "BroadcastRecord":
        return cls(kind=BroadcastKind.LOGOUT, timestamp=timestamp)


def to_millis(seconds: float) -> int:
    return int(seconds * 1000)


def encode_record(record: BroadcastRecord) -> str:
    payload: dict = {"timestamp": record.timestamp}
    if record.kind is BroadcastKind.REFRESH:
        payload["token"] = record.token
    return json.dumps(payload)


def decode_record(key: str, raw: str) -> BroadcastRecord:
    """Parse a stored payload. Raises ``ValueError`` for anything malformed."""
    kind = _KINDS.get(key)
    if kind is None:
        raise ValueError(f"Not a broadcast key: {key}")
    payload = json.loads(raw)
    # Older tabs write the logout key as a bare Date.now() string.
    if kind is BroadcastKind.LOGOUT and isinstance(payload, (int, float)) and not isinstance(payload, bool):
        payload = {"timestamp": int(payload)}
    if not isinstance(payload, dict):
        raise ValueError(f"Expected an object under {key}")
    return BroadcastRecord(kind=kind, **{k: v for k, v in payload.items() if k != "kind"})


class CrossTabBroadcaster:
    """Publishes ``BroadcastRecord`` values to the shared medium and
    delivers other tabs' records to local handlers.

    Delivery order across tabs is not write order, so a record only reaches
    handlers when its embedded timestamp is newer than the last accepted
    record of the same kind.
    """

    def __init__(self, medium: KeyValueBroadcast) -> None:
        self._medium = medium
        self._last_seen: dict[BroadcastKind, int] = {}

    def publish(self, record: BroadcastRecord) -> None:
        self._medium.set(_KEYS[record.kind], encode_record(record))
        self._accept(record)

    def clear_refresh(self) -> None:
        self._medium.remove(REFRESH_KEY)

    def reset(self, since: int | None = None) -> None:
        """Forget accepted timestamps, e.g. after a fresh login.

        With ``since`` (ms), records of either kind stamped at or before
        that instant stay stale, so a sibling's pre-login logout that is
        delivered late cannot end the new session.
        """
        self._last_seen.clear()
        if since is not None:
            for kind in BroadcastKind:
                self._last_seen[kind] = since

    def subscribe(self, handler: Callable[[BroadcastRecord], None]) -> Callable[[], None]:
        def on_change(key: str, new_value: str | None) -> None:
            if key not in _KINDS or new_value is None:
                return
            try:
                record = decode_record(key, new_value)
            except (ValueError, ValidationError) as e:
                logger.warning("Dropping malformed broadcast record under %s: %s", key, e)
                return
            if not self._accept(record):
                logger.debug("Ignoring stale %s record at %d", record.kind.value, record.timestamp)
                return
            handler(record)

        return self._medium.subscribe(on_change)

    def _accept(self, record: BroadcastRecord) -> bool:
        last = self._last_seen.get(record.kind)
        if last is not None and record.timestamp <= last:
            return False
        self._last_seen[record.kind] = record.timestamp
        return True
