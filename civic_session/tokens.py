"""Tab-local holder for the current auth token."""

from __future__ import annotations

from typing import Any

import jwt

from .ports.storage import KeyValueStore

TOKEN_KEY = "token"


class TokenStore:
    """Reads and writes the auth token under the ``token`` key.

    Tokens are opaque to the session manager; when one happens to be a JWT
    its claims are read without verification (the server owns that).
    """

    def __init__(self, store: KeyValueStore, key: str = TOKEN_KEY) -> None:
        self._store = store
        self._key = key

    def get(self) -> str | None:
        return self._store.get(self._key) or None

    def set(self, token: str) -> None:
        self._store.set(self._key, token)

    def clear(self) -> None:
        self._store.remove(self._key)

    def claims(self) -> dict[str, Any]:
        token = self.get()
        if not token:
            return {}
        try:
            return jwt.decode(token, options={"verify_signature": False})
        except jwt.PyJWTError:
            return {}

    def is_expired(self, now: float) -> bool:
        """True only for a JWT whose ``exp`` claim is in the past."""
        exp = self.claims().get("exp")
        if not isinstance(exp, (int, float)):
            return False
        return now >= exp

    def has_token(self, now: float | None = None) -> bool:
        if not self.get():
            return False
        return now is None or not self.is_expired(now)

    def email(self) -> str | None:
        return self.claims().get("email")
