"""Portal auth API: background token refresh and server-side logout."""

from __future__ import annotations

from typing import Any, Iterable

import httpx

from .config import get_settings
from .errors import LogoutFailedError, RefreshFailedError, RefreshRejectedError


class AuthApiClient:
    """Calls ``POST /auth/refresh`` and ``POST /auth/logout``.

    A persistent cookie jar plays the role of ``credentials: 'include'``:
    session cookies set by the backend are sent on every call.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        rejection_statuses: Iterable[int] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        s = get_settings()
        self.base_url = (base_url or s.api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else s.request_timeout
        self.rejection_statuses = frozenset(
            rejection_statuses if rejection_statuses is not None else s.rejection_statuses
        )
        self.cookies = httpx.Cookies()
        self._transport = transport

    async def _post(self, path: str) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            cookies=self.cookies,
            transport=self._transport,
        ) as client:
            resp = await client.post(path, headers={"Content-Type": "application/json"})
            self.cookies.update(client.cookies)
        return resp

    async def refresh(self) -> str:
        """Renew the credential and return the new token."""
        try:
            resp = await self._post("/auth/refresh")
        except httpx.HTTPError as e:
            raise RefreshFailedError(f"Refresh request failed: {e}") from e

        if resp.status_code in self.rejection_statuses:
            raise RefreshRejectedError(resp.status_code)
        if not resp.is_success:
            raise RefreshFailedError(f"Refresh failed with HTTP {resp.status_code}")

        try:
            data: Any = resp.json()
        except ValueError as e:
            raise RefreshFailedError("Refresh response is not JSON") from e

        if not isinstance(data, dict) or not data.get("success"):
            raise RefreshFailedError("Refresh unsuccessful")
        token = data.get("token")
        if not isinstance(token, str) or not token:
            raise RefreshFailedError("Refresh response missing token")
        return token

    async def logout(self) -> None:
        """Best-effort server-side session invalidation."""
        try:
            resp = await self._post("/auth/logout")
        except httpx.HTTPError as e:
            raise LogoutFailedError(f"Logout request failed: {e}") from e
        if not resp.is_success:
            raise LogoutFailedError(f"Logout failed with HTTP {resp.status_code}")
