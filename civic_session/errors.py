"""Exceptions raised by the session manager."""


class SessionError(Exception):
    """Base class for session lifecycle errors."""


class RefreshRejectedError(SessionError):
    """The backend refused to renew the credential. Fatal for the session."""

    def __init__(self, status_code: int, message: str = "") -> None:
        self.status_code = status_code
        super().__init__(message or f"Refresh rejected with HTTP {status_code}")


class RefreshFailedError(SessionError):
    """Transient refresh failure; the next scheduled tick retries."""


class LogoutFailedError(SessionError):
    """Server-side logout did not succeed. Local logout proceeds anyway."""
