"""Session manager configuration via environment variables."""

from pydantic import model_validator
from pydantic_settings import BaseSettings

DEFAULT_PROTECTED_PATHS = [
    "/citizen-dashboard",
    "/admin-dashboard",
    "/field-staff-dashboard",
    "/profile",
    "/reports-history",
    "/report-issue",
    "/settings",
]


class Settings(BaseSettings):
    api_base_url: str = "http://localhost:5000/api"
    session_timeout: float = 10 * 60
    warning_window: float = 2 * 60
    check_interval: float = 60
    refresh_interval: float = 5 * 60
    monitor_start_delay: float = 2  # 0 starts timers immediately
    request_timeout: float = 10
    rejection_statuses: list[int] = [401]
    login_path: str = "/login"
    public_paths: list[str] = ["/login", "/register", "/"]
    protected_paths: list[str] = DEFAULT_PROTECTED_PATHS
    sentinel_entries: int = 10

    @model_validator(mode="after")
    def _check_intervals(self) -> "Settings":
        for name in ("session_timeout", "check_interval", "refresh_interval", "request_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.monitor_start_delay < 0:
            raise ValueError("monitor_start_delay must not be negative")
        if not 0 <= self.warning_window < self.session_timeout:
            raise ValueError("warning_window must be shorter than session_timeout")
        if self.sentinel_entries < 0:
            raise ValueError("sentinel_entries must not be negative")
        return self

    model_config = {"env_prefix": "CIVIC_SESSION_", "case_sensitive": False}


settings: Settings | None = None


def get_settings() -> Settings:
    global settings
    if settings is None:
        settings = Settings()
    return settings


def override_settings(s: Settings) -> None:
    """For testing: inject a Settings instance."""
    global settings
    settings = s
