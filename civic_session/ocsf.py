"""OCSF (Open Cybersecurity Schema Framework) event logging.

Session lifecycle changes are emitted as structured security events on the
``ocsf`` logger as JSON. Consumers attach their own handlers (JSON file,
log shipper, structlog, etc.).

Usage::

    from . import ocsf
    ocsf.logoff_event(reason="inactivity", user_email="user@example.com")
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

logger = logging.getLogger("ocsf")

# ── OCSF Constants ─────────────────────────────────────────────────────────


class EventClass:
    AUTHENTICATION = 3001


class AuthActivity:
    LOGOFF = 2
    SERVICE_TICKET = 4  # Token refresh


class Status:
    SUCCESS = 1
    FAILURE = 2


class Severity:
    INFORMATIONAL = 1
    LOW = 2
    MEDIUM = 3


_ACTIVITY_NAMES = {
    AuthActivity.LOGOFF: "Logoff",
    AuthActivity.SERVICE_TICKET: "Service Ticket",
}

_SEVERITY_NAMES = {
    Severity.INFORMATIONAL: "Informational",
    Severity.LOW: "Low",
    Severity.MEDIUM: "Medium",
}

_PRODUCT = {
    "name": "civic-session",
    "version": "0.1.0",
    "vendor_name": "Civic Portal",
}


# ── Core emit ──────────────────────────────────────────────────────────────


def emit(event: dict[str, Any]) -> None:
    """Log an OCSF event as JSON. Never raises."""
    try:
        logger.info(json.dumps(event, default=str))
    except Exception:
        pass


# ── Event builders ─────────────────────────────────────────────────────────


def session_event(
    activity_id: int,
    *,
    success: bool,
    severity_id: int = Severity.INFORMATIONAL,
    user_email: str | None = None,
    message: str = "",
    session: dict[str, Any] | None = None,
) -> None:
    """Emit a session lifecycle change as an OCSF Authentication (3001) event.

    ``session`` lands under ``metadata.session``. The actor is only present
    when the token carried an email claim.
    """
    status_id = Status.SUCCESS if success else Status.FAILURE
    event: dict[str, Any] = {
        "class_uid": EventClass.AUTHENTICATION,
        "class_name": "Authentication",
        "activity_id": activity_id,
        "activity_name": _ACTIVITY_NAMES.get(activity_id, "Other"),
        "severity_id": severity_id,
        "severity": _SEVERITY_NAMES.get(severity_id, "Unknown"),
        "status_id": status_id,
        "status": "Success" if success else "Failure",
        "time": int(time.time() * 1000),
        "metadata": {"product": _PRODUCT, **({"session": session} if session else {})},
        "message": message,
    }
    if user_email:
        event["actor"] = {"user": {"email_addr": user_email, "type_id": 1, "type": "User"}}
    emit(event)


def refresh_event(*, success: bool, user_email: str | None = None, message: str = "") -> None:
    session_event(
        AuthActivity.SERVICE_TICKET,
        success=success,
        severity_id=Severity.INFORMATIONAL if success else Severity.MEDIUM,
        user_email=user_email,
        message=message or ("Token refresh succeeded" if success else "Token refresh failed"),
    )


def logoff_event(*, reason: str, user_email: str | None = None, timeout: bool = False) -> None:
    """Logoff for any reason. Inactivity timeouts are raised to Low severity."""
    session_event(
        AuthActivity.LOGOFF,
        success=True,
        severity_id=Severity.LOW if timeout else Severity.INFORMATIONAL,
        user_email=user_email,
        message=f"Session ended: {reason}",
        session={"reason": reason, "timeout": timeout},
    )
