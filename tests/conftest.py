"""Shared fixtures for the session manager test suite."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any
from unittest.mock import AsyncMock

import jwt
import pytest

from civic_session.config import Settings, override_settings
from civic_session.coordinator import SessionCoordinator, SessionEvent
from civic_session.main import create_coordinator
from civic_session.ports import InMemoryStore, ManualClock, SharedMemoryMedium, SimulatedDocument, SimulatedHistory

START = 1_700_000_000.0


# ── Settings & Clock ──────────────────────────────────────────────────────

@pytest.fixture
def test_settings() -> Settings:
    s = Settings(
        api_base_url="http://testserver/api",
        monitor_start_delay=0,
    )
    override_settings(s)
    return s


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=START)


@pytest.fixture
def medium() -> SharedMemoryMedium:
    return SharedMemoryMedium()


# ── JWT Factory ───────────────────────────────────────────────────────────

@pytest.fixture
def make_jwt():
    """Factory for unsigned-looking JWTs (HS256 with a throwaway key)."""

    def _make(email: str = "citizen@example.com", exp: int | None = None) -> str:
        now = int(time.time())
        payload = {"sub": "user-123", "email": email, "iat": now, "exp": exp or (now + 3600)}
        return jwt.encode(payload, "test-signing-key-not-verified-here", algorithm="HS256")

    return _make


# ── Tabs ──────────────────────────────────────────────────────────────────

@dataclass
class Tab:
    coordinator: SessionCoordinator
    document: SimulatedDocument
    history: SimulatedHistory
    local: InMemoryStore
    client: AsyncMock
    events: list[tuple[SessionEvent, dict[str, Any]]] = field(default_factory=list)

    def names(self) -> list[str]:
        return [event.value for event, _ in self.events]

    def of(self, kind: SessionEvent) -> list[dict[str, Any]]:
        return [data for event, data in self.events if event is kind]


def make_client(token: str = "abc") -> AsyncMock:
    client = AsyncMock()
    client.refresh = AsyncMock(return_value=token)
    client.logout = AsyncMock(return_value=None)
    return client


@pytest.fixture
def make_tab(test_settings, clock, medium):
    """Factory: one browser tab attached to the shared medium."""

    def _make(path: str = "/citizen-dashboard", token: str | None = "initial-token", client=None) -> Tab:
        document = SimulatedDocument()
        history = SimulatedHistory("/login")
        history.visit(path)
        local = InMemoryStore()
        if token:
            local.set("token", token)
        client = client or make_client()
        coordinator = create_coordinator(
            settings=test_settings,
            clock=clock,
            document=document,
            history=history,
            shared=medium.attach(),
            local=local,
            client=client,
        )
        tab = Tab(coordinator, document, history, local, client)
        coordinator.subscribe(lambda event, data: tab.events.append((event, data)))
        return tab

    return _make


@pytest.fixture
def tab(make_tab) -> Tab:
    t = make_tab()
    t.coordinator.start()
    yield t
    t.coordinator.close()


@pytest.fixture
def idle_tab(make_tab) -> Tab:
    """A started tab whose background refresh never fires during a test."""
    t = make_tab()
    t.coordinator.refresher.refresh_interval = 7 * 24 * 3600
    t.coordinator.start()
    yield t
    t.coordinator.close()


async def settle(rounds: int = 5) -> None:
    """Let spawned refresh tasks run to completion."""
    for _ in range(rounds):
        await asyncio.sleep(0)
