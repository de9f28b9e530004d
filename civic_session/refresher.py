"""Background token renewal."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol

from .errors import RefreshFailedError, RefreshRejectedError
from .ports.clock import Clock, TimerHandle

logger = logging.getLogger(__name__)


class RefreshClient(Protocol):
    async def refresh(self) -> str: ...


@dataclass
class RefreshState:
    in_flight: bool = False


class TokenRefresher:
    """Renews the credential every ``refresh_interval`` seconds.

    At most one refresh call is outstanding per tab: ticks that land while
    one is in flight (or while the tab is hidden) do nothing. ``stop()``
    does not abort an in-flight call; its result is discarded instead.
    """

    def __init__(
        self,
        client: RefreshClient,
        clock: Clock,
        *,
        refresh_interval: float = 300,
        is_visible: Callable[[], bool] = lambda: True,
        on_success: Callable[[str], None] | None = None,
        on_rejected: Callable[[RefreshRejectedError], None] | None = None,
    ) -> None:
        self._client = client
        self._clock = clock
        self.refresh_interval = refresh_interval
        self._is_visible = is_visible
        self.on_success = on_success
        self.on_rejected = on_rejected
        self.state = RefreshState()
        self._timer: TimerHandle | None = None
        self._task: asyncio.Task | None = None
        self._generation = 0

    @property
    def running(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        if self._timer is not None:
            return
        self._timer = self._clock.call_every(self.refresh_interval, self._tick)

    def stop(self) -> None:
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _tick(self) -> None:
        if not self._is_visible():
            logger.debug("Skipping refresh: tab hidden")
            return
        if self.state.in_flight or (self._task is not None and not self._task.done()):
            logger.debug("Skipping refresh: previous call still in flight")
            return
        self._task = asyncio.get_running_loop().create_task(self.refresh())

    async def refresh(self) -> bool:
        """Run one refresh. Returns True when a new token was applied."""
        if self.state.in_flight:
            return False
        generation = self._generation
        self.state.in_flight = True
        try:
            return await self._run(generation)
        finally:
            self.state.in_flight = False

    async def _run(self, generation: int) -> bool:
        try:
            token = await self._client.refresh()
        except RefreshRejectedError as e:
            if generation != self._generation:
                return False
            logger.warning("Token refresh rejected: %s", e)
            if self.on_rejected is not None:
                self.on_rejected(e)
            return False
        except RefreshFailedError as e:
            logger.warning("Token refresh error, retrying next tick: %s", e)
            return False
        except Exception:
            logger.exception("Unexpected token refresh error, retrying next tick")
            return False

        if generation != self._generation:
            logger.debug("Discarding refresh result that resolved after stop")
            return False
        logger.info("Token refreshed successfully")
        if self.on_success is not None:
            self.on_success(token)
        return True

    async def wait(self) -> None:
        """Wait for the refresh started by the last tick, if any."""
        task: Awaitable | None = self._task
        if task is not None:
            await task
