"""Connection health: the reconnect state machine and the health check."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Awaitable, Callable

import httpx

from chat_relay.application.exceptions import TransportError
from chat_relay.client.views import ChatView, StatusLevel

logger = logging.getLogger(__name__)


class ConnectionStatus(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True, slots=True)
class ConnectionState:
    status: ConnectionStatus
    attempt: int = 0

    def __str__(self) -> str:
        if self.status == ConnectionStatus.CONNECTING:
            return f"Connecting({self.attempt})"
        return self.status.value.capitalize()


DISCONNECTED = ConnectionState(ConnectionStatus.DISCONNECTED)
CONNECTED = ConnectionState(ConnectionStatus.CONNECTED)


@dataclass(frozen=True, slots=True)
class ReconnectPolicy:
    """Bounded retries with a capped exponential delay.

    Attributes:
        max_attempts: Attempts per cycle before giving up.
        base_delay: Delay before the first reconnect attempt, in seconds.
        max_delay: Cap for any single delay.
        factor: Growth per attempt.
    """

    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 5.0
    factor: float = 2.0

    def delay(self, attempt: int) -> float:
        return min(self.base_delay * self.factor ** max(attempt - 1, 0), self.max_delay)


Connector = Callable[[], Awaitable[None]]


class ConnectionMonitor:
    """Tracks Disconnected / Connecting(n) / Connected and drives reconnects.

    A cycle runs attempts 1..max_attempts. An initial or manual cycle tries
    attempt 1 straight away; a cycle started by a dropped connection waits
    ``policy.delay(n)`` before every attempt. An exhausted cycle leaves the
    state Disconnected until ``reconnect()`` or ``network_online()``.
    """

    def __init__(
        self,
        view: ChatView,
        connect: Connector,
        policy: ReconnectPolicy | None = None,
    ) -> None:
        self._view = view
        self._connect = connect
        self._policy = policy or ReconnectPolicy()
        self._state = DISCONNECTED
        self._cycle: asyncio.Task[None] | None = None
        self._ever_connected = False
        self._online = True
        self.history: list[ConnectionState] = [DISCONNECTED]

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == CONNECTED

    async def start(self) -> bool:
        """Run an initial connection cycle and report whether it connected."""
        task = self._begin(delayed=False)
        await asyncio.shield(task)
        return self.is_connected

    def reconnect(self) -> asyncio.Task[None] | None:
        if self.is_connected:
            return None
        return self._begin(delayed=False)

    def connection_lost(self, reason: str) -> None:
        if self._state != CONNECTED:
            return
        logger.info("Disconnected: %s", reason)
        self._view.notify("Disconnected from server", is_error=True)
        if not self._online:
            self._transition(DISCONNECTED)
            return
        # Leave Connected right away so sends are gated before the cycle runs
        self._transition(ConnectionState(ConnectionStatus.CONNECTING, 1))
        self._begin(delayed=True)

    def network_online(self) -> None:
        logger.info("Network online")
        self._online = True
        if self.is_connected:
            return
        self._view.set_status("Online - Connecting...", StatusLevel.WARNING)
        self._begin(delayed=False)

    def network_offline(self) -> None:
        logger.info("Network offline")
        self._online = False
        self._cancel_cycle()
        self._transition(DISCONNECTED)
        self._view.set_status("Offline", StatusLevel.OFFLINE)
        self._view.notify(
            "You are offline. Reconnecting when the network is back.", is_error=True,
        )

    async def stop(self) -> None:
        task = self._cancel_cycle()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        self._transition(DISCONNECTED)

    # -- Internal -------------------------------------------------------------

    def _begin(self, *, delayed: bool) -> asyncio.Task[None]:
        if self._cycle is not None and not self._cycle.done():
            return self._cycle
        self._cycle = asyncio.create_task(self._run_cycle(delayed), name="connection-monitor")
        return self._cycle

    def _cancel_cycle(self) -> asyncio.Task[None] | None:
        task = self._cycle
        self._cycle = None
        if task is not None and not task.done():
            task.cancel()
            return task
        return None

    async def _run_cycle(self, delayed: bool) -> None:
        policy = self._policy
        for attempt in range(1, policy.max_attempts + 1):
            self._transition(ConnectionState(ConnectionStatus.CONNECTING, attempt))
            if delayed or attempt > 1:
                await asyncio.sleep(policy.delay(attempt))
            try:
                await self._connect()
            except TransportError as exc:
                logger.warning(
                    "Connection attempt %d/%d failed: %s", attempt, policy.max_attempts, exc.detail,
                )
                continue

            reconnected = self._ever_connected
            self._ever_connected = True
            self._transition(CONNECTED)
            self._view.notify("Reconnected to server" if reconnected else "Connected to chat server")
            return

        logger.error("Giving up after %d connection attempts", policy.max_attempts)
        self._transition(DISCONNECTED)
        self._view.notify("Unable to reach the server", is_error=True)

    def _transition(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        logger.debug("Connection state: %s -> %s", self._state, state)
        self._state = state
        self.history.append(state)
        if state.status == ConnectionStatus.CONNECTED:
            self._view.set_status("Connected", StatusLevel.OK)
        elif state.status == ConnectionStatus.CONNECTING:
            self._view.set_status(f"Connecting... (Attempt {state.attempt})", StatusLevel.WARNING)
        else:
            self._view.set_status("Disconnected", StatusLevel.ERROR)


class HealthCheck:
    """Polls ``GET /health`` on a fixed interval.

    Purely informational: it updates the health label and never touches the
    connection state machine.
    """

    def __init__(self, view: ChatView, http: httpx.AsyncClient, *, interval: float = 30.0) -> None:
        self._view = view
        self._http = http
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    async def check(self) -> bool:
        try:
            response = await self._http.get("/health")
            data: dict[str, Any] = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("Health check failed: %s", exc)
            self._view.set_health("Server Unreachable", StatusLevel.ERROR)
            return False

        if data.get("status") == "healthy":
            self._view.set_health("Healthy", StatusLevel.OK)
            return True
        self._view.set_health("Issues Detected", StatusLevel.WARNING)
        return False

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop(), name="health-check")

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _loop(self) -> None:
        while True:
            await self.check()
            await asyncio.sleep(self._interval)
