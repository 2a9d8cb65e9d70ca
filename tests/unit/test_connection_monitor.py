from __future__ import annotations

import asyncio

import httpx
import pytest

from chat_relay.application.exceptions import TransportError
from chat_relay.client.monitor import (
    CONNECTED,
    DISCONNECTED,
    ConnectionMonitor,
    ConnectionStatus,
    HealthCheck,
    ReconnectPolicy,
)
from chat_relay.client.views import StatusLevel

FAST = ReconnectPolicy(max_attempts=3, base_delay=0.01, max_delay=0.02)


class FlakyConnector:
    """Fails the first ``failures`` calls, then succeeds."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.calls = 0

    async def __call__(self) -> None:
        self.calls += 1
        if self.calls <= self.failures:
            raise TransportError("connection refused")


def test_policy_delays_are_capped():
    policy = ReconnectPolicy()

    assert [policy.delay(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]


@pytest.mark.asyncio
async def test_initial_connect(view):
    monitor = ConnectionMonitor(view, FlakyConnector(), FAST)

    assert await monitor.start() is True
    assert monitor.state == CONNECTED
    assert view.status.text == "Connected"
    assert view.notifications[-1].text == "Connected to chat server"


@pytest.mark.asyncio
async def test_initial_connect_gives_up(view):
    connector = FlakyConnector(failures=10)
    monitor = ConnectionMonitor(view, connector, FAST)

    assert await monitor.start() is False
    assert connector.calls == 3
    assert monitor.state == DISCONNECTED
    assert view.status.level == StatusLevel.ERROR
    assert view.notifications[-1].text == "Unable to reach the server"


@pytest.mark.asyncio
async def test_reconnect_after_drop(view):
    connector = FlakyConnector()
    monitor = ConnectionMonitor(view, connector, FAST)
    await monitor.start()

    connector.failures = 3  # the next two calls fail
    monitor.connection_lost("server restart")
    assert not monitor.is_connected

    await asyncio.sleep(0.2)

    assert monitor.is_connected
    assert [str(s) for s in monitor.history] == [
        "Disconnected",
        "Connecting(1)",
        "Connected",
        "Connecting(1)",
        "Connecting(2)",
        "Connecting(3)",
        "Connected",
    ]
    notes = [n.text for n in view.notifications]
    assert "Disconnected from server" in notes
    assert notes[-1] == "Reconnected to server"


@pytest.mark.asyncio
async def test_exhausted_then_manual_reconnect(view):
    connector = FlakyConnector()
    monitor = ConnectionMonitor(view, connector, FAST)
    await monitor.start()

    connector.failures = 100
    monitor.connection_lost("gone")
    await asyncio.sleep(0.2)
    assert monitor.state == DISCONNECTED

    connector.failures = 0
    connector.calls = 0
    await monitor.reconnect()
    assert monitor.is_connected


@pytest.mark.asyncio
async def test_connection_lost_ignored_unless_connected(view):
    monitor = ConnectionMonitor(view, FlakyConnector(), FAST)

    monitor.connection_lost("noise")

    assert monitor.state == DISCONNECTED
    assert list(view.notifications) == []


@pytest.mark.asyncio
async def test_offline_then_online(view):
    connector = FlakyConnector()
    monitor = ConnectionMonitor(view, connector, FAST)
    await monitor.start()

    monitor.network_offline()
    assert view.status.level == StatusLevel.OFFLINE
    assert monitor.state == DISCONNECTED
    assert not monitor.is_connected

    # the socket closing afterwards changes nothing
    monitor.connection_lost("network down")
    assert monitor.state == DISCONNECTED
    assert view.status.level == StatusLevel.OFFLINE

    monitor.network_online()
    await asyncio.sleep(0.05)
    assert monitor.is_connected
    await monitor.stop()


@pytest.mark.asyncio
async def test_stop_cancels_cycle(view):
    monitor = ConnectionMonitor(view, FlakyConnector(failures=100), ReconnectPolicy(3, 10.0, 10.0))
    monitor.reconnect()
    await asyncio.sleep(0)

    await monitor.stop()

    assert monitor.state.status == ConnectionStatus.DISCONNECTED


def _health_check(view, handler) -> HealthCheck:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
    return HealthCheck(view, http, interval=0.01)


@pytest.mark.asyncio
async def test_health_check_healthy(view):
    checker = _health_check(view, lambda req: httpx.Response(200, json={"status": "healthy"}))

    assert await checker.check() is True
    assert view.health.text == "Healthy"


@pytest.mark.asyncio
async def test_health_check_degraded(view):
    checker = _health_check(view, lambda req: httpx.Response(503, json={"status": "degraded"}))

    assert await checker.check() is False
    assert view.health.text == "Issues Detected"


@pytest.mark.asyncio
async def test_health_check_unreachable(view):
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    checker = _health_check(view, refuse)

    assert await checker.check() is False
    assert view.health.text == "Server Unreachable"
    assert view.health.level == StatusLevel.ERROR


@pytest.mark.asyncio
async def test_health_check_does_not_touch_connection_state(view):
    monitor = ConnectionMonitor(view, FlakyConnector(), FAST)
    await monitor.start()
    checker = _health_check(view, lambda req: httpx.Response(503, json={"status": "degraded"}))

    checker.start()
    await asyncio.sleep(0.05)
    await checker.stop()

    assert monitor.is_connected
    assert view.status.text == "Connected"
