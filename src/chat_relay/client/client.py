"""Chat client facade wiring the transport, outbox, presence and monitors."""
from __future__ import annotations

import logging
from typing import Any

import httpx

from chat_relay.client.config import ClientSettings
from chat_relay.client.connection import ChatConnection
from chat_relay.client.monitor import ConnectionMonitor, HealthCheck, ReconnectPolicy
from chat_relay.client.outbox import ClientOutbox, PendingSend, parse_time
from chat_relay.client.presence import PresenceTracker
from chat_relay.client.state import ClientState
from chat_relay.client.views import ChatView, DeliveryStatus, MessageView
from chat_relay.infrastructure.ws.protocol import WsEvent, WsOutbound

logger = logging.getLogger(__name__)

ANONYMOUS = "Anonymous"


class ChatClient:
    """One chat session against a relay server.

    Usage::

        async with ChatClient(username="alice") as client:
            await client.send("hello")
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        username: str | None = None,
        view: ChatView | None = None,
    ) -> None:
        self.settings = settings or ClientSettings()
        self.view = view or ChatView()
        self.state = ClientState(self.settings.STATE_FILE)
        if username is not None:
            name = username.strip()
        else:
            name = self.state.username or self.settings.USERNAME.strip()
        if name:
            self.view.identity = name

        self._http = httpx.AsyncClient(
            base_url=self.settings.SERVER_URL, timeout=self.settings.CONNECT_TIMEOUT,
        )
        self.connection = ChatConnection(
            self.settings.ws_url,
            on_event=self._dispatch,
            on_close=self._on_close,
            open_timeout=self.settings.CONNECT_TIMEOUT,
        )
        self.monitor = ConnectionMonitor(
            self.view,
            self.connection.open,
            ReconnectPolicy(
                max_attempts=self.settings.RECONNECT_ATTEMPTS,
                base_delay=self.settings.RECONNECT_DELAY,
                max_delay=self.settings.RECONNECT_DELAY_MAX,
            ),
        )
        self.outbox = ClientOutbox(
            self.view,
            self._emit,
            ack_timeout=self.settings.ACK_TIMEOUT,
            retry_validation_failures=self.settings.RETRY_VALIDATION_FAILURES,
        )
        self.presence = PresenceTracker(self.view, self._emit, delay=self.settings.TYPING_TIMEOUT)
        self.health = HealthCheck(
            self.view, self._http, interval=self.settings.HEALTH_CHECK_INTERVAL,
        )

    async def __aenter__(self) -> ChatClient:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def start(self) -> bool:
        await self.load_history()
        connected = await self.monitor.start()
        self.health.start()
        return connected

    async def close(self) -> None:
        await self.health.stop()
        await self.presence.close()
        await self.monitor.stop()
        await self.connection.close()
        await self._http.aclose()

    # -- User actions ---------------------------------------------------------

    def set_username(self, name: str) -> bool:
        name = name.strip()
        if not name:
            self.view.notify("Please enter a name.", is_error=True)
            return False
        self.view.identity = name
        self.state.username = name
        self.view.notify(f"Name set to: {name}")
        return True

    async def send(self, text: str) -> PendingSend | None:
        if text.strip():
            await self.presence.on_send()
        return await self.outbox.send(self.view.identity or ANONYMOUS, text)

    async def typing(self) -> None:
        await self.presence.on_input()

    async def retry(self, temp_id: str | None = None) -> bool:
        target = temp_id or self._last_failed()
        if target is None:
            return False
        return await self.outbox.retry(target)

    def discard(self, temp_id: str | None = None) -> bool:
        target = temp_id or self._last_failed()
        if target is None:
            return False
        return self.outbox.discard(target)

    def reconnect(self) -> None:
        self.monitor.reconnect()

    async def load_history(self) -> int:
        try:
            response = await self._http.get(
                "/api/messages", params={"limit": self.settings.HISTORY_LIMIT},
            )
            response.raise_for_status()
            rows: list[dict[str, Any]] = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Loading history failed: %s", exc)
            self.view.notify("Could not load previous messages", is_error=True)
            return 0

        loaded = 0
        identity = self.view.identity
        for row in sorted(rows, key=lambda r: str(r.get("createdAt") or "")):
            message_id = str(row.get("id") or "")
            if not message_id or self.view.find(message_id) is not None:
                continue
            created_at = parse_time(row.get("createdAt"))
            if created_at is None:
                continue
            sender = str(row.get("username") or "")
            mine = bool(identity) and sender == identity
            self.view.append(
                MessageView(
                    id=message_id,
                    sender=sender,
                    text=str(row.get("text") or ""),
                    created_at=created_at,
                    status=DeliveryStatus.DELIVERED if mine else DeliveryStatus.RECEIVED,
                    is_mine=mine,
                )
            )
            loaded += 1
        logger.info("Loaded %d messages of history", loaded)
        return loaded

    # -- Internal -------------------------------------------------------------

    def _last_failed(self) -> str | None:
        for pending in reversed(self.outbox.pending):
            if pending.view.status == DeliveryStatus.FAILED:
                return pending.temp_id
        return None

    async def _emit(self, event: str, data: dict[str, Any], ack_id: str | None) -> bool:
        if not self.monitor.is_connected:
            return False
        return await self.connection.emit(event, data, ack_id)

    def _dispatch(self, msg: WsOutbound) -> None:
        if msg.type == WsEvent.ACK:
            if msg.ack_id:
                self.outbox.handle_ack(msg.ack_id, msg.data)
        elif msg.type == WsEvent.CHAT_MESSAGE:
            self.outbox.receive(msg.data)
        elif msg.type == WsEvent.USER_TYPING:
            self.presence.handle_remote(msg.data)
        elif msg.type == WsEvent.HEARTBEAT:
            logger.debug("Heartbeat %s", msg.data.get("timestamp"))
        elif msg.type == WsEvent.ERROR:
            logger.warning("Server error: %s", msg.data.get("message"))
        else:
            logger.debug("Ignoring %s frame", msg.type)

    def _on_close(self, reason: str) -> None:
        self.presence.reset()
        self.monitor.connection_lost(reason)
