"""Client websocket transport: JSON envelopes over one connection."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

import websockets.asyncio.client
from pydantic import ValidationError as PayloadError
from websockets.exceptions import ConnectionClosed, WebSocketException

from chat_relay.application.exceptions import TransportError
from chat_relay.infrastructure.ws.protocol import WsInbound, WsOutbound

logger = logging.getLogger(__name__)

EventHandler = Callable[[WsOutbound], None]
CloseHandler = Callable[[str], None]


class ChatConnection:
    """Opens the websocket, writes frames and pumps incoming frames.

    A drop that was not requested through ``close()`` is reported once
    through ``on_close``; reconnecting is the caller's job.
    """

    def __init__(
        self,
        url: str,
        *,
        on_event: EventHandler,
        on_close: CloseHandler,
        open_timeout: float = 20.0,
    ) -> None:
        self._url = url
        self._on_event = on_event
        self._on_close = on_close
        self._open_timeout = open_timeout
        self._ws: websockets.asyncio.client.ClientConnection | None = None
        self._recv_task: asyncio.Task[None] | None = None
        self._closing = False

    @property
    def is_open(self) -> bool:
        return self._ws is not None

    async def open(self) -> None:
        if self._ws is not None:
            return
        try:
            ws = await websockets.asyncio.client.connect(
                self._url,
                open_timeout=self._open_timeout,
                max_size=2**20,
            )
        except (OSError, TimeoutError, WebSocketException) as exc:
            raise TransportError(f"Failed to connect to {self._url}: {exc}") from exc

        logger.info("Connected to %s", self._url)
        self._closing = False
        self._ws = ws
        self._recv_task = asyncio.create_task(self._recv_loop(ws), name="chat-recv")

    async def emit(self, event: str, data: dict[str, Any], ack_id: str | None = None) -> bool:
        ws = self._ws
        if ws is None:
            return False
        frame = WsInbound(type=event, data=data, ack_id=ack_id).model_dump_json(exclude_none=True)
        try:
            await ws.send(frame)
            return True
        except ConnectionClosed:
            logger.debug("Send of %s failed: connection closed", event)
            return False

    async def close(self) -> None:
        self._closing = True
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()
        if self._recv_task is not None:
            self._recv_task.cancel()
            await asyncio.gather(self._recv_task, return_exceptions=True)
            self._recv_task = None

    async def _recv_loop(self, ws: websockets.asyncio.client.ClientConnection) -> None:
        reason = "connection closed"
        try:
            async for raw in ws:
                try:
                    msg = WsOutbound.model_validate_json(raw)
                except PayloadError:
                    logger.warning("Dropping malformed frame: %.100r", raw)
                    continue
                try:
                    self._on_event(msg)
                except Exception:
                    logger.exception("Handler failed for %s frame", msg.type)
            reason = f"closed by server (code={ws.close_code})"
        except ConnectionClosed as exc:
            reason = f"connection lost ({exc})"
        finally:
            if self._ws is ws:
                self._ws = None
            if not self._closing:
                self._on_close(reason)
