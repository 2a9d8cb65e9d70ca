from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PayloadError

from chat_relay.api.deps import RegistryDep, StoreDep, TypingRelayDep
from chat_relay.application.dto.message import error_ack
from chat_relay.application.exceptions import AppError, InternalError
from chat_relay.application.ports.store import MessageStore
from chat_relay.config import settings
from chat_relay.infrastructure.ws.protocol import WsEvent, WsInbound, WsOutbound
from chat_relay.infrastructure.ws.registry import SessionRegistry
from chat_relay.services import message_service
from chat_relay.services.presence_service import TypingRelay

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


@router.websocket("/ws")
async def ws_chat(
    websocket: WebSocket,
    store: StoreDep,
    registry: RegistryDep,
    typing_relay: TypingRelayDep,
) -> None:
    await websocket.accept()
    connection_id = uuid.uuid4().hex
    registry.register(connection_id, websocket)

    heartbeat_task = asyncio.create_task(
        _heartbeat(websocket), name=f"ws-heartbeat-{connection_id}",
    )
    try:
        await _read_loop(websocket, connection_id, store, registry, typing_relay)
    except WebSocketDisconnect as exc:
        logger.info("WS disconnected: %s (code=%s)", connection_id, exc.code)
    except Exception:
        logger.exception("WS error for %s", connection_id)
    finally:
        heartbeat_task.cancel()
        registry.unregister(connection_id)
        await asyncio.shield(typing_relay.connection_closed(connection_id))


async def _heartbeat(ws: WebSocket) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            frame = WsOutbound(
                type=WsEvent.HEARTBEAT,
                data={"timestamp": datetime.now(timezone.utc).isoformat()},
            )
            await ws.send_text(frame.dump())
    except asyncio.CancelledError:
        pass
    except Exception as exc:  # noqa: BLE001
        logger.debug("Heartbeat stopped: %s", exc)


async def _read_loop(
    ws: WebSocket,
    connection_id: str,
    store: MessageStore,
    registry: SessionRegistry,
    typing_relay: TypingRelay,
) -> None:
    while True:
        raw = await ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except PayloadError:
            await ws.send_text(
                WsOutbound(type=WsEvent.ERROR, data={"code": "invalid_payload"}).dump()
            )
            continue

        if msg.type == WsEvent.CHAT_MESSAGE:
            await _handle_chat(connection_id, msg, store, registry)

        elif msg.type == WsEvent.TYPING:
            await typing_relay.start(connection_id, msg.data.get("username"))

        elif msg.type == WsEvent.STOP_TYPING:
            await typing_relay.stop(connection_id, msg.data.get("username"))

        elif msg.type == WsEvent.PING:
            await ws.send_text(WsOutbound(type=WsEvent.PONG).dump())

        else:
            await ws.send_text(
                WsOutbound(
                    type=WsEvent.ERROR, data={"code": "unknown_type", "type": msg.type},
                ).dump()
            )


async def _handle_chat(
    connection_id: str,
    msg: WsInbound,
    store: MessageStore,
    registry: SessionRegistry,
) -> None:
    try:
        result = await message_service.send_message(
            msg.data,
            connection_id,
            store,
            registry,
            default_sender=settings.DEFAULT_SENDER,
        )
        ack = result.ack_payload()
    except AppError as exc:
        logger.info("Message from %s rejected: %s %s", connection_id, exc.code, exc.detail)
        ack = error_ack(exc.detail, exc.code)
    except Exception:
        logger.exception("Unexpected failure handling message from %s", connection_id)
        ack = error_ack("Internal server error", InternalError.code)

    if msg.ack_id is not None:
        await registry.send_to(connection_id, WsEvent.ACK, ack, ack_id=msg.ack_id)
