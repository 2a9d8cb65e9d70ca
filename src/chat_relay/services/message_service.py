from __future__ import annotations

import logging
from typing import Any

from chat_relay.application.dto.message import ChatBroadcast, DeliveryResult, InboundChatMessage
from chat_relay.application.exceptions import ValidationError
from chat_relay.application.ports.clock import Clock, SystemClock
from chat_relay.application.ports.store import MessageStore
from chat_relay.domain.entities.message import USERNAME_MAX_LENGTH, Message
from chat_relay.infrastructure.ws.protocol import WsEvent
from chat_relay.infrastructure.ws.registry import SessionRegistry

logger = logging.getLogger(__name__)

ANONYMOUS = "Anonymous"


async def send_message(
    raw: InboundChatMessage | dict[str, Any] | None,
    origin_id: str | None,
    store: MessageStore,
    registry: SessionRegistry,
    *,
    default_sender: str = ANONYMOUS,
    clock: Clock | None = None,
) -> DeliveryResult:
    """Validate, persist and fan out one chat message.

    Raises ``ValidationError`` when the text is blank or the message could
    never be stored as given (NUL characters, overlong username); nothing is
    stored or sent. Lets the store's ``PersistenceError`` through (nothing
    is sent).

    With an ``origin_id`` the other sessions get the public broadcast and the
    origin gets the same data point-to-point, marked as its own message.
    Without one (non-socket callers) every session gets the broadcast.
    """
    message = raw if isinstance(raw, InboundChatMessage) else InboundChatMessage.from_payload(raw)

    text = (message.text or "").strip()
    if not text:
        raise ValidationError("Message text cannot be empty")
    sender = (message.username or "").strip() or default_sender
    _check_storable(sender, text)

    stored = await store.create(sender, text)

    broadcast = ChatBroadcast.from_message(stored)
    if origin_id is not None:
        await registry.broadcast_except(origin_id, WsEvent.CHAT_MESSAGE, broadcast.as_payload())
        await registry.send_to(origin_id, WsEvent.CHAT_MESSAGE, broadcast.as_payload(own=True))
    else:
        await registry.broadcast_all(WsEvent.CHAT_MESSAGE, broadcast.as_payload())

    logger.info("Message %s from %s delivered (origin=%s)", stored.id, sender, origin_id)
    return DeliveryResult(
        message=stored,
        broadcast=broadcast,
        server_time=(clock or SystemClock()).now(),
    )


async def list_messages(store: MessageStore, limit: int) -> list[Message]:
    return await store.list_recent(limit)


def _check_storable(sender: str, text: str) -> None:
    # Postgres text columns cannot store NUL
    if "\x00" in text or "\x00" in sender:
        raise ValidationError("Message contains invalid characters")
    if len(sender) > USERNAME_MAX_LENGTH:
        raise ValidationError(f"Username must be at most {USERNAME_MAX_LENGTH} characters")
