from __future__ import annotations

from fastapi import APIRouter, Query

from chat_relay.api.deps import RegistryDep, StoreDep
from chat_relay.api.v1.schemas.message import MessageResponse, SendMessageRequest
from chat_relay.application.dto.message import InboundChatMessage
from chat_relay.config import settings
from chat_relay.services import message_service

router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.get("", response_model=list[MessageResponse])
async def list_messages(
    store: StoreDep,
    limit: int = Query(settings.HISTORY_LIMIT, ge=1, le=200),
) -> list[MessageResponse]:
    messages = await message_service.list_messages(store, limit)
    return [MessageResponse.from_entity(m) for m in messages]


@router.post("", response_model=MessageResponse, status_code=201)
async def send_message(
    body: SendMessageRequest,
    store: StoreDep,
    registry: RegistryDep,
) -> MessageResponse:
    result = await message_service.send_message(
        InboundChatMessage(username=body.username, text=body.text),
        None,
        store,
        registry,
        default_sender=settings.DEFAULT_SENDER,
    )
    return MessageResponse.from_entity(result.message)
