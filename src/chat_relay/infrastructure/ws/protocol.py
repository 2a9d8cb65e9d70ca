"""WebSocket message envelope models, shared by the server and the client."""
from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from chat_relay.domain.value_objects.enums import AckStatus


class WsEvent(StrEnum):
    CHAT_MESSAGE = "chat message"
    TYPING = "typing"
    STOP_TYPING = "stop_typing"
    USER_TYPING = "user_typing"
    HEARTBEAT = "heartbeat"
    ACK = "ack"
    PING = "ping"
    PONG = "pong"
    ERROR = "error"


class WsInbound(BaseModel):
    """Client → Server."""

    type: str  # chat message | typing | stop_typing | ping
    data: dict[str, Any] = {}
    ack_id: str | None = None


class WsOutbound(BaseModel):
    """Server → Client."""

    type: str  # chat message | ack | user_typing | heartbeat | pong | error
    data: dict[str, Any] = {}
    ack_id: str | None = None

    def dump(self) -> str:
        return self.model_dump_json(exclude_none=True)


class Acknowledgement(BaseModel):
    """Body of an ``ack`` frame: either a success or an error result."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    status: str
    code: str | None = None
    message: str | None = None
    message_id: str | None = Field(None, alias="messageId")
    sender: str | None = None
    text: str | None = None
    timestamp: str | None = None
    server_time: str | None = Field(None, alias="serverTime")

    @property
    def ok(self) -> bool:
        return self.status == AckStatus.SUCCESS
