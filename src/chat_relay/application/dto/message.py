from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from chat_relay.domain.entities.message import Message
from chat_relay.domain.value_objects.enums import AckCode, AckStatus


@dataclass(frozen=True, slots=True)
class InboundChatMessage:
    """Raw ``chat message`` payload as the client sent it, before validation."""

    username: str | None = None
    text: str | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any] | None) -> InboundChatMessage:
        data = data or {}
        username = data.get("username")
        text = data.get("text")
        return cls(
            username=username if isinstance(username, str) else None,
            text=text if isinstance(text, str) else None,
        )


@dataclass(frozen=True, slots=True)
class ChatBroadcast:
    id: UUID
    sender: str
    text: str
    created_at: datetime

    @classmethod
    def from_message(cls, message: Message) -> ChatBroadcast:
        return cls(
            id=message.id,
            sender=message.sender,
            text=message.text,
            created_at=message.created_at,
        )

    def as_payload(self, *, own: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": str(self.id),
            "sender": self.sender,
            "text": self.text,
            "createdAt": self.created_at.isoformat(),
            "isBroadcast": True,
        }
        if own:
            payload["isOwnMessage"] = True
        return payload


@dataclass(frozen=True, slots=True)
class DeliveryResult:
    message: Message
    broadcast: ChatBroadcast
    server_time: datetime

    def ack_payload(self) -> dict[str, Any]:
        return {
            "status": AckStatus.SUCCESS.value,
            "messageId": str(self.message.id),
            "sender": self.message.sender,
            "text": self.message.text,
            "timestamp": self.message.created_at.isoformat(),
            "serverTime": self.server_time.isoformat(),
            "code": AckCode.MESSAGE_SENT.value,
        }


def error_ack(message: str, code: AckCode) -> dict[str, Any]:
    return {"status": AckStatus.ERROR.value, "message": message, "code": code.value}
