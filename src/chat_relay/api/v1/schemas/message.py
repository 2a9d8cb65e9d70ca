from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from chat_relay.domain.entities.message import Message


class SendMessageRequest(BaseModel):
    username: str | None = None
    text: str | None = None


class MessageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: UUID
    username: str
    text: str
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_entity(cls, message: Message) -> MessageResponse:
        return cls(
            id=message.id,
            username=message.sender,
            text=message.text,
            created_at=message.created_at,
        )
