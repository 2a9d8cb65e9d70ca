from __future__ import annotations

from chat_relay.domain.entities.message import Message
from chat_relay.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        sender=model.username,
        text=model.text,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def entity_to_model(entity: Message) -> MessageModel:
    return MessageModel(
        id=entity.id,
        username=entity.sender,
        text=entity.text,
        created_at=entity.created_at,
        updated_at=entity.updated_at,
    )
