from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy import text as sql_text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chat_relay.application.exceptions import PersistenceError
from chat_relay.domain.entities.message import Message
from chat_relay.infrastructure.db.mappers import message as mapper
from chat_relay.infrastructure.db.models.message import MessageModel

logger = logging.getLogger(__name__)

# Driver-level connection failures surface as OSError, not as SQLAlchemyError
_STORE_ERRORS = (SQLAlchemyError, OSError)


class SqlAlchemyMessageStore:
    """Implements application.ports.store.MessageStore.

    Every call runs in its own short-lived session.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, username: str, text: str) -> Message:
        now = datetime.now(timezone.utc)
        entity = Message(
            id=uuid.uuid4(),
            sender=username,
            text=text,
            created_at=now,
            updated_at=now,
        )
        model = mapper.entity_to_model(entity)
        try:
            async with self._session_factory() as session:
                session.add(model)
                await session.commit()
        except _STORE_ERRORS as exc:
            logger.warning("Message insert failed: %s", exc)
            raise PersistenceError(f"Failed to save message: {exc}") from exc
        return mapper.model_to_entity(model)

    async def list_recent(self, limit: int = 50) -> list[Message]:
        stmt = (
            select(MessageModel)
            .order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
            .limit(limit)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                rows = result.scalars().all()
        except _STORE_ERRORS as exc:
            logger.warning("Message query failed: %s", exc)
            raise PersistenceError(f"Failed to load messages: {exc}") from exc
        return [mapper.model_to_entity(m) for m in reversed(rows)]

    async def ping(self) -> None:
        try:
            async with self._session_factory() as session:
                await session.execute(sql_text("SELECT 1"))
        except _STORE_ERRORS as exc:
            raise PersistenceError(f"Database unreachable: {exc}") from exc
