from __future__ import annotations

from typing import Protocol

from chat_relay.domain.entities.message import Message


class MessageStore(Protocol):
    """Durable message storage.

    Implementations raise ``PersistenceError`` for any storage failure.
    """

    async def create(self, username: str, text: str) -> Message: ...

    async def list_recent(self, limit: int = 50) -> list[Message]:
        """Return the newest ``limit`` messages, oldest first."""
        ...

    async def ping(self) -> None: ...
