from __future__ import annotations

import logging

from chat_relay.infrastructure.ws.protocol import WsEvent
from chat_relay.infrastructure.ws.registry import SessionRegistry

logger = logging.getLogger(__name__)


class TypingRelay:
    """Relays typing signals to every other session.

    Remembers which user each connection last reported as typing, so a
    connection that drops mid-burst still produces a final stop signal.
    """

    def __init__(self, registry: SessionRegistry) -> None:
        self._registry = registry
        self._typing: dict[str, str] = {}

    def is_typing(self, connection_id: str) -> bool:
        return connection_id in self._typing

    async def start(self, connection_id: str, username: str | None) -> None:
        user = (username or "").strip()
        if not user:
            return
        self._typing[connection_id] = user
        await self._relay(connection_id, user, True)

    async def stop(self, connection_id: str, username: str | None) -> None:
        user = (username or "").strip() or self._typing.get(connection_id, "")
        self._typing.pop(connection_id, None)
        if not user:
            return
        await self._relay(connection_id, user, False)

    async def connection_closed(self, connection_id: str) -> None:
        user = self._typing.pop(connection_id, None)
        if user is None:
            return
        logger.debug("Clearing typing state for %s on disconnect", user)
        # The origin is already gone, so every remaining session gets it
        await self._registry.broadcast_all(
            WsEvent.USER_TYPING, {"user": user, "isTyping": False},
        )

    async def _relay(self, connection_id: str, user: str, is_typing: bool) -> None:
        await self._registry.broadcast_except(
            connection_id, WsEvent.USER_TYPING, {"user": user, "isTyping": is_typing},
        )
