"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from chat_relay.application.ports.store import MessageStore
from chat_relay.config import settings
from chat_relay.infrastructure.db.repositories.message import SqlAlchemyMessageStore
from chat_relay.infrastructure.db.session import AsyncSessionLocal
from chat_relay.infrastructure.ws.registry import SessionRegistry
from chat_relay.services.presence_service import TypingRelay

_store: MessageStore | None = None
_registry = SessionRegistry(send_timeout=settings.WS_SEND_TIMEOUT_SECONDS)
_typing_relay = TypingRelay(_registry)


def get_store() -> MessageStore:
    global _store  # noqa: PLW0603
    if _store is None:
        _store = SqlAlchemyMessageStore(AsyncSessionLocal)
    return _store


def get_registry() -> SessionRegistry:
    return _registry


def get_typing_relay() -> TypingRelay:
    return _typing_relay


StoreDep = Annotated[MessageStore, Depends(get_store)]
RegistryDep = Annotated[SessionRegistry, Depends(get_registry)]
TypingRelayDep = Annotated[TypingRelay, Depends(get_typing_relay)]
