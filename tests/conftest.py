"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from chat_relay.application.exceptions import PersistenceError
from chat_relay.client.views import ChatView
from chat_relay.domain.entities.message import Message
from chat_relay.infrastructure.ws.registry import SessionRegistry
from chat_relay.services.presence_service import TypingRelay

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_message(
    *,
    sender: str = "alice",
    text: str = "hello",
    created_at: datetime | None = None,
) -> Message:
    ts = created_at or FIXED_NOW
    return Message(
        id=uuid.uuid4(),
        sender=sender,
        text=text,
        created_at=ts,
        updated_at=ts,
    )


@dataclass
class FixedClock:
    current: datetime = FIXED_NOW

    def now(self) -> datetime:
        return self.current


@dataclass
class FakeMessageStore:
    """In-memory MessageStore. Set ``fail`` to make every call raise."""

    records: list[Message] = field(default_factory=list)
    fail: bool = False

    async def create(self, username: str, text: str) -> Message:
        self._check()
        created_at = FIXED_NOW + timedelta(seconds=len(self.records))
        message = make_message(sender=username, text=text, created_at=created_at)
        self.records.append(message)
        return message

    async def list_recent(self, limit: int = 50) -> list[Message]:
        self._check()
        ordered = sorted(self.records, key=lambda m: m.created_at)
        return ordered[-limit:]

    async def ping(self) -> None:
        self._check()

    def _check(self) -> None:
        if self.fail:
            raise PersistenceError("database unavailable")


@dataclass
class FakeChannel:
    """Records every frame written to it."""

    frames: list[str] = field(default_factory=list)
    fail: bool = False

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.frames.append(data)

    @property
    def events(self) -> list[dict[str, Any]]:
        return [json.loads(f) for f in self.frames]

    def of_type(self, event: str) -> list[dict[str, Any]]:
        return [e for e in self.events if e["type"] == event]


@dataclass
class StalledChannel:
    """A peer whose writes never complete, like a half-open socket."""

    attempts: int = 0

    async def send_text(self, data: str) -> None:
        self.attempts += 1
        await asyncio.sleep(3600)


@dataclass
class RecordingEmitter:
    """Stands in for the client transport: records (event, data, ack_id)."""

    calls: list[tuple[str, dict[str, Any], str | None]] = field(default_factory=list)
    connected: bool = True

    async def __call__(self, event: str, data: dict[str, Any], ack_id: str | None) -> bool:
        if not self.connected:
            return False
        self.calls.append((str(event), data, ack_id))
        return True

    def of_type(self, event: str) -> list[tuple[str, dict[str, Any], str | None]]:
        return [c for c in self.calls if c[0] == event]


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store() -> FakeMessageStore:
    return FakeMessageStore()


@pytest.fixture
def registry(clock) -> SessionRegistry:
    return SessionRegistry(clock=clock)


@pytest.fixture
def typing_relay(registry) -> TypingRelay:
    return TypingRelay(registry)


@pytest.fixture
def view() -> ChatView:
    return ChatView(identity="alice")


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()
