from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Message:
    """A persisted chat message. Never mutated after the store returns it."""

    id: UUID
    sender: str
    text: str
    created_at: datetime
    updated_at: datetime


USERNAME_MAX_LENGTH = 255
