"""Headless rendering model for the chat client.

Everything a front-end would draw lives here: the ordered message list, the
connection status badge, the server health label, the remote typing
indicator and a short queue of transient notifications. Components mutate
these objects; a front-end can subscribe through ``ChatView.listener``.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Callable, Iterator

logger = logging.getLogger(__name__)


class DeliveryStatus(StrEnum):
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"
    RECEIVED = "received"


class StatusLevel(StrEnum):
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"
    OFFLINE = "offline"


@dataclass
class MessageView:
    """One entry of the message list.

    ``id`` starts as the client temp id for optimistic entries and is
    replaced by the server id once delivered. Entries are updated in place,
    never replaced, so their list position is stable.
    """

    id: str
    sender: str
    text: str
    created_at: datetime
    status: DeliveryStatus
    is_mine: bool = False
    server_time: datetime | None = None
    error: str | None = None
    error_code: str | None = None
    can_retry: bool = False

    @property
    def label(self) -> str:
        if self.status == DeliveryStatus.PENDING:
            return "Sending..."
        if self.status == DeliveryStatus.DELIVERED:
            return "Delivered"
        if self.status == DeliveryStatus.FAILED:
            return f"Failed: {self.error}" if self.error else "Failed"
        return "Received"


@dataclass(frozen=True, slots=True)
class Notification:
    text: str
    is_error: bool = False


@dataclass
class StatusIndicator:
    text: str = ""
    level: StatusLevel = StatusLevel.OFFLINE


Listener = Callable[[str, Any], None]


@dataclass
class ChatView:
    identity: str = ""
    messages: list[MessageView] = field(default_factory=list)
    status: StatusIndicator = field(default_factory=StatusIndicator)
    health: StatusIndicator = field(default_factory=StatusIndicator)
    notifications: deque[Notification] = field(default_factory=lambda: deque(maxlen=20))
    typing_users: dict[str, None] = field(default_factory=dict)
    listener: Listener | None = None

    # -- Messages -------------------------------------------------------------

    def append(self, entry: MessageView) -> MessageView:
        self.messages.append(entry)
        self._emit("message", entry)
        return entry

    def remove(self, entry: MessageView) -> None:
        self.messages.remove(entry)
        self._emit("removed", entry)

    def changed(self, entry: MessageView) -> None:
        self._emit("updated", entry)

    def find(self, message_id: str) -> MessageView | None:
        for entry in self.messages:
            if entry.id == message_id:
                return entry
        return None

    def __iter__(self) -> Iterator[MessageView]:
        return iter(self.messages)

    def __len__(self) -> int:
        return len(self.messages)

    # -- Indicators -----------------------------------------------------------

    def set_status(self, text: str, level: StatusLevel) -> None:
        self.status = StatusIndicator(text=text, level=level)
        self._emit("status", self.status)

    def set_health(self, text: str, level: StatusLevel) -> None:
        self.health = StatusIndicator(text=text, level=level)
        self._emit("health", self.health)

    def notify(self, text: str, is_error: bool = False) -> None:
        note = Notification(text=text, is_error=is_error)
        self.notifications.append(note)
        self._emit("notification", note)

    # -- Typing indicator -----------------------------------------------------

    def show_typing(self, user: str, is_typing: bool) -> None:
        if is_typing:
            self.typing_users[user] = None
        else:
            self.typing_users.pop(user, None)
        self._emit("typing", self.typing_label)

    def clear_typing(self) -> None:
        if self.typing_users:
            self.typing_users.clear()
            self._emit("typing", None)

    @property
    def typing_label(self) -> str | None:
        users = list(self.typing_users)
        if not users:
            return None
        if len(users) == 1:
            return f"{users[0]} is typing..."
        return f"{', '.join(users)} are typing..."

    def _emit(self, kind: str, payload: Any) -> None:
        if self.listener is None:
            return
        try:
            self.listener(kind, payload)
        except Exception:
            logger.exception("View listener failed for %s", kind)
