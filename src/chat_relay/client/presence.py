from __future__ import annotations

import asyncio
import logging
from typing import Any

from chat_relay.client.outbox import Emitter
from chat_relay.client.views import ChatView
from chat_relay.infrastructure.ws.protocol import WsEvent

logger = logging.getLogger(__name__)


class PresenceTracker:
    """Local typing state with a debounce timer, plus the remote indicator.

    One ``typing`` signal per burst of input; ``stop_typing`` once the timer
    runs out or as soon as a message is sent. All state changes happen
    synchronously on the event loop before any await, so a send racing the
    timer produces exactly one stop signal.
    """

    def __init__(self, view: ChatView, emit: Emitter, *, delay: float = 1.0) -> None:
        self._view = view
        self._emit = emit
        self._delay = delay
        self._is_typing = False
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def is_typing(self) -> bool:
        return self._is_typing

    async def on_input(self) -> None:
        user = self._view.identity
        if not user:
            return
        self._restart_timer()
        if not self._is_typing:
            self._is_typing = True
            await self._emit(WsEvent.TYPING, {"username": user}, None)

    async def on_send(self) -> None:
        self._cancel_timer()
        if self._is_typing:
            self._is_typing = False
            await self._emit(WsEvent.STOP_TYPING, {"username": self._view.identity}, None)

    def handle_remote(self, payload: dict[str, Any]) -> None:
        user = payload.get("user")
        if not user or user == self._view.identity:
            return
        self._view.show_typing(str(user), bool(payload.get("isTyping")))

    def reset(self) -> None:
        """Forget local and remote typing state, e.g. after the connection drops."""
        self._cancel_timer()
        self._is_typing = False
        self._view.clear_typing()

    async def close(self) -> None:
        self.reset()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _restart_timer(self) -> None:
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().call_later(self._delay, self._expire)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _expire(self) -> None:
        self._timer = None
        if not self._is_typing:
            return
        self._is_typing = False
        task = asyncio.ensure_future(
            self._emit(WsEvent.STOP_TYPING, {"username": self._view.identity}, None)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
