from __future__ import annotations

from typing import Protocol


class SessionChannel(Protocol):
    """The write half of one live connection (a FastAPI ``WebSocket`` fits)."""

    async def send_text(self, data: str) -> None: ...
