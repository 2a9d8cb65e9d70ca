from __future__ import annotations

from pathlib import Path

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    SERVER_URL: str = "http://localhost:3000"
    WS_PATH: str = "/ws"
    USERNAME: str = ""
    # Remembers the last name chosen with /name; None disables it
    STATE_FILE: Path | None = Path.home() / ".chat-relay" / "client.json"

    RECONNECT_ATTEMPTS: int = 5
    RECONNECT_DELAY: float = 1.0
    RECONNECT_DELAY_MAX: float = 5.0
    CONNECT_TIMEOUT: float = 20.0

    ACK_TIMEOUT: float = 10.0
    TYPING_TIMEOUT: float = 1.0
    HEALTH_CHECK_INTERVAL: float = 30.0
    HISTORY_LIMIT: int = 50

    RETRY_VALIDATION_FAILURES: bool = False

    @property
    def ws_url(self) -> str:
        base = self.SERVER_URL.rstrip("/")
        if base.startswith("https://"):
            base = "wss://" + base[len("https://"):]
        elif base.startswith("http://"):
            base = "ws://" + base[len("http://"):]
        return base + self.WS_PATH

    model_config = ConfigDict(
        env_prefix="CHAT_CLIENT_",
        env_file=".env",
        extra="ignore",
    )
