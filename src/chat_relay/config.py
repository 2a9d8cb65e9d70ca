"""Server settings, read from the environment and ``.env``."""
from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    # Postgres
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300
    DB_CREATE_TABLES: bool = True

    # HTTP / websocket
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 3000
    CORS_ORIGINS: list[str] = ["*"]
    WS_HEARTBEAT_SECONDS: int = 30
    WS_SEND_TIMEOUT_SECONDS: float = 5.0
    LOG_LEVEL: str = "INFO"

    # Messages
    HISTORY_LIMIT: int = 50
    DEFAULT_SENDER: str = "Anonymous"

    @property
    def database_url(self) -> URL:
        return URL.create(
            "postgresql+asyncpg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.DB_HOST,
            port=self.DB_PORT,
            database=self.POSTGRES_DB,
        )

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]
