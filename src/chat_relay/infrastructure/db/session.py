from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from chat_relay.config import settings


def make_engine() -> AsyncEngine:
    """Pooled asyncpg engine. Creating it does not open a connection."""
    return create_async_engine(
        settings.database_url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
    )


engine = make_engine()

# One short-lived session per store call; rows are read after commit.
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


async def create_schema() -> None:
    """Create missing tables. Existing tables are left untouched."""
    from chat_relay.infrastructure.db import models  # noqa: F401
    from chat_relay.infrastructure.db.base import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
