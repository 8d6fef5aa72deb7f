"""Database session dependency using SQLAlchemy's async engine over SQLite.

The engine isn't connected until first use; tables are created by
``init_models()`` from the application lifespan.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from core.config import get_settings
from models import Base


def create_engine_for(database_url: str) -> AsyncEngine:
    """Create an async engine; in-memory SQLite shares one connection."""
    if database_url.endswith(":memory:"):
        return create_async_engine(
            database_url,
            future=True,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(database_url, future=True, echo=False)


def _ensure_sqlite_directory(sqlite_path: str) -> None:
    if sqlite_path == ":memory:":
        return
    Path(sqlite_path).expanduser().parent.mkdir(parents=True, exist_ok=True)


DATABASE_URL = get_settings().database_url
engine: AsyncEngine = create_engine_for(DATABASE_URL)
AsyncSessionLocal = async_sessionmaker(
    engine,
    expire_on_commit=False,
    class_=AsyncSession,
)


async def init_models(bind: AsyncEngine | None = None) -> None:
    """Create all tables if they don't exist yet."""
    if bind is None:
        _ensure_sqlite_directory(get_settings().SQLITE_PATH)
        bind = engine
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency that provides an AsyncSession and ensures proper cleanup."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


DbSession = Annotated[AsyncSession, Depends(get_db)]
