"""CRUD operations for knowledge sources."""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import DuplicateKnowledgeSourceError, KnowledgeSourceNotFoundError
from models.knowledge_sources import KnowledgeSource


async def get_source_by_name(db: AsyncSession, name: str) -> KnowledgeSource | None:
    result = await db.execute(
        select(KnowledgeSource).where(KnowledgeSource.name == name)
    )
    return result.scalar_one_or_none()


async def create_source(
    db: AsyncSession,
    *,
    name: str,
    url: str,
    enabled: bool = True,
    fetch_interval_hours: int = 24,
) -> KnowledgeSource:
    """Create a knowledge source.

    The URL is stored as given; it is validated against the fetch policy on
    every fetch, since the allowlist may change between runs.

    Raises:
        DuplicateKnowledgeSourceError: If a source with this name exists
    """
    if await get_source_by_name(db, name) is not None:
        raise DuplicateKnowledgeSourceError(f"Knowledge source '{name}' already exists")

    source = KnowledgeSource(
        name=name,
        url=url,
        enabled=enabled,
        fetch_interval_hours=fetch_interval_hours,
    )
    db.add(source)
    await db.commit()
    await db.refresh(source)
    return source


async def list_sources(db: AsyncSession) -> list[KnowledgeSource]:
    result = await db.execute(select(KnowledgeSource).order_by(KnowledgeSource.id))
    return list(result.scalars().all())


async def list_enabled_sources(db: AsyncSession) -> list[KnowledgeSource]:
    result = await db.execute(
        select(KnowledgeSource)
        .where(KnowledgeSource.enabled.is_(True))
        .order_by(KnowledgeSource.id)
    )
    return list(result.scalars().all())


async def update_last_fetched(
    db: AsyncSession, source_id: int, fetched_at: datetime
) -> KnowledgeSource:
    source = await db.get(KnowledgeSource, source_id)
    if source is None:
        raise KnowledgeSourceNotFoundError(f"Knowledge source {source_id} not found")
    source.last_fetched_at = fetched_at
    await db.commit()
    return source
