"""CRUD operations for knowledge items."""

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.knowledge_items import KnowledgeItem


async def create_knowledge_item(
    db: AsyncSession,
    *,
    source_url: str,
    title: str,
    content: str,
    content_hash: str,
    category: str,
    priority: str = "medium",
) -> KnowledgeItem:
    """Insert a knowledge item.

    Callers check :func:`get_knowledge_by_hash` first; the unique constraint
    on ``content_hash`` still rejects a concurrent duplicate with an
    ``IntegrityError``.
    """
    item = KnowledgeItem(
        source_url=source_url,
        title=title,
        content=content,
        content_hash=content_hash,
        category=category,
        priority=priority,
    )
    db.add(item)
    await db.commit()
    await db.refresh(item)
    return item


async def get_knowledge_by_hash(
    db: AsyncSession, content_hash: str
) -> KnowledgeItem | None:
    result = await db.execute(
        select(KnowledgeItem).where(KnowledgeItem.content_hash == content_hash)
    )
    return result.scalar_one_or_none()


async def search_knowledge(
    db: AsyncSession,
    *,
    category: str | None = None,
    priority: str | None = None,
    keyword: str | None = None,
    limit: int = 50,
) -> list[KnowledgeItem]:
    """Filter knowledge items, newest first.

    Args:
        db: Database session
        category: Exact category match
        priority: Exact priority match
        keyword: Case-insensitive substring of title or content
        limit: Maximum number of rows

    Returns:
        Matching items ordered by creation time (descending)
    """
    query = select(KnowledgeItem)
    if category:
        query = query.where(KnowledgeItem.category == category)
    if priority:
        query = query.where(KnowledgeItem.priority == priority)
    if keyword:
        pattern = f"%{keyword}%"
        query = query.where(
            or_(
                KnowledgeItem.title.ilike(pattern),
                KnowledgeItem.content.ilike(pattern),
            )
        )
    query = query.order_by(KnowledgeItem.created_at.desc(), KnowledgeItem.id.desc())
    query = query.limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())
