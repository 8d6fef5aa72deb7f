"""Daily learning job.

Fetches every enabled knowledge source through the safe fetcher, stores
content whose hash has not been seen before and records a summary of the
run in ``bot_state``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from core.error_handler import StructuredLogger
from crud.bot_state import upsert_bot_state
from crud.knowledge import create_knowledge_item, get_knowledge_by_hash
from crud.knowledge_sources import list_enabled_sources, update_last_fetched
from services.safe_fetch import SafeFetcher, is_fetch_error


logger = StructuredLogger(__name__)

JOB_NAME = "daily-learn-job"
NO_SOURCES_ERROR = "No enabled knowledge sources configured"


@dataclass
class DailyLearnResult:
    success: bool = False
    sources_processed: int = 0
    new_knowledge: int = 0
    unchanged: int = 0
    errors: list[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def summary(self) -> dict[str, int]:
        return {
            "sources_processed": self.sources_processed,
            "new_knowledge": self.new_knowledge,
            "unchanged": self.unchanged,
            "errors": len(self.errors),
        }


async def run_daily_learn(db: AsyncSession, fetcher: SafeFetcher) -> DailyLearnResult:
    """Process enabled sources sequentially.

    A failing source is recorded as ``"<name>: <reason>"`` and skipped; it
    never aborts the run. ``success`` is True only when no errors occurred.
    """
    result = DailyLearnResult()
    logger.info("Starting daily learning job")

    sources = await list_enabled_sources(db)
    if not sources:
        logger.warning("No enabled knowledge sources found")
        result.errors.append(NO_SOURCES_ERROR)
        return result

    logger.info("Processing knowledge sources", count=len(sources))

    # A rollback expires loaded instances, so read their columns up front
    snapshot = [(source.id, source.name, source.url) for source in sources]

    for source_id, name, url in snapshot:
        try:
            fetched = await fetcher.fetch(url)
            if is_fetch_error(fetched):
                logger.warning(
                    "Source fetch failed", source=name, reason=fetched.reason
                )
                result.errors.append(f"{name}: {fetched.reason}")
                continue

            if await get_knowledge_by_hash(db, fetched.content_hash) is not None:
                logger.info("Content unchanged", source=name, hash=fetched.content_hash)
                result.unchanged += 1
            else:
                await create_knowledge_item(
                    db,
                    source_url=url,
                    title=fetched.title,
                    content=fetched.content,
                    content_hash=fetched.content_hash,
                    category=name,
                    priority="medium",
                )
                logger.info(
                    "New content detected", source=name, hash=fetched.content_hash
                )
                result.new_knowledge += 1

            await update_last_fetched(db, source_id, fetched.fetched_at)
            result.sources_processed += 1
        except Exception as exc:
            await db.rollback()
            logger.error("Error processing source", source=name, error=str(exc))
            result.errors.append(f"{name}: {exc}")

    await upsert_bot_state(
        db,
        bot_name=JOB_NAME,
        last_learned_at=result.timestamp,
        notes_json=json.dumps(result.summary()),
    )

    result.success = not result.errors
    logger.info("Daily learning job completed", **result.summary())
    return result
