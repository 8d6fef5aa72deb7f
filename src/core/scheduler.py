"""Background task scheduler using APScheduler.

Manages scheduled jobs for:
- Daily learning from enabled knowledge sources (``CRON_SCHEDULE_DAILY_LEARN``)

Nothing is scheduled unless ``CRON_ENABLED`` is set.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import (  # type: ignore[import-untyped]
    AsyncIOScheduler,
)
from apscheduler.triggers.cron import CronTrigger  # type: ignore[import-untyped]

from core.config import Settings, get_settings
from dependencies.db import AsyncSessionLocal
from jobs.daily_learn import JOB_NAME, run_daily_learn
from services.safe_fetch import SafeFetcher


logger = logging.getLogger(__name__)

scheduler: AsyncIOScheduler | None = None


async def run_scheduled_daily_learn() -> None:
    """Scheduled job: run the daily learning job with a fresh session."""
    logger.info("Starting scheduled daily learning run")
    try:
        fetcher = SafeFetcher(get_settings().fetch_policy())
        async with AsyncSessionLocal() as db:
            result = await run_daily_learn(db, fetcher)
        logger.info(
            "Scheduled daily learning finished: success=%s new=%d unchanged=%d "
            "errors=%d",
            result.success,
            result.new_knowledge,
            result.unchanged,
            len(result.errors),
        )
    except Exception as e:
        logger.error(f"Scheduled daily learning failed: {e}", exc_info=True)


def setup_scheduler(settings: Settings | None = None) -> AsyncIOScheduler | None:
    """Initialize APScheduler with the daily learning job.

    Returns None when scheduling is disabled.
    """
    global scheduler
    settings = settings or get_settings()
    if not settings.CRON_ENABLED:
        logger.info("Scheduler disabled (CRON_ENABLED is false)")
        scheduler = None
        return None

    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        run_scheduled_daily_learn,
        trigger=CronTrigger.from_crontab(
            settings.CRON_SCHEDULE_DAILY_LEARN, timezone="UTC"
        ),
        id=JOB_NAME,
        name="Daily learning from knowledge sources",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    logger.info(
        "Scheduler configured: daily learning (%s UTC)",
        settings.CRON_SCHEDULE_DAILY_LEARN,
    )
    return scheduler


@asynccontextmanager
async def scheduler_lifespan() -> AsyncGenerator[None, None]:
    """Context manager for scheduler lifecycle.

    Usage in FastAPI:
        @asynccontextmanager
        async def lifespan(app: FastAPI):
            async with scheduler_lifespan():
                yield
    """
    setup_scheduler()
    if scheduler:
        scheduler.start()
        logger.info("Background scheduler started")
    try:
        yield
    finally:
        if scheduler and scheduler.running:
            scheduler.shutdown(wait=True)
            logger.info("Background scheduler shut down")
