"""Tests for the background scheduler wiring."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

import core.scheduler as scheduler_module
from core.config import Settings
from core.scheduler import run_scheduled_daily_learn, setup_scheduler
from jobs.daily_learn import JOB_NAME, DailyLearnResult


def _settings(**overrides) -> Settings:
    return Settings(  # type: ignore[call-arg]
        _env_file=None, SECRET_KEY="unit-test-secret", **overrides
    )


def test_disabled_scheduler_schedules_nothing() -> None:
    assert setup_scheduler(_settings(CRON_ENABLED=False)) is None
    assert scheduler_module.scheduler is None


def test_enabled_scheduler_uses_cron_expression() -> None:
    scheduler = setup_scheduler(
        _settings(CRON_ENABLED=True, CRON_SCHEDULE_DAILY_LEARN="30 4 * * *")
    )

    assert scheduler is not None
    job = scheduler.get_job(JOB_NAME)
    assert job is not None
    assert job.func is run_scheduled_daily_learn
    fields = {f.name: str(f) for f in job.trigger.fields}
    assert fields["hour"] == "4"
    assert fields["minute"] == "30"
    scheduler_module.scheduler = None


@pytest.mark.asyncio
async def test_scheduled_run_uses_fresh_session_and_fetcher() -> None:
    session = MagicMock()
    session_cm = MagicMock()
    session_cm.__aenter__ = AsyncMock(return_value=session)
    session_cm.__aexit__ = AsyncMock(return_value=None)

    with (
        patch.object(scheduler_module, "AsyncSessionLocal", return_value=session_cm),
        patch.object(
            scheduler_module,
            "run_daily_learn",
            AsyncMock(return_value=DailyLearnResult(success=True)),
        ) as mock_run,
    ):
        await run_scheduled_daily_learn()

    mock_run.assert_awaited_once()
    assert mock_run.await_args.args[0] is session


@pytest.mark.asyncio
async def test_scheduled_run_logs_failures_instead_of_raising() -> None:
    with patch.object(
        scheduler_module, "AsyncSessionLocal", side_effect=RuntimeError("db down")
    ):
        await run_scheduled_daily_learn()
