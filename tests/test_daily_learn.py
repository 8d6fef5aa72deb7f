"""Tests for the daily learning job."""

from __future__ import annotations

import json

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from crud.bot_state import get_bot_state
from crud.knowledge_sources import create_source, get_source_by_name
import jobs.daily_learn as daily_learn_module
from jobs.daily_learn import JOB_NAME, NO_SOURCES_ERROR, run_daily_learn
from models.knowledge_items import KnowledgeItem


PAGES = {
    "/cats": "<html><title>Cats</title><body>Cats are great</body></html>",
    "/dogs": "<html><title>Dogs</title><body>Dogs are loyal</body></html>",
}


def _site(request: httpx.Request) -> httpx.Response:
    page = PAGES.get(request.url.path)
    if page is None:
        return httpx.Response(404)
    return httpx.Response(200, text=page)


async def _items(db: AsyncSession) -> list[KnowledgeItem]:
    result = await db.execute(select(KnowledgeItem).order_by(KnowledgeItem.id))
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_no_enabled_sources_is_an_error(db_session, make_fetcher) -> None:
    await create_source(
        db_session, name="off", url="https://example.com/cats", enabled=False
    )

    result = await run_daily_learn(db_session, make_fetcher(_site))

    assert result.success is False
    assert result.errors == [NO_SOURCES_ERROR]
    assert result.sources_processed == 0
    assert await get_bot_state(db_session, JOB_NAME) is None


@pytest.mark.asyncio
async def test_new_content_is_ingested(db_session, make_fetcher) -> None:
    await create_source(db_session, name="cats", url="https://example.com/cats")
    await create_source(db_session, name="dogs", url="https://example.com/dogs")

    result = await run_daily_learn(db_session, make_fetcher(_site))

    assert result.success is True
    assert result.sources_processed == 2
    assert result.new_knowledge == 2
    assert result.unchanged == 0
    assert result.errors == []

    items = await _items(db_session)
    assert [(i.title, i.content, i.category, i.priority) for i in items] == [
        ("Cats", "Cats are great", "cats", "medium"),
        ("Dogs", "Dogs are loyal", "dogs", "medium"),
    ]
    assert items[0].source_url == "https://example.com/cats"

    source = await get_source_by_name(db_session, "cats")
    assert source is not None
    assert source.last_fetched_at is not None


@pytest.mark.asyncio
async def test_second_run_reports_unchanged(db_session, make_fetcher) -> None:
    await create_source(db_session, name="cats", url="https://example.com/cats")
    fetcher = make_fetcher(_site)

    await run_daily_learn(db_session, fetcher)
    result = await run_daily_learn(db_session, fetcher)

    assert result.success is True
    assert result.new_knowledge == 0
    assert result.unchanged == 1
    assert len(await _items(db_session)) == 1


@pytest.mark.asyncio
async def test_failing_sources_are_recorded_and_skipped(
    db_session, make_fetcher
) -> None:
    await create_source(db_session, name="missing", url="https://example.com/nope")
    await create_source(db_session, name="internal", url="http://10.0.0.1/")
    await create_source(db_session, name="cats", url="https://example.com/cats")

    result = await run_daily_learn(db_session, make_fetcher(_site))

    assert result.success is False
    assert result.errors == ["missing: HTTP-error", "internal: SSRF-check-failed"]
    assert result.sources_processed == 1
    assert result.new_knowledge == 1

    missing = await get_source_by_name(db_session, "missing")
    assert missing is not None
    assert missing.last_fetched_at is None


@pytest.mark.asyncio
async def test_bot_state_records_summary(db_session, make_fetcher) -> None:
    await create_source(db_session, name="cats", url="https://example.com/cats")
    await create_source(db_session, name="missing", url="https://example.com/nope")

    result = await run_daily_learn(db_session, make_fetcher(_site))

    state = await get_bot_state(db_session, JOB_NAME)
    assert state is not None
    assert json.loads(state.notes_json) == {
        "sources_processed": 1,
        "new_knowledge": 1,
        "unchanged": 0,
        "errors": 1,
    }
    assert state.last_learned_at.replace(tzinfo=None) == result.timestamp.replace(
        tzinfo=None
    )


@pytest.mark.asyncio
async def test_insert_failure_rolls_back_and_continues(
    db_session, make_fetcher, monkeypatch
) -> None:
    await create_source(db_session, name="cats", url="https://example.com/cats")
    await create_source(db_session, name="dogs", url="https://example.com/dogs")

    real_create = daily_learn_module.create_knowledge_item
    calls = 0

    async def _fail_first_insert(db, **kwargs):
        nonlocal calls
        calls += 1
        if calls == 1:
            raise IntegrityError("INSERT INTO knowledge_items", {}, Exception("boom"))
        return await real_create(db, **kwargs)

    monkeypatch.setattr(
        daily_learn_module, "create_knowledge_item", _fail_first_insert
    )

    result = await run_daily_learn(db_session, make_fetcher(_site))

    assert result.success is False
    assert result.sources_processed == 1
    assert result.new_knowledge == 1
    assert len(result.errors) == 1
    assert result.errors[0].startswith("cats: ")

    items = await _items(db_session)
    assert [item.category for item in items] == ["dogs"]

    dogs = await get_source_by_name(db_session, "dogs")
    assert dogs is not None
    assert dogs.last_fetched_at is not None
    assert await get_bot_state(db_session, JOB_NAME) is not None
