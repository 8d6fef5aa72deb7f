"""Tests for knowledge_ingest, knowledge_query and the tool registry."""

from __future__ import annotations

import json

import httpx
import pytest
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import ToolNotFoundError
from crud.tool_audit import get_recent_tool_calls
from models.knowledge_items import KnowledgeItem
from schemas.auth import Principal
from schemas.tools import KnowledgeIngestInput, KnowledgeQueryInput
from services.safe_fetch import SafeFetcher, compute_content_hash
from services.tools import ToolDeps, call_tool, list_tool_definitions
from services.tools.knowledge_ingest import (
    derive_title,
    normalize_content,
    tool_knowledge_ingest,
)
from services.tools.knowledge_query import tool_knowledge_query
from services.url_safety import FetchPolicy


PRINCIPAL = Principal(kind="api-key", subject="****6789", scopes=["tools:call"])


@pytest.fixture
def deps(db_session: AsyncSession) -> ToolDeps:
    fetcher = SafeFetcher(
        FetchPolicy(allowed_domains=("example.com",)),
        transport=httpx.MockTransport(
            lambda _req: httpx.Response(200, text="<title>T</title><p>Body</p>")
        ),
    )
    return ToolDeps(db=db_session, fetcher=fetcher)


async def _all_items(db: AsyncSession) -> list[KnowledgeItem]:
    result = await db.execute(select(KnowledgeItem))
    return list(result.scalars().all())


class TestKnowledgeIngest:
    @pytest.mark.asyncio
    async def test_ingest_stores_normalized_content(self, deps: ToolDeps) -> None:
        output = await tool_knowledge_ingest(
            deps,
            KnowledgeIngestInput(
                source="manual",
                content="Python tips\n\nUse   list comprehensions.",
                category="python",
                priority="high",
            ),
        )

        items = await _all_items(deps.db)
        assert len(items) == 1
        item = items[0]
        assert item.title == "Python tips"
        assert item.content == "Python tips Use list comprehensions."
        assert item.content_hash == compute_content_hash(item.content)
        assert item.category == "python"
        assert item.priority == "high"
        assert item.source_url == "manual://ingested"
        assert output.startswith("# Knowledge Ingestion Complete")
        assert f"- **ID**: {item.id}" in output
        assert "- **Word Count**: 5" in output

    @pytest.mark.asyncio
    async def test_whitespace_variants_are_duplicates(self, deps: ToolDeps) -> None:
        await tool_knowledge_ingest(
            deps, KnowledgeIngestInput(source="rss", content="Same  content here")
        )

        output = await tool_knowledge_ingest(
            deps,
            KnowledgeIngestInput(source="api", content="Same content\nhere  "),
        )

        assert output.startswith("# Knowledge Already Exists")
        assert len(await _all_items(deps.db)) == 1

    @pytest.mark.asyncio
    async def test_defaults_and_source_url(self, deps: ToolDeps) -> None:
        await tool_knowledge_ingest(
            deps,
            KnowledgeIngestInput(
                source="document",
                content="Doc body",
                source_url="https://example.com/doc",
            ),
        )

        item = (await _all_items(deps.db))[0]
        assert item.category == "general"
        assert item.priority == "medium"
        assert item.source_url == "https://example.com/doc"

    def test_input_rejects_unknown_source(self) -> None:
        with pytest.raises(ValidationError):
            KnowledgeIngestInput(source="email", content="x")  # type: ignore[arg-type]

    def test_helpers(self) -> None:
        assert normalize_content("  a \n\t b  ") == "a b"
        assert derive_title("\n\n  First line  \nSecond") == "First line"
        assert len(derive_title("y" * 250)) == 100


class TestKnowledgeQuery:
    @pytest.mark.asyncio
    async def test_empty_result(self, deps: ToolDeps) -> None:
        output = await tool_knowledge_query(
            deps, KnowledgeQueryInput(category="missing")
        )

        assert output.startswith("# No Knowledge Found")
        assert "- Category: missing" in output
        assert "- Keyword: none" in output

    @pytest.mark.asyncio
    async def test_filters_by_category_priority_and_keyword(
        self, deps: ToolDeps
    ) -> None:
        for content, category, priority in [
            ("Asyncio event loops explained", "python", "high"),
            ("Decorators in depth", "python", "low"),
            ("Rust ownership rules", "rust", "high"),
        ]:
            await tool_knowledge_ingest(
                deps,
                KnowledgeIngestInput(
                    source="manual",
                    content=content,
                    category=category,
                    priority=priority,
                ),
            )

        by_category = await tool_knowledge_query(
            deps, KnowledgeQueryInput(category="python")
        )
        assert "**Found 2 item(s)**" in by_category

        by_priority = await tool_knowledge_query(
            deps, KnowledgeQueryInput(priority="high")
        )
        assert "**Found 2 item(s)**" in by_priority
        assert "Decorators" not in by_priority

        by_keyword = await tool_knowledge_query(
            deps, KnowledgeQueryInput(keyword="OWNERSHIP")
        )
        assert "**Found 1 item(s)**" in by_keyword
        assert "## 1. Rust ownership rules" in by_keyword

    @pytest.mark.asyncio
    async def test_limit_and_preview(self, deps: ToolDeps) -> None:
        for i in range(3):
            await tool_knowledge_ingest(
                deps,
                KnowledgeIngestInput(source="manual", content="z" * 400 + f" item {i}"),
            )

        output = await tool_knowledge_query(deps, KnowledgeQueryInput(limit=2))

        assert "**Found 2 item(s)**" in output
        assert "z" * 300 + "..." in output

    @pytest.mark.parametrize("limit", [0, 101])
    def test_limit_bounds(self, limit: int) -> None:
        with pytest.raises(ValidationError):
            KnowledgeQueryInput(limit=limit)


class TestRegistry:
    def test_lists_all_tools_with_json_schemas(self) -> None:
        definitions = {d.name: d for d in list_tool_definitions()}

        assert set(definitions) == {"web_fetch", "knowledge_ingest", "knowledge_query"}
        web_fetch = definitions["web_fetch"].model_dump(by_alias=True)
        assert "inputSchema" in web_fetch
        assert web_fetch["inputSchema"]["required"] == ["url"]
        assert set(web_fetch["inputSchema"]["properties"]) == {
            "url",
            "extract_type",
            "max_length",
        }

    @pytest.mark.asyncio
    async def test_call_records_success_audit(self, deps: ToolDeps) -> None:
        output = await call_tool(
            "knowledge_ingest",
            {"source": "manual", "content": "Audited content"},
            deps,
            PRINCIPAL,
        )

        assert output.startswith("# Knowledge Ingestion Complete")
        audits = await get_recent_tool_calls(deps.db)
        assert len(audits) == 1
        assert audits[0].tool_name == "knowledge_ingest"
        assert audits[0].status == "success"
        assert audits[0].api_key_hint == "****6789"
        assert json.loads(audits[0].params_json)["content"] == "Audited content"

    @pytest.mark.asyncio
    async def test_web_fetch_through_registry(self, deps: ToolDeps) -> None:
        output = await call_tool(
            "web_fetch", {"url": "https://example.com/page"}, deps, PRINCIPAL
        )

        assert output.startswith("# T")
        assert output.endswith("Body")

    @pytest.mark.asyncio
    async def test_invalid_arguments_raise_and_are_audited(
        self, deps: ToolDeps
    ) -> None:
        with pytest.raises(ValidationError):
            await call_tool("knowledge_query", {"limit": 500}, deps, PRINCIPAL)

        audits = await get_recent_tool_calls(deps.db, tool_name="knowledge_query")
        assert len(audits) == 1
        assert audits[0].status == "error"
        assert audits[0].error is not None
        assert audits[0].error.startswith("ValidationError")

    @pytest.mark.asyncio
    async def test_unknown_tool(self, deps: ToolDeps) -> None:
        with pytest.raises(ToolNotFoundError):
            await call_tool("teach_me", {}, deps, PRINCIPAL)

        assert await get_recent_tool_calls(deps.db) == []
