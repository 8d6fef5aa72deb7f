"""``knowledge_query`` tool: search the knowledge base."""

from __future__ import annotations

import logging

from crud.knowledge import search_knowledge
from schemas.tools import KnowledgeQueryInput
from services.tools.deps import ToolDeps


logger = logging.getLogger(__name__)

KNOWLEDGE_QUERY_DESCRIPTION = (
    "Search and retrieve knowledge from the persistent knowledge base. "
    "Filter by category, priority, or keyword."
)

PREVIEW_MAX_CHARS = 300


async def tool_knowledge_query(deps: ToolDeps, args: KnowledgeQueryInput) -> str:
    logger.info(
        "Querying knowledge base: category=%s priority=%s keyword=%s limit=%d",
        args.category,
        args.priority,
        args.keyword,
        args.limit,
    )
    items = await search_knowledge(
        deps.db,
        category=args.category,
        priority=args.priority,
        keyword=args.keyword,
        limit=args.limit,
    )

    if not items:
        return (
            "# No Knowledge Found\n\n"
            "No results matched your query:\n"
            f"- Category: {args.category or 'any'}\n"
            f"- Priority: {args.priority or 'any'}\n"
            f"- Keyword: {args.keyword or 'none'}\n\n"
            "Try adjusting your search criteria."
        )

    parts = [f"# Knowledge Query Results\n\n**Found {len(items)} item(s)**\n"]
    if args.category:
        parts.append(f"**Category**: {args.category}\n")
    if args.priority:
        parts.append(f"**Priority**: {args.priority}\n")
    if args.keyword:
        parts.append(f"**Keyword**: {args.keyword}\n")
    parts.append("\n---\n\n")

    for index, item in enumerate(items, start=1):
        preview = (
            item.content[:PREVIEW_MAX_CHARS] + "..."
            if len(item.content) > PREVIEW_MAX_CHARS
            else item.content
        )
        parts.append(
            f"## {index}. {item.title}\n\n"
            f"- **ID**: {item.id}\n"
            f"- **Category**: {item.category}\n"
            f"- **Priority**: {item.priority}\n"
            f"- **Source**: {item.source_url}\n"
            f"- **Created**: {item.created_at.isoformat()}\n"
            f"- **Hash**: {item.content_hash[:16]}...\n\n"
            f"**Preview**:\n{preview}\n\n---\n\n"
        )

    return "".join(parts)
