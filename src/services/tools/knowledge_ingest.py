"""``knowledge_ingest`` tool: store deduplicated knowledge."""

from __future__ import annotations

import re
from datetime import UTC, datetime

from core.error_handler import StructuredLogger
from crud.knowledge import create_knowledge_item, get_knowledge_by_hash
from schemas.tools import KnowledgeIngestInput
from services.safe_fetch import compute_content_hash
from services.tools.deps import ToolDeps


logger = StructuredLogger(__name__)

KNOWLEDGE_INGEST_DESCRIPTION = (
    "Ingest knowledge from multiple sources for daily updates. Supports RSS, "
    "APIs, documents and manual input. Duplicate content is detected by hash."
)

TITLE_MAX_CHARS = 100
SUMMARY_MAX_CHARS = 200

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_content(content: str) -> str:
    """Collapse whitespace runs so reformatted copies hash identically."""
    return _WHITESPACE_RE.sub(" ", content).strip()


def derive_title(content: str) -> str:
    """First non-blank line, capped at ``TITLE_MAX_CHARS``."""
    for line in content.splitlines():
        if line.strip():
            return line.strip()[:TITLE_MAX_CHARS]
    return content.strip()[:TITLE_MAX_CHARS]


async def tool_knowledge_ingest(deps: ToolDeps, args: KnowledgeIngestInput) -> str:
    normalized = normalize_content(args.content)
    content_hash = compute_content_hash(normalized)

    existing = await get_knowledge_by_hash(deps.db, content_hash)
    if existing is not None:
        logger.info(
            "Knowledge already exists, skipping", hash=content_hash, id=existing.id
        )
        return (
            "# Knowledge Already Exists\n\n"
            f"**Content Hash**: {content_hash}\n"
            f"**Existing ID**: {existing.id}\n"
            f"**Category**: {existing.category}\n"
            f"**Created**: {existing.created_at.isoformat()}\n\n"
            "This content has already been ingested. No duplicate entry created."
        )

    item = await create_knowledge_item(
        deps.db,
        source_url=args.source_url or f"{args.source}://ingested",
        title=derive_title(args.content),
        content=normalized,
        content_hash=content_hash,
        category=args.category,
        priority=args.priority,
    )
    logger.info(
        "Knowledge ingested",
        id=item.id,
        category=item.category,
        priority=item.priority,
        hash=content_hash,
    )

    summary = (
        normalized[:SUMMARY_MAX_CHARS] + "..."
        if len(normalized) > SUMMARY_MAX_CHARS
        else normalized
    )
    word_count = len(normalized.split())
    return (
        "# Knowledge Ingestion Complete\n\n"
        "## Details\n"
        f"- **ID**: {item.id}\n"
        f"- **Source**: {args.source}\n"
        f"- **Category**: {item.category}\n"
        f"- **Priority**: {item.priority}\n"
        f"- **Timestamp**: {datetime.now(UTC).isoformat()}\n"
        f"- **Word Count**: {word_count}\n"
        f"- **Content Hash**: {content_hash[:16]}...\n\n"
        f"## Summary\n{summary}"
    )
