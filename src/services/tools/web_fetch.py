"""``web_fetch`` tool: bounded, allowlisted page fetching rendered as Markdown."""

from __future__ import annotations

import logging

from schemas.tools import WebFetchInput
from services.safe_fetch import FetchError, FetchResult, is_fetch_error
from services.tools.deps import ToolDeps


logger = logging.getLogger(__name__)

TRUNCATION_NOTE = "\n\n... (truncated to max length)"

WEB_FETCH_DESCRIPTION = (
    "Controlled web content fetching with SSRF protection, timeouts and size "
    "limits. Only fetches from approved domains."
)


def format_fetch_error(error: FetchError) -> str:
    lines = [
        "# Fetch Failed",
        "",
        f"**URL**: {error.url}",
        f"**Reason**: {error.reason}",
    ]
    if error.details:
        lines.append(f"**Details**: {error.details}")
    if error.reason == "SSRF-check-failed":
        lines += [
            "",
            "For security reasons only approved public domains can be fetched.",
        ]
    return "\n".join(lines)


def _format_text(result: FetchResult) -> str:
    return (
        f"# {result.title}\n\n"
        f"**Source**: {result.final_url or result.url}\n\n"
        f"{result.content}"
    )


def _format_metadata(result: FetchResult) -> str:
    lines = [
        f"# Metadata from {result.url}",
        "",
        f"- **Title**: {result.title}",
        f"- **Description**: {result.description or 'n/a'}",
        f"- **Final URL**: {result.final_url or result.url}",
        f"- **Status**: {result.status_code}",
        f"- **Fetched At**: {result.fetched_at.isoformat()}",
        f"- **Content Length**: {len(result.content)} characters",
        f"- **Content Hash**: {result.content_hash}",
        f"- **Links**: {len(result.links)}",
    ]
    return "\n".join(lines)


def _format_links(result: FetchResult) -> str:
    if not result.links:
        return f"# Links found in {result.url}\n\nNo links found."
    listing = "\n".join(f"- {link}" for link in result.links)
    return (
        f"# Links found in {result.url}\n\n{listing}\n\n"
        f"Total links extracted: {len(result.links)}"
    )


_FORMATTERS = {
    "text": _format_text,
    "metadata": _format_metadata,
    "links": _format_links,
}


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length] + TRUNCATION_NOTE


async def tool_web_fetch(deps: ToolDeps, args: WebFetchInput) -> str:
    """Fetch ``args.url`` through the safe fetcher and render the requested view.

    Fetch failures are returned as a Markdown warning rather than raised, so
    the calling client always receives a readable result.
    """
    result = await deps.fetcher.fetch(args.url)
    if is_fetch_error(result):
        logger.info("web_fetch failed for %s: %s", args.url, result.reason)
        return format_fetch_error(result)

    rendered = _FORMATTERS[args.extract_type](result)
    return truncate(rendered, args.max_length)
