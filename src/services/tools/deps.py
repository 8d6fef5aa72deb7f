"""Tool dependencies - shared types for the registry and tools."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from services.safe_fetch import SafeFetcher


@dataclass(frozen=True)
class ToolDeps:
    """Dependencies injected into every tool call."""

    db: AsyncSession
    fetcher: SafeFetcher
