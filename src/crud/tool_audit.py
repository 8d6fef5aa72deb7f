"""CRUD operations for the tool audit trail."""

import json
from typing import Any, Literal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.tool_audit import ToolAudit


async def record_tool_call(
    db: AsyncSession,
    *,
    api_key_hint: str,
    tool_name: str,
    params: dict[str, Any],
    status: Literal["success", "error"],
    error: str | None = None,
) -> ToolAudit:
    audit = ToolAudit(
        api_key_hint=api_key_hint,
        tool_name=tool_name,
        params_json=json.dumps(params, default=str, sort_keys=True),
        status=status,
        error=error,
    )
    db.add(audit)
    await db.commit()
    await db.refresh(audit)
    return audit


async def get_recent_tool_calls(
    db: AsyncSession, *, tool_name: str | None = None, limit: int = 100
) -> list[ToolAudit]:
    query = select(ToolAudit)
    if tool_name:
        query = query.where(ToolAudit.tool_name == tool_name)
    query = query.order_by(ToolAudit.created_at.desc(), ToolAudit.id.desc())
    query = query.limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())
