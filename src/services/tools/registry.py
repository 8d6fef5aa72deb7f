"""Tool registry: definitions listed to clients and audited dispatch."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from core.error_handler import StructuredLogger
from core.exceptions import ToolNotFoundError
from crud.tool_audit import record_tool_call
from schemas.auth import Principal
from schemas.tools import (
    KnowledgeIngestInput,
    KnowledgeQueryInput,
    ToolDefinition,
    WebFetchInput,
)
from services.tools.deps import ToolDeps
from services.tools.knowledge_ingest import (
    KNOWLEDGE_INGEST_DESCRIPTION,
    tool_knowledge_ingest,
)
from services.tools.knowledge_query import (
    KNOWLEDGE_QUERY_DESCRIPTION,
    tool_knowledge_query,
)
from services.tools.web_fetch import WEB_FETCH_DESCRIPTION, tool_web_fetch


logger = StructuredLogger(__name__)

ToolHandler = Callable[[ToolDeps, Any], Awaitable[str]]


@dataclass(frozen=True)
class RegisteredTool:
    name: str
    description: str
    input_model: type[BaseModel]
    handler: ToolHandler

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            input_schema=self.input_model.model_json_schema(),
        )


TOOLS: dict[str, RegisteredTool] = {
    tool.name: tool
    for tool in (
        RegisteredTool(
            "web_fetch", WEB_FETCH_DESCRIPTION, WebFetchInput, tool_web_fetch
        ),
        RegisteredTool(
            "knowledge_ingest",
            KNOWLEDGE_INGEST_DESCRIPTION,
            KnowledgeIngestInput,
            tool_knowledge_ingest,
        ),
        RegisteredTool(
            "knowledge_query",
            KNOWLEDGE_QUERY_DESCRIPTION,
            KnowledgeQueryInput,
            tool_knowledge_query,
        ),
    )
}


def list_tool_definitions() -> list[ToolDefinition]:
    return [tool.definition() for tool in TOOLS.values()]


async def call_tool(
    name: str,
    arguments: dict[str, Any],
    deps: ToolDeps,
    principal: Principal,
) -> str:
    """Validate arguments, run the named tool and record an audit row.

    Raises:
        ToolNotFoundError: If ``name`` is not registered
        ValidationError: If ``arguments`` do not match the tool's input model
    """
    tool = TOOLS.get(name)
    if tool is None:
        raise ToolNotFoundError(f"Unknown tool: {name}")

    try:
        args = tool.input_model.model_validate(arguments)
        result = await tool.handler(deps, args)
    except Exception as exc:
        # A failed handler may leave the session mid-transaction
        await deps.db.rollback()
        await record_tool_call(
            deps.db,
            api_key_hint=principal.subject,
            tool_name=name,
            params=arguments,
            status="error",
            error=f"{exc.__class__.__name__}: {exc}",
        )
        logger.warning(
            "Tool call failed",
            tool=name,
            principal=principal.subject,
            error_type=exc.__class__.__name__,
        )
        raise

    await record_tool_call(
        deps.db,
        api_key_hint=principal.subject,
        tool_name=name,
        params=arguments,
        status="success",
    )
    logger.info("Tool call succeeded", tool=name, principal=principal.subject)
    return result
