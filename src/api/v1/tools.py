"""API endpoints for listing and calling MCP tools."""

from typing import Annotated

from fastapi import APIRouter, Depends

from core.config import Settings, get_settings
from core.security import SCOPE_TOOLS_CALL, SCOPE_TOOLS_READ
from dependencies.auth import require_scope
from dependencies.db import DbSession
from schemas.api import ApiResponse
from schemas.auth import Principal
from schemas.tools import ToolCallRequest, ToolCallResult, ToolDefinition
from services.safe_fetch import SafeFetcher
from services.tools import ToolDeps, call_tool, list_tool_definitions


router = APIRouter(prefix="/tools", tags=["tools"])


def get_fetcher(settings: Annotated[Settings, Depends(get_settings)]) -> SafeFetcher:
    """Build a fetcher bound to the current fetch policy."""
    return SafeFetcher(settings.fetch_policy())


@router.get(
    "",
    summary="List tools",
    response_model=ApiResponse[list[ToolDefinition]],
    responses={
        401: {"description": "Authentication required"},
        403: {"description": "Missing tools:read scope"},
    },
)
async def list_tools(
    _principal: Annotated[Principal, Depends(require_scope(SCOPE_TOOLS_READ))],
) -> ApiResponse[list[ToolDefinition]]:
    return ApiResponse(
        data=list_tool_definitions(), message="Tools retrieved successfully"
    )


@router.post(
    "/call",
    summary="Call a tool",
    response_model=ApiResponse[ToolCallResult],
    description=(
        "Validate the arguments against the tool's input schema, run it and "
        "return its Markdown result. Every call is recorded in the audit log."
    ),
    responses={
        401: {"description": "Authentication required"},
        403: {"description": "Missing tools:call scope"},
        404: {"description": "Unknown tool"},
        422: {"description": "Arguments do not match the tool's input schema"},
    },
)
async def call_tool_endpoint(
    request: ToolCallRequest,
    db: DbSession,
    fetcher: Annotated[SafeFetcher, Depends(get_fetcher)],
    principal: Annotated[Principal, Depends(require_scope(SCOPE_TOOLS_CALL))],
) -> ApiResponse[ToolCallResult]:
    result = await call_tool(
        request.name,
        request.arguments,
        ToolDeps(db=db, fetcher=fetcher),
        principal,
    )
    return ApiResponse(
        data=ToolCallResult(name=request.name, result=result),
        message="Tool executed successfully",
    )
