"""Schemas for MCP tool definitions, inputs and calls."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class WebFetchInput(BaseModel):
    """Arguments of the ``web_fetch`` tool."""

    url: Annotated[str, Field(min_length=1, description="URL to fetch")]
    extract_type: Annotated[
        Literal["text", "metadata", "links"],
        Field(description="What to extract from the page"),
    ] = "text"
    max_length: Annotated[
        int,
        Field(ge=1, le=100_000, description="Maximum characters of text to return"),
    ] = 5000

    model_config = ConfigDict(extra="forbid")


class KnowledgeIngestInput(BaseModel):
    """Arguments of the ``knowledge_ingest`` tool."""

    source: Annotated[
        Literal["rss", "api", "document", "manual"],
        Field(description="Where the content came from"),
    ]
    content: Annotated[str, Field(min_length=1, description="Content to store")]
    category: Annotated[
        str, Field(min_length=1, max_length=100, description="Knowledge category")
    ] = "general"
    priority: Annotated[
        Literal["low", "medium", "high"], Field(description="Priority level")
    ] = "medium"
    source_url: Annotated[
        str | None, Field(description="URL the content was taken from")
    ] = None

    model_config = ConfigDict(extra="forbid")


class KnowledgeQueryInput(BaseModel):
    """Arguments of the ``knowledge_query`` tool."""

    category: Annotated[str | None, Field(description="Filter by category")] = None
    priority: Annotated[
        Literal["low", "medium", "high"] | None,
        Field(description="Filter by priority"),
    ] = None
    keyword: Annotated[
        str | None, Field(description="Search in title and content")
    ] = None
    limit: Annotated[int, Field(ge=1, le=100, description="Maximum results")] = 20

    model_config = ConfigDict(extra="forbid")


class ToolDefinition(BaseModel):
    """Public description of a tool, as listed to MCP clients."""

    name: str
    description: str
    input_schema: dict[str, Any] = Field(alias="inputSchema")

    model_config = ConfigDict(populate_by_name=True)


class ToolCallRequest(BaseModel):
    """Body of ``POST /tools/call``."""

    name: Annotated[str, Field(min_length=1, description="Registered tool name")]
    arguments: Annotated[
        dict[str, Any], Field(default_factory=dict, description="Tool arguments")
    ]

    model_config = ConfigDict(extra="forbid")


class ToolCallResult(BaseModel):
    name: str
    result: str = Field(..., description="Markdown text produced by the tool")
