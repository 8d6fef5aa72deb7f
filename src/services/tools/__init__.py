"""MCP tools package."""

from services.tools.deps import ToolDeps
from services.tools.registry import TOOLS, call_tool, list_tool_definitions


__all__ = ["TOOLS", "ToolDeps", "call_tool", "list_tool_definitions"]
