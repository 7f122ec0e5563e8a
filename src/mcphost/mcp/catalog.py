"""Tool catalog - collaborator-facing views of MCP tools.

Builds the records a tool picker, an agent runtime and a settings surface
consume from the manager: prefixed tool names, catalog entries, status
labels and inline-renderable call results.
"""

import json
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from mcphost.errors import MCPHostError
from mcphost.types import ConnectionStatus, ToolSource

from .types import ToolCallResult

if TYPE_CHECKING:
    from .manager import MCPClientManager

TOOL_NAME_PREFIX = "mcp_"

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_]")
_PREFIX_PATTERN = re.compile(r"^mcp_[^_]+_")

_STATUS_LABELS = {
    ConnectionStatus.CONNECTED: "Connected",
    ConnectionStatus.CONNECTING: "Connecting",
    ConnectionStatus.ERROR: "Error",
    ConnectionStatus.DISCONNECTED: "Stopped",
}


@dataclass(frozen=True)
class ToolInfo:
    """Catalog entry for one tool."""

    id: str
    display_name: str
    description: str
    source: ToolSource = ToolSource.MCP
    server_id: str | None = None
    server_name: str | None = None
    enabled_by_default: bool = False


@dataclass
class ToolCallOutcome:
    """Result of a tool call made on behalf of an agent runtime."""

    success: bool
    result: ToolCallResult | None = None
    error: str | None = None


def sanitize_server_name(server_name: str) -> str:
    return _UNSAFE_NAME_CHARS.sub("_", server_name)


def create_tool_name(server_name: str, tool_name: str) -> str:
    """Build the collision-free name ``mcp_<server>_<tool>``."""
    return f"{TOOL_NAME_PREFIX}{sanitize_server_name(server_name)}_{tool_name}"


def extract_original_tool_name(prefixed_name: str) -> str:
    """Strip the ``mcp_<server>_`` prefix.

    Server names that contain underscores cannot be told apart from the
    tool name, so only the first segment after ``mcp_`` is removed.
    """
    return _PREFIX_PATTERN.sub("", prefixed_name, count=1)


def display_name(tool_name: str) -> str:
    """``search_notes`` -> ``Search Notes``."""
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), tool_name.replace("_", " "))


def status_label(status: ConnectionStatus) -> str:
    return _STATUS_LABELS.get(status, "Stopped")


def build_tool_catalog(manager: "MCPClientManager") -> list[ToolInfo]:
    """Catalog entries for every tool of every connected server.

    MCP tools are disabled by default; the user opts in per tool.
    """
    catalog = []
    for attributed in manager.get_all_tools():
        tool = attributed.tool
        catalog.append(
            ToolInfo(
                id=create_tool_name(attributed.server_name, tool.name),
                display_name=display_name(tool.name),
                description=tool.description or tool.name,
                source=ToolSource.MCP,
                server_id=attributed.server_id,
                server_name=attributed.server_name,
                enabled_by_default=False,
            )
        )
    return catalog


def group_by_server(catalog: list[ToolInfo]) -> dict[str, list[ToolInfo]]:
    """Group catalog entries under ``mcp:<server name>`` keys."""
    grouped: dict[str, list[ToolInfo]] = {}
    for info in catalog:
        if info.source != ToolSource.MCP or not info.server_name:
            continue
        grouped.setdefault(f"mcp:{info.server_name}", []).append(info)
    return grouped


async def call_tool_safely(
    manager: "MCPClientManager",
    server_id: str,
    tool_name: str,
    arguments: dict[str, Any] | None = None,
) -> ToolCallOutcome:
    """Call a tool and capture transport failures as an outcome."""
    try:
        result = await manager.call_tool(server_id, tool_name, arguments)
    except MCPHostError as e:
        return ToolCallOutcome(success=False, error=e.message)
    return ToolCallOutcome(success=True, result=result)


def format_tool_result(outcome: ToolCallOutcome) -> str:
    """Render an outcome as the text an agent sees in place of the result.

    Text content is returned as-is; non-text content is returned as JSON;
    failures become ``{"success": false, "error": ...}``.
    """
    if not outcome.success or outcome.result is None:
        return json.dumps({"success": False, "error": outcome.error})

    result = outcome.result
    has_only_text = bool(result.content) and all(
        isinstance(item, dict) and item.get("type") == "text" for item in result.content
    )
    if has_only_text and not result.is_error:
        return result.text
    return json.dumps(result.raw)
