"""MCP client types for mcphost."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from mcphost.types import ConnectionStatus


@dataclass(frozen=True)
class ToolDescriptor:
    """A tool advertised by an MCP server in ``tools/list``."""

    name: str
    description: str | None = None
    input_schema: dict[str, Any] | None = None

    @classmethod
    def from_wire(cls, data: Any) -> "ToolDescriptor | None":
        """Build from a ``tools/list`` entry.

        Returns:
            ToolDescriptor, or None when the entry has no usable name
        """
        if not isinstance(data, dict):
            return None
        name = data.get("name")
        if not isinstance(name, str) or not name:
            return None
        description = data.get("description")
        input_schema = data.get("inputSchema")
        return cls(
            name=name,
            description=description if isinstance(description, str) else None,
            input_schema=input_schema if isinstance(input_schema, dict) else None,
        )

    def to_wire(self) -> dict[str, Any]:
        """Serialize back to MCP field names."""
        data: dict[str, Any] = {"name": self.name}
        if self.description is not None:
            data["description"] = self.description
        if self.input_schema is not None:
            data["inputSchema"] = self.input_schema
        return data


@dataclass
class ServerStatus:
    """Status of an MCP server connection.

    Read by settings surfaces; ``error`` holds the last error message.
    """

    id: str
    name: str
    status: ConnectionStatus
    tools: list[ToolDescriptor] = field(default_factory=list)
    error: str | None = None
    pid: int | None = None
    connected_at: datetime | None = None


@dataclass
class ToolCallResult:
    """Result of ``tools/call``, passed through verbatim.

    ``is_error`` is the server's tool-level ``isError`` flag; transport
    failures are raised as MCPHostError instead.
    """

    content: list[dict[str, Any]]
    is_error: bool = False
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_wire(cls, result: Any) -> "ToolCallResult":
        if not isinstance(result, dict):
            return cls(content=[], is_error=False, raw={"result": result})
        content = result.get("content")
        return cls(
            content=content if isinstance(content, list) else [],
            is_error=bool(result.get("isError", False)),
            raw=result,
        )

    @property
    def text(self) -> str:
        """Concatenated text of all ``text`` content items."""
        parts = []
        for item in self.content:
            if isinstance(item, dict) and item.get("type") == "text":
                parts.append(str(item.get("text", "")))
        return "\n".join(parts)


@dataclass(frozen=True)
class AttributedTool:
    """A tool together with the server that provides it."""

    server_id: str
    server_name: str
    tool: ToolDescriptor


@dataclass(frozen=True)
class ToolDefinition:
    """Tool definition for agent runtimes (prefixed, collision-free name)."""

    name: str
    description: str
    parameters: dict[str, Any]
    server_id: str
    tool_name: str
