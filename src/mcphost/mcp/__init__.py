"""mcphost MCP - stdio transport, clients and the multi-server manager."""

from .catalog import (
    ToolCallOutcome,
    ToolInfo,
    build_tool_catalog,
    call_tool_safely,
    create_tool_name,
    extract_original_tool_name,
    format_tool_result,
    status_label,
)
from .connection import StdioMCPClient
from .correlator import PendingRequest, RequestCorrelator
from .events import ClientEvent, ClientEventType, EventEmitter, ManagerEvent, ManagerEventType
from .framer import LineFramer
from .manager import MCPClientManager
from .process import ProcessSupervisor
from .protocol import JSONRPCMessage, MessageKind
from .types import (
    AttributedTool,
    ServerStatus,
    ToolCallResult,
    ToolDefinition,
    ToolDescriptor,
)

__all__ = [
    # Client
    "StdioMCPClient",
    # Manager
    "MCPClientManager",
    # Transport
    "LineFramer",
    "JSONRPCMessage",
    "MessageKind",
    "RequestCorrelator",
    "PendingRequest",
    "ProcessSupervisor",
    # Events
    "ClientEvent",
    "ClientEventType",
    "ManagerEvent",
    "ManagerEventType",
    "EventEmitter",
    # Types
    "ToolDescriptor",
    "ToolCallResult",
    "ServerStatus",
    "AttributedTool",
    "ToolDefinition",
    # Catalog
    "ToolInfo",
    "ToolCallOutcome",
    "build_tool_catalog",
    "call_tool_safely",
    "create_tool_name",
    "extract_original_tool_name",
    "format_tool_result",
    "status_label",
]
