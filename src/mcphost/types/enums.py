"""Shared enumerations for mcphost."""

from enum import Enum


class LogLevel(str, Enum):
    """Log verbosity level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class LogFormat(str, Enum):
    """Log output format."""

    COLORED = "colored"
    JSON = "json"


class MCPTransport(str, Enum):
    """MCP connection transport type."""

    STDIO = "stdio"
    HTTP = "http"
    SSE = "sse"


class ToolSource(str, Enum):
    """Where a catalog tool comes from."""

    BUILTIN = "builtin"
    PLUGIN = "plugin"
    MCP = "mcp"


class ConnectionStatus(str, Enum):
    """MCP server connection status."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    CONNECTING = "connecting"
