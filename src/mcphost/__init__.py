"""mcphost - Host-side MCP client for stdio servers.

Spawns MCP servers as child processes, speaks JSON-RPC 2.0 over their
stdin/stdout and aggregates their tools behind one manager.
"""

from mcphost.application import MCPHostApplication
from mcphost.mcp import MCPClientManager, StdioMCPClient

__version__ = "0.1.0"
__all__ = ["__version__", "MCPHostApplication", "MCPClientManager", "StdioMCPClient"]
