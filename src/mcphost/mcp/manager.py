"""MCP Client Manager - owns one client per configured server."""

import asyncio
from collections.abc import Callable, Iterable
from functools import partial
from typing import Any

from mcphost.config.models import ClientSettings, ServerConfig, ServerEntry
from mcphost.config.state import ServerStateStore
from mcphost.errors import create_error
from mcphost.logging import HostLogger
from mcphost.telemetry import HostMetrics
from mcphost.types import ConnectionStatus, LogLevel, MCPTransport

from .catalog import create_tool_name
from .connection import StdioMCPClient
from .events import ClientEvent, ClientEventType, EventEmitter, ManagerEvent, ManagerEventType
from .types import AttributedTool, ServerStatus, ToolCallResult, ToolDefinition, ToolDescriptor

ClientFactory = Callable[[ServerConfig], StdioMCPClient]
ManagerListener = Callable[[ManagerEvent], None]

DEFAULT_PARAMETERS: dict[str, Any] = {"type": "object", "properties": {}}


def filter_allowed(tools: list[ToolDescriptor], allowed_tools: Iterable[str]) -> list[ToolDescriptor]:
    """Apply a server's tool allowlist (empty or ``*`` allows everything)."""
    allowed = set(allowed_tools)
    if not allowed or "*" in allowed:
        return list(tools)
    return [tool for tool in tools if tool.name in allowed]


class MCPClientManager:
    """Manages all MCP server clients.

    Built once at startup and passed to every consumer. Clients are created
    per server entry and reused across start/stop cycles. Adding and
    removing servers is serialized; starting and stopping is not, so servers
    connect concurrently.
    """

    def __init__(
        self,
        entries: Iterable[ServerEntry] = (),
        settings: ClientSettings | None = None,
        logger: HostLogger | None = None,
        metrics: HostMetrics | None = None,
        state_store: ServerStateStore | None = None,
        client_factory: ClientFactory | None = None,
    ):
        """Initialize MCP client manager.

        Args:
            entries: Configured servers with their auto-start defaults
            settings: Settings shared by every client
            logger: Optional logger
            metrics: Optional metrics recorder
            state_store: Persisted auto-start flags (in-memory if omitted)
            client_factory: Builds the client for a server config
        """
        self._settings = settings or ClientSettings()
        self._logger = logger
        self._metrics = metrics
        self._state_store = state_store or ServerStateStore(logger=logger)
        self._client_factory = client_factory or self._default_client_factory

        self._entries: dict[str, ServerEntry] = {}
        self._clients: dict[str, StdioMCPClient] = {}
        self._client_listeners: dict[str, Callable[[ClientEvent], None]] = {}
        self._events: EventEmitter[ManagerEvent] = EventEmitter("manager", logger)
        self._lock = asyncio.Lock()
        self._initialized = False

        for entry in entries:
            self._register(entry)

    def _log(self, level: LogLevel, message: str, **kwargs: Any) -> None:
        """Log message if logger available."""
        if self._logger:
            self._logger._log(level, "manager", message, kwargs)

    def _default_client_factory(self, config: ServerConfig) -> StdioMCPClient:
        return StdioMCPClient(config, self._settings, self._logger, self._metrics)

    # -- events ------------------------------------------------------------

    def on(self, listener: ManagerListener) -> None:
        self._events.on(listener)

    def off(self, listener: ManagerListener) -> None:
        self._events.off(listener)

    def _handle_client_event(self, server_id: str, event: ClientEvent) -> None:
        if event.type == ClientEventType.TOOLS:
            entry = self._entries.get(server_id)
            tools = list(event.tools)
            if entry is not None:
                tools = filter_allowed(tools, entry.config.allowed_tools)
            self._log(LogLevel.DEBUG, f"Tools updated on '{server_id}': {len(tools)} tools")
            self._events.emit(
                ManagerEvent(
                    ManagerEventType.SERVER_TOOLS_UPDATED,
                    server_id=server_id,
                    tools=tuple(tools),
                )
            )
            return

        status = {
            ClientEventType.CONNECTED: ConnectionStatus.CONNECTED,
            ClientEventType.DISCONNECTED: ConnectionStatus.DISCONNECTED,
            ClientEventType.ERROR: ConnectionStatus.ERROR,
        }[event.type]
        self._emit_status(server_id, status, event.error)

    def _emit_status(
        self, server_id: str, status: ConnectionStatus, error: str | None = None
    ) -> None:
        self._events.emit(
            ManagerEvent(
                ManagerEventType.SERVER_STATUS_CHANGED,
                server_id=server_id,
                status=status,
                error=error,
            )
        )

    # -- lifecycle ---------------------------------------------------------

    async def initialize(self) -> dict[str, ServerStatus]:
        """Load persisted state and start every auto-start server.

        Servers start concurrently. Failures are logged but don't stop
        others and are never raised.

        Returns:
            Dict of server id to status
        """
        if self._initialized:
            return self.get_status()

        self._state_store.load()
        self._initialized = True

        to_start = [sid for sid in self._entries if self.is_server_auto_start(sid)]
        if not to_start:
            self._log(LogLevel.INFO, f"{len(self._entries)} MCP servers configured, none auto-start")
            return self.get_status()

        self._log(LogLevel.INFO, f"Auto-starting {len(to_start)} server(s)")
        await asyncio.gather(*(self._auto_start(sid) for sid in to_start))

        status = self.get_status()
        connected = sum(1 for s in status.values() if s.status == ConnectionStatus.CONNECTED)
        self._log(LogLevel.INFO, f"Connected to {connected}/{len(to_start)} auto-start servers")
        return status

    async def _auto_start(self, server_id: str) -> None:
        """Start one server, catching exceptions."""
        try:
            await self.start_server(server_id)
        except Exception as e:
            self._log(LogLevel.WARN, f"Failed to auto-start '{server_id}': {e}")

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Stop every client.

        Args:
            timeout: Maximum time to wait for all stops in seconds
        """
        self._log(LogLevel.INFO, "Stopping all MCP servers")
        try:
            await asyncio.wait_for(
                asyncio.gather(
                    *(self._stop_quietly(sid) for sid in list(self._clients)),
                ),
                timeout=timeout,
            )
        except TimeoutError:
            self._log(LogLevel.WARN, f"Timeout ({timeout}s) waiting for all servers to stop")
        self._initialized = False

    async def _stop_quietly(self, server_id: str) -> None:
        try:
            await self._clients[server_id].stop()
        except Exception as e:
            self._log(LogLevel.WARN, f"Stop error on '{server_id}': {e}")

    # -- servers -----------------------------------------------------------

    def get_servers(self) -> list[ServerEntry]:
        return list(self._entries.values())

    def get_server(self, server_id: str) -> ServerEntry | None:
        return self._entries.get(server_id)

    def get_client(self, server_id: str) -> StdioMCPClient | None:
        return self._clients.get(server_id)

    def _require(self, server_id: str) -> StdioMCPClient:
        client = self._clients.get(server_id)
        if client is None:
            raise create_error("SERVER_NOT_FOUND", server_id=server_id)
        return client

    async def start_server(self, server_id: str) -> None:
        """Start one server (no-op while connecting or connected).

        Raises:
            MCPHostError(SERVER_NOT_FOUND) for unknown ids
            MCPHostError(MCP_TRANSPORT_UNSUPPORTED) for non-stdio servers
            MCPHostError from the client if spawn or handshake fails
        """
        client = self._require(server_id)
        config = client.config
        if config.transport != MCPTransport.STDIO:
            raise create_error(
                "MCP_TRANSPORT_UNSUPPORTED",
                server_name=config.name,
                transport=config.transport.value,
            )
        if client.status in (ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED):
            return

        self._emit_status(server_id, ConnectionStatus.CONNECTING)
        try:
            await client.start()
        except Exception as e:
            self._log(LogLevel.ERROR, f"Failed to start server '{server_id}': {e}")
            raise

    async def stop_server(self, server_id: str) -> None:
        await self._require(server_id).stop()

    async def call_tool(
        self,
        server_id: str,
        tool_name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> ToolCallResult:
        """Call a tool on a specific server.

        Raises:
            MCPHostError(SERVER_NOT_FOUND) if the server is unknown
            MCPHostError(TOOL_NOT_ALLOWED) if the allowlist excludes the tool
            MCPHostError(MCP_NOT_CONNECTED) if the server is not connected
        """
        client = self._require(server_id)
        allowed = set(client.config.allowed_tools)
        if allowed and "*" not in allowed and tool_name not in allowed:
            raise create_error(
                "TOOL_NOT_ALLOWED",
                server_name=client.config.name,
                tool_name=tool_name,
            )
        return await client.call_tool(tool_name, arguments, timeout=timeout)

    # -- tools -------------------------------------------------------------

    def get_all_tools(self) -> list[AttributedTool]:
        """Flattened, allowlist-filtered tools of every connected server."""
        tools = []
        for server_id, client in self._clients.items():
            if client.status != ConnectionStatus.CONNECTED:
                continue
            for tool in filter_allowed(client.get_tools(), client.config.allowed_tools):
                tools.append(
                    AttributedTool(server_id=server_id, server_name=client.config.name, tool=tool)
                )
        return tools

    def get_tool_definitions(self) -> list[ToolDefinition]:
        """Tool definitions for registration with an agent SDK."""
        return [
            ToolDefinition(
                name=create_tool_name(item.server_name, item.tool.name),
                description=f"[MCP: {item.server_name}] {item.tool.description or item.tool.name}",
                parameters=item.tool.input_schema or dict(DEFAULT_PARAMETERS),
                server_id=item.server_id,
                tool_name=item.tool.name,
            )
            for item in self.get_all_tools()
        ]

    def has_connected_servers(self) -> bool:
        return any(c.status == ConnectionStatus.CONNECTED for c in self._clients.values())

    def get_status(self) -> dict[str, ServerStatus]:
        """Get status of all servers.

        Returns:
            Dict of server id to ServerStatus
        """
        return {server_id: client.get_status() for server_id, client in self._clients.items()}

    # -- auto-start --------------------------------------------------------

    def is_server_auto_start(self, server_id: str) -> bool:
        """Persisted flag if present, otherwise the entry's default."""
        entry = self._entries.get(server_id)
        default = entry.auto_start if entry else False
        return self._state_store.is_auto_start(server_id, default)

    def set_server_auto_start(self, server_id: str, auto_start: bool) -> None:
        """Persist a server's auto-start flag (takes effect next initialize)."""
        self._require(server_id)
        if not self._state_store.set_auto_start(server_id, auto_start):
            self._log(LogLevel.WARN, f"Auto-start flag for '{server_id}' not persisted")

    # -- add / remove ------------------------------------------------------

    def _register(self, entry: ServerEntry) -> StdioMCPClient:
        server_id = entry.config.id
        if server_id in self._entries:
            raise create_error("SERVER_ALREADY_EXISTS", server_id=server_id)

        client = self._client_factory(entry.config)
        listener = partial(self._handle_client_event, server_id)
        client.on(listener)

        self._entries[server_id] = entry
        self._clients[server_id] = client
        self._client_listeners[server_id] = listener
        return client

    async def add_server(self, entry: ServerEntry) -> None:
        """Register a new server and persist its auto-start flag.

        If the manager is initialized and the entry auto-starts, the server
        is started; a start failure is logged, not raised.

        Raises:
            MCPHostError(SERVER_ALREADY_EXISTS) if the id is taken
        """
        async with self._lock:
            self._register(entry)
            self._state_store.set_auto_start(entry.config.id, entry.auto_start)
            self._log(LogLevel.INFO, f"Added server '{entry.config.id}'")

        if self._initialized and entry.auto_start:
            await self._auto_start(entry.config.id)

    async def remove_server(self, server_id: str) -> None:
        """Stop and forget a server.

        Raises:
            MCPHostError(SERVER_NOT_FOUND) for unknown ids
        """
        async with self._lock:
            await self._remove(server_id)

    async def _remove(self, server_id: str, forget: bool = True) -> None:
        client = self._require(server_id)
        try:
            await client.stop()
        finally:
            client.off(self._client_listeners.pop(server_id))
            del self._clients[server_id]
            del self._entries[server_id]
            if forget:
                self._state_store.forget(server_id)
            self._log(LogLevel.INFO, f"Removed server '{server_id}'")

    async def sync_servers(
        self,
        entries: Iterable[ServerEntry],
        settings: ClientSettings | None = None,
    ) -> None:
        """Reconcile with a new server list.

        - Remove servers that disappeared
        - Add new servers
        - Replace servers whose launch config changed (restarting running ones)
        - Replace every client when ``settings`` differ from the current ones
        """
        new_entries = {entry.config.id: entry for entry in entries}
        restart: list[str] = []
        settings_changed = settings is not None and settings != self._settings

        async with self._lock:
            self._log(LogLevel.INFO, "Handling server list change")
            if settings_changed:
                self._log(LogLevel.INFO, "Client settings changed, replacing all clients")
                self._settings = settings
            old_ids = set(self._entries)
            new_ids = set(new_entries)

            for server_id in old_ids - new_ids:
                await self._remove(server_id)

            for server_id in sorted(new_ids - old_ids):
                self._register(new_entries[server_id])

            for server_id in old_ids & new_ids:
                unchanged = self._entries[server_id].config == new_entries[server_id].config
                if unchanged and not settings_changed:
                    self._entries[server_id] = new_entries[server_id]
                    continue
                was_running = self._clients[server_id].status in (
                    ConnectionStatus.CONNECTING,
                    ConnectionStatus.CONNECTED,
                )
                self._log(LogLevel.INFO, f"Replacing server '{server_id}'")
                await self._remove(server_id, forget=False)
                self._register(new_entries[server_id])
                if was_running:
                    restart.append(server_id)

        if self._initialized:
            to_start = [
                sid
                for sid in new_ids - old_ids
                if self.is_server_auto_start(sid)
            ]
            await asyncio.gather(*(self._auto_start(sid) for sid in [*to_start, *restart]))
