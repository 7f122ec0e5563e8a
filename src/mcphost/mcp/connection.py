"""MCP Connection - single-server stdio client and its state machine."""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from functools import partial
from typing import Any

from mcphost.config.models import ClientSettings, ServerConfig
from mcphost.errors import MCPHostError, create_error
from mcphost.logging import HostLogger
from mcphost.telemetry import HostMetrics
from mcphost.types import ConnectionStatus, LogLevel

from .correlator import PendingRequest, RequestCorrelator
from .events import ClientEvent, ClientEventType, EventEmitter
from .framer import LineFramer
from .process import ProcessSupervisor, describe_exit
from .protocol import JSONRPCMessage, MessageKind
from .types import ServerStatus, ToolCallResult, ToolDescriptor

# Upper bound on the best-effort shutdown request made by stop()
SHUTDOWN_TIMEOUT = 2.0

TOOLS_CHANGED_NOTIFICATION = "notifications/tools/list_changed"
LOG_NOTIFICATION = "notifications/message"

# MCP log levels (RFC 5424 names) -> our levels
_SERVER_LOG_LEVELS = {
    "debug": LogLevel.DEBUG,
    "info": LogLevel.INFO,
    "notice": LogLevel.INFO,
    "warning": LogLevel.WARN,
    "error": LogLevel.ERROR,
    "critical": LogLevel.ERROR,
    "alert": LogLevel.ERROR,
    "emergency": LogLevel.ERROR,
}

ClientListener = Callable[[ClientEvent], None]


class StdioMCPClient:
    """Client for one MCP server spoken to over the child's stdin/stdout.

    State machine::

        disconnected -> connecting -> connected -> disconnected
                             |                          ^
                             +--------> error ----------+ (start() retries)

    The id counter and pending-request table belong to this client alone,
    so clients for different servers never block each other.
    """

    def __init__(
        self,
        config: ServerConfig,
        settings: ClientSettings | None = None,
        logger: HostLogger | None = None,
        metrics: HostMetrics | None = None,
    ):
        """Initialize client.

        Args:
            config: Server launch description
            settings: Timeouts and handshake parameters
            logger: Optional logger
            metrics: Optional metrics recorder
        """
        self.config = config
        self.settings = settings or ClientSettings()
        self._logger = logger.server(config.name) if logger else None
        self._metrics = metrics

        self._status = ConnectionStatus.DISCONNECTED
        self._tools: list[ToolDescriptor] = []
        self._last_error: str | None = None
        self._server_info: dict[str, Any] | None = None
        self._connected_at: datetime | None = None

        # Bumped by start() and stop(); a start() that finds it changed lost the race
        self._epoch = 0
        self._stopping = False
        self._supervisor: ProcessSupervisor | None = None
        self._framer = LineFramer()
        self._correlator = RequestCorrelator(
            server_name=config.name,
            default_timeout=self.settings.request_timeout,
            on_settled=self._on_request_settled,
        )
        self._events: EventEmitter[ClientEvent] = EventEmitter(f"mcp.{config.name}", logger)
        self._background: set[asyncio.Task[None]] = set()

    def _log(self, level: LogLevel, message: str, **context: Any) -> None:
        """Log message if logger available."""
        if self._logger:
            self._logger.log(level, message, **context)

    # -- queries -----------------------------------------------------------

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def status(self) -> ConnectionStatus:
        """Current connection status."""
        return self._status

    @property
    def error(self) -> str | None:
        """Message of the last error, cleared by the next start()."""
        return self._last_error

    @property
    def server_info(self) -> dict[str, Any] | None:
        """``serverInfo`` reported by the server during initialize."""
        return self._server_info

    @property
    def connected_at(self) -> datetime | None:
        return self._connected_at

    @property
    def pending_requests(self) -> int:
        return len(self._correlator)

    def get_error(self) -> str | None:
        return self._last_error

    def get_tools(self) -> list[ToolDescriptor]:
        """Tools discovered by the last successful tools/list."""
        return list(self._tools)

    def get_pid(self) -> int | None:
        return self._supervisor.pid if self._supervisor else None

    def get_status(self) -> ServerStatus:
        """Get detailed status.

        Returns:
            ServerStatus with current state
        """
        return ServerStatus(
            id=self.config.id,
            name=self.config.name,
            status=self._status,
            tools=list(self._tools),
            error=self._last_error,
            pid=self.get_pid(),
            connected_at=self._connected_at,
        )

    # -- listeners ---------------------------------------------------------

    def on(self, listener: ClientListener) -> None:
        """Register an event listener (connected/disconnected/error/tools)."""
        self._events.on(listener)

    def off(self, listener: ClientListener) -> None:
        self._events.off(listener)

    # -- lifecycle ---------------------------------------------------------

    async def start(self) -> None:
        """Spawn the server and run the initialize / tools/list handshake.

        No-op while connecting or connected. From ``error`` the full sequence
        is retried.

        Raises:
            MCPHostError if spawn or handshake fails (status becomes ERROR)
        """
        if self._status in (ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED):
            self._log(LogLevel.DEBUG, f"start() ignored while {self._status.value}")
            return

        self._epoch += 1
        epoch = self._epoch
        self._status = ConnectionStatus.CONNECTING
        self._last_error = None
        self._log(LogLevel.INFO, "Connecting")

        try:
            await self._spawn()
            result = await self._request(
                "initialize",
                {
                    "protocolVersion": self.settings.protocol_version,
                    "capabilities": {"tools": {}},
                    "clientInfo": {
                        "name": self.settings.client_name,
                        "version": self.settings.client_version,
                    },
                },
            )
            self._accept_initialize(result)
            self._send_notification("notifications/initialized")
            tools = await self._list_tools()
        except asyncio.CancelledError:
            if epoch == self._epoch and self._status == ConnectionStatus.CONNECTING:
                self._abandon_start()
            raise
        except Exception as e:
            if epoch == self._epoch and self._status == ConnectionStatus.CONNECTING:
                await self._fail(e)
            raise

        if epoch != self._epoch or self._status != ConnectionStatus.CONNECTING:
            # stop() ran while the last tools/list response was being delivered
            raise create_error("MCP_CONNECTION_CLOSED", server_name=self.config.name)

        self._tools = tools
        self._status = ConnectionStatus.CONNECTED
        self._connected_at = datetime.now(UTC)
        if self._metrics:
            self._metrics.record_connected(self.config.name)
        if self._logger:
            self._logger.connected(len(tools), self._server_info)

        self._events.emit(ClientEvent(ClientEventType.TOOLS, tools=tuple(tools)))
        self._events.emit(ClientEvent(ClientEventType.CONNECTED))

    async def stop(self) -> None:
        """Disconnect and kill the server process.

        No-op when already disconnected. Every pending request is rejected
        with MCP_CONNECTION_CLOSED.
        """
        if self._status == ConnectionStatus.DISCONNECTED or self._stopping:
            return

        self._epoch += 1
        self._stopping = True
        was_connected = self._status == ConnectionStatus.CONNECTED
        try:
            try:
                if was_connected:
                    try:
                        await self._request(
                            "shutdown",
                            timeout=min(SHUTDOWN_TIMEOUT, self.settings.request_timeout),
                        )
                    except Exception as e:
                        self._log(LogLevel.DEBUG, f"Shutdown request failed: {e}")
            finally:
                supervisor = self._cleanup("Client stopped")
                self._status = ConnectionStatus.DISCONNECTED
                if was_connected and self._metrics:
                    self._metrics.record_disconnected(self.config.name)
                if self._logger:
                    self._logger.disconnected()
                self._events.emit(ClientEvent(ClientEventType.DISCONNECTED))

            if supervisor is not None:
                await supervisor.wait_closed(timeout=self.settings.kill_timeout + 1.0)
        finally:
            self._stopping = False

    async def restart(self) -> None:
        await self.stop()
        await self.start()

    # -- operations --------------------------------------------------------

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> ToolCallResult:
        """Invoke a tool.

        Tool-level failures come back as ``ToolCallResult(is_error=True)``;
        only transport-level failures raise.

        Args:
            name: Tool name as reported by tools/list
            arguments: Tool arguments
            timeout: Per-call override of the request timeout

        Returns:
            ToolCallResult with the server's content

        Raises:
            MCPHostError(MCP_NOT_CONNECTED) if not connected
            MCPHostError(MCP_REQUEST_TIMEOUT) if no response arrives in time
            MCPHostError(MCP_RPC_ERROR) if the server returns a JSON-RPC error
        """
        if self._status != ConnectionStatus.CONNECTED:
            raise create_error(
                "MCP_NOT_CONNECTED",
                server_name=self.config.name,
                tool_name=name,
            )

        try:
            result = await self._request(
                "tools/call",
                {"name": name, "arguments": arguments or {}},
                timeout=timeout,
            )
        except MCPHostError as e:
            raise e.with_context(tool_name=name) from e
        return ToolCallResult.from_wire(result)

    async def refresh_tools(self) -> list[ToolDescriptor]:
        """Re-run tools/list and replace the tool list wholesale.

        Raises:
            MCPHostError(MCP_NOT_CONNECTED) if not connected
        """
        if self._status != ConnectionStatus.CONNECTED:
            raise create_error("MCP_NOT_CONNECTED", server_name=self.config.name)

        tools = await self._list_tools()
        if self._status == ConnectionStatus.CONNECTED:
            self._tools = tools
            self._log(LogLevel.INFO, f"Tools refreshed ({len(tools)} tools)")
            self._events.emit(ClientEvent(ClientEventType.TOOLS, tools=tuple(tools)))
        return tools

    # -- handshake helpers -------------------------------------------------

    async def _spawn(self) -> None:
        supervisor: ProcessSupervisor

        def on_stdout(chunk: bytes) -> None:
            self._handle_stdout(supervisor, chunk)

        def on_exit(returncode: int | None) -> None:
            self._handle_exit(supervisor, returncode)

        def on_error(error: BaseException) -> None:
            self._handle_process_error(supervisor, error)

        supervisor = ProcessSupervisor(
            self.config,
            on_stdout=on_stdout,
            on_exit=on_exit,
            on_error=on_error,
            logger=self._logger,
            kill_timeout=self.settings.kill_timeout,
        )
        self._supervisor = supervisor
        await supervisor.spawn(startup_grace=self.settings.startup_grace)

    def _accept_initialize(self, result: Any) -> None:
        if not isinstance(result, dict):
            raise create_error(
                "MCP_PROTOCOL_ERROR",
                server_name=self.config.name,
                method="initialize",
                detail="Expected an object result",
            )
        server_info = result.get("serverInfo")
        self._server_info = server_info if isinstance(server_info, dict) else None
        negotiated = result.get("protocolVersion")
        if negotiated and negotiated != self.settings.protocol_version:
            self._log(
                LogLevel.DEBUG,
                f"Server negotiated protocol version {negotiated}",
            )

    async def _list_tools(self) -> list[ToolDescriptor]:
        """Fetch every tools/list page (bounded by max_tool_pages)."""
        tools: list[ToolDescriptor] = []
        cursor: str | None = None

        for _ in range(max(1, self.settings.max_tool_pages)):
            params: dict[str, Any] = {"cursor": cursor} if cursor else {}
            result = await self._request("tools/list", params)
            if not isinstance(result, dict) or not isinstance(result.get("tools"), list):
                raise create_error(
                    "MCP_PROTOCOL_ERROR",
                    server_name=self.config.name,
                    method="tools/list",
                    detail="Expected an object with a 'tools' array",
                )
            for item in result["tools"]:
                tool = ToolDescriptor.from_wire(item)
                if tool is None:
                    self._log(LogLevel.WARN, f"Skipping tool without a name: {item!r}")
                    continue
                tools.append(tool)

            next_cursor = result.get("nextCursor")
            if not isinstance(next_cursor, str) or not next_cursor:
                break
            cursor = next_cursor
        else:
            self._log(
                LogLevel.WARN,
                f"tools/list pagination stopped after {self.settings.max_tool_pages} pages",
            )

        return tools

    async def _fail(self, error: BaseException) -> None:
        """Handshake failure: record, emit, then tear everything down."""
        self._status = ConnectionStatus.ERROR
        self._last_error = str(error)
        if self._logger:
            self._logger.failed(error)
        self._events.emit(ClientEvent(ClientEventType.ERROR, error=self._last_error))

        supervisor = self._cleanup(self._last_error)
        if supervisor is not None:
            await supervisor.wait_closed(timeout=self.settings.kill_timeout + 1.0)

    def _abandon_start(self) -> None:
        """The awaiting caller cancelled start(): kill the process, back to disconnected."""
        self._epoch += 1
        self._cleanup("Start cancelled")
        self._status = ConnectionStatus.DISCONNECTED
        self._log(LogLevel.INFO, "Start cancelled")
        self._events.emit(ClientEvent(ClientEventType.DISCONNECTED))

    def _cleanup(self, reason: str | None = None) -> ProcessSupervisor | None:
        """Reject pending requests, clear buffers and kill the process.

        Returns:
            The detached supervisor (if any) so callers can await its exit
        """
        rejected = self._correlator.reject_all(partial(self._closed_error, reason))
        if rejected:
            self._log(LogLevel.DEBUG, f"Rejected {rejected} pending request(s)")

        for task in self._background:
            task.cancel()
        self._background.clear()

        self._framer.reset()
        self._tools = []
        self._connected_at = None

        supervisor = self._supervisor
        self._supervisor = None
        if supervisor is not None:
            supervisor.kill()
        return supervisor

    def _closed_error(self, reason: str | None, pending: PendingRequest) -> MCPHostError:
        return create_error(
            "MCP_CONNECTION_CLOSED",
            server_name=self.config.name,
            method=pending.method,
            request_id=pending.id,
            detail=reason,
        )

    # -- wire --------------------------------------------------------------

    async def _request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Send a request and wait for its correlated result."""
        supervisor = self._supervisor
        if supervisor is None:
            raise create_error("MCP_CONNECTION_CLOSED", server_name=self.config.name, method=method)

        pending = self._correlator.register(method, timeout)
        message = JSONRPCMessage.request(method, params, id=pending.id)
        written = supervisor.write(JSONRPCMessage.encode(message))
        written.add_done_callback(partial(self._on_request_written, pending.id))
        return await pending.future

    def _send_notification(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Fire-and-forget notification; write failures are only logged."""
        if self._supervisor is None:
            return
        written = self._supervisor.write(
            JSONRPCMessage.encode(JSONRPCMessage.notification(method, params))
        )
        written.add_done_callback(partial(self._on_notification_written, method))

    def _on_request_written(self, request_id: int, written: asyncio.Future[None]) -> None:
        if written.cancelled():
            return
        error = written.exception()
        if error is not None:
            self._correlator.fail(request_id, error)

    def _on_notification_written(self, method: str, written: asyncio.Future[None]) -> None:
        if written.cancelled():
            return
        error = written.exception()
        if error is not None:
            self._log(LogLevel.DEBUG, f"Notification {method} not delivered: {error}")

    def _on_request_settled(self, pending: PendingRequest, outcome: str) -> None:
        if self._metrics:
            self._metrics.record_request(self.config.name, pending.method, outcome, pending.elapsed)

    # -- inbound -----------------------------------------------------------

    def _handle_stdout(self, supervisor: ProcessSupervisor, chunk: bytes) -> None:
        if supervisor is not self._supervisor:
            return
        for line in self._framer.feed(chunk):
            self._handle_line(line)

    def _handle_line(self, line: str) -> None:
        try:
            message = JSONRPCMessage.parse(line)
        except ValueError as e:
            if self._logger:
                self._logger.malformed_line(line, e)
            if self._metrics:
                self._metrics.record_malformed_line(self.config.name)
            return

        kind = JSONRPCMessage.classify(message)
        if kind == MessageKind.RESPONSE:
            if not self._correlator.settle(message):
                self._log(LogLevel.DEBUG, f"Ignoring response for unknown id {message.get('id')!r}")
        elif kind == MessageKind.NOTIFICATION:
            self._handle_notification(message)
        elif kind == MessageKind.REQUEST:
            self._log(LogLevel.DEBUG, f"Ignoring server request: {message['method']}")
        else:
            if self._logger:
                self._logger.malformed_line(line, ValueError("not a JSON-RPC message"))
            if self._metrics:
                self._metrics.record_malformed_line(self.config.name)

    def _handle_notification(self, message: dict[str, Any]) -> None:
        method = message["method"]
        if method == TOOLS_CHANGED_NOTIFICATION:
            if self._status == ConnectionStatus.CONNECTED:
                self._log(LogLevel.INFO, "Tool list changed, refreshing")
                self._run_in_background(self._refresh_in_background())
        elif method == LOG_NOTIFICATION:
            params = message.get("params")
            if not isinstance(params, dict):
                return
            level = _SERVER_LOG_LEVELS.get(str(params.get("level", "info")), LogLevel.INFO)
            context: dict[str, Any] = {}
            if params.get("logger"):
                context["source"] = params["logger"]
            self._log(level, str(params.get("data", "")), **context)

    def _run_in_background(self, coro: Any) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _refresh_in_background(self) -> None:
        try:
            await self.refresh_tools()
        except Exception as e:
            self._log(LogLevel.WARN, f"Tool refresh failed: {e}")

    def _handle_exit(self, supervisor: ProcessSupervisor, returncode: int | None) -> None:
        if supervisor is not self._supervisor:
            return

        reason = describe_exit(returncode)
        if self._status == ConnectionStatus.CONNECTED and not self._stopping:
            # Unsolicited: the server went away on its own
            self._cleanup(reason or "Process exited")
            self._status = ConnectionStatus.DISCONNECTED
            if self._metrics:
                self._metrics.record_disconnected(self.config.name)
            if self._logger:
                self._logger.disconnected(reason or "process exited")
            self._events.emit(ClientEvent(ClientEventType.DISCONNECTED, error=reason))
        else:
            # Handshake in flight or stop() in progress; they own the transition
            self._cleanup(reason or "Process exited")

    def _handle_process_error(self, supervisor: ProcessSupervisor, error: BaseException) -> None:
        """I/O fault on a live process: a connected client fails and tears down.

        During the handshake only the message is recorded; the failed write
        rejects the in-flight request and start() moves to ``error`` itself.
        """
        if supervisor is not self._supervisor:
            return
        self._log(LogLevel.WARN, f"Process error: {error}")
        self._last_error = str(error)
        if self._status != ConnectionStatus.CONNECTED or self._stopping:
            return

        self._epoch += 1
        self._status = ConnectionStatus.ERROR
        if self._metrics:
            self._metrics.record_disconnected(self.config.name)
        if self._logger:
            self._logger.failed(error)
        self._cleanup(self._last_error)
        self._events.emit(ClientEvent(ClientEventType.ERROR, error=self._last_error))
