"""mcphost configuration data models."""

from dataclasses import dataclass, field

from mcphost.types import LogFormat, LogLevel, MCPTransport

DEFAULT_PROTOCOL_VERSION = "2024-11-05"


@dataclass(frozen=True)
class ServerConfig:
    """Immutable launch description of one MCP server.

    Referenced by exactly one client. ``id`` defaults to ``name``.
    """

    name: str
    command: str
    args: tuple[str, ...] = ()
    env: dict[str, str] = field(default_factory=dict)
    cwd: str | None = None
    transport: MCPTransport = MCPTransport.STDIO
    id: str = ""
    allowed_tools: tuple[str, ...] = ()  # empty or "*" = all tools
    shell: bool | None = None  # None = platform default (shell on Windows)

    def __post_init__(self) -> None:
        if not self.id:
            object.__setattr__(self, "id", self.name)
        # Accept lists from callers and keep the frozen instance list-free
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(self, "allowed_tools", tuple(self.allowed_tools))
        if isinstance(self.transport, str):
            object.__setattr__(self, "transport", MCPTransport(self.transport))


@dataclass(frozen=True)
class ServerEntry:
    """A configured server plus its auto-start default."""

    config: ServerConfig
    auto_start: bool = False


@dataclass
class ClientSettings:
    """Per-client protocol and process settings."""

    request_timeout: float = 30.0
    startup_grace: float = 0.1  # process must still be alive after this delay
    kill_timeout: float = 5.0  # SIGTERM -> SIGKILL escalation window
    protocol_version: str = DEFAULT_PROTOCOL_VERSION
    client_name: str = "mcphost"
    client_version: str = "0.1.0"
    max_tool_pages: int = 50


@dataclass
class ServerDefinition:
    """Definition of an MCP server as written in the config file."""

    command: str | None = None
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    cwd: str | None = None
    transport: MCPTransport = MCPTransport.STDIO
    auto_start: bool = False
    allowed_tools: list[str] = field(default_factory=list)
    shell: bool | None = None
    display_name: str | None = None

    def to_entry(self, server_id: str) -> ServerEntry:
        """Build the immutable manager entry for this definition.

        Args:
            server_id: Key of this definition under ``servers``

        Returns:
            ServerEntry
        """
        return ServerEntry(
            config=ServerConfig(
                id=server_id,
                name=self.display_name or server_id,
                command=self.command or "",
                args=tuple(self.args),
                env=dict(self.env),
                cwd=self.cwd,
                transport=self.transport,
                allowed_tools=tuple(self.allowed_tools),
                shell=self.shell,
            ),
            auto_start=self.auto_start,
        )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.COLORED
    show_context: bool = True
    truncate_at: int = 200
    components: dict[str, bool] = field(default_factory=dict)


@dataclass
class HostConfig:
    """Root configuration object."""

    client: ClientSettings = field(default_factory=ClientSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    servers: dict[str, ServerDefinition] = field(default_factory=dict)
    state_file: str = "~/.mcphost/state.json"

    def server_entries(self) -> list[ServerEntry]:
        """Manager input list, in config order."""
        return [definition.to_entry(name) for name, definition in self.servers.items()]
