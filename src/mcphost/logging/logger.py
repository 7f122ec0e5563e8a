"""mcphost logger - component-scoped colored or JSON log lines."""

import json
import sys
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, TextIO

from mcphost.types import LogFormat, LogLevel

# 256-color ANSI palette
RESET = "\033[0m"
GREEN = "\033[38;5;82m"
RED = "\033[38;5;196m"
YELLOW = "\033[38;5;226m"
ORANGE = "\033[38;5;208m"
LIGHT_BLUE = "\033[38;5;153m"
CYAN = "\033[38;5;51m"
MAGENTA = "\033[38;5;201m"

_LEVEL_ORDER = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.WARN: 2,
    LogLevel.ERROR: 3,
}

_LEVEL_COLORS = {
    LogLevel.DEBUG: LIGHT_BLUE,
    LogLevel.INFO: CYAN,
    LogLevel.WARN: YELLOW,
    LogLevel.ERROR: RED,
}

_COMPONENT_COLORS = {
    "mcp": GREEN,
    "stderr": ORANGE,
    "manager": MAGENTA,
    "config": CYAN,
    "app": CYAN,
}


@dataclass
class LogConfig:
    """Logger configuration."""

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.COLORED
    show_context: bool = True
    truncate_at: int = 200
    components: dict[str, bool] = field(default_factory=dict)
    output: TextIO = field(default=sys.stderr)

    def __post_init__(self) -> None:
        """Initialize default components if not provided."""
        if not self.components:
            self.components = {
                "mcp": True,
                "stderr": True,
                "manager": True,
                "config": True,
                "app": True,
            }


class HostLogger:
    """Main logger facade. Creates server-scoped loggers.

    Components are dotted names; the first segment selects the color and the
    enable switch in ``LogConfig.components`` (``mcp.notes`` -> ``mcp``).
    Output goes to stderr by default so a host that itself speaks a protocol
    on stdout is never corrupted by log lines.
    """

    def __init__(self, config: LogConfig | None = None):
        """Initialize logger with configuration.

        Args:
            config: Logger configuration (defaults to LogConfig())
        """
        self.config = config or LogConfig()

    def server(self, server_name: str) -> "ServerLogger":
        """Get a logger scoped to one MCP server connection.

        Args:
            server_name: Server name used to tag every line

        Returns:
            ServerLogger instance
        """
        return ServerLogger(self, server_name)

    def configure(self, config: LogConfig) -> None:
        """Update configuration (for hot-reload).

        Args:
            config: New logger configuration
        """
        self.config = config

    def debug(self, component: str, message: str, **context: Any) -> None:
        self._log(LogLevel.DEBUG, component, message, context or None)

    def info(self, component: str, message: str, **context: Any) -> None:
        self._log(LogLevel.INFO, component, message, context or None)

    def warn(self, component: str, message: str, **context: Any) -> None:
        self._log(LogLevel.WARN, component, message, context or None)

    def error(self, component: str, message: str, **context: Any) -> None:
        self._log(LogLevel.ERROR, component, message, context or None)

    def _should_log(self, level: LogLevel) -> bool:
        """Check if a log level should be logged."""
        return _LEVEL_ORDER.get(level, 0) >= _LEVEL_ORDER.get(self.config.level, 1)

    def _log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Internal logging method.

        Args:
            level: Log level
            component: Dotted component name (mcp.<server>, stderr.<server>, manager, ...)
            message: Log message
            context: Additional context data
        """
        if not self._should_log(level):
            return

        root = component.split(".", 1)[0]
        if not self.config.components.get(root, True):
            return

        if self.config.format == LogFormat.JSON:
            self._log_json(level, component, message, context)
        else:
            self._log_colored(level, component, message, context)

    def _log_json(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Log in JSON format."""
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": level.value,
            "component": component,
            "message": message,
        }
        if context:
            log_entry.update(context)

        print(json.dumps(log_entry, default=str), file=self.config.output)

    def _log_colored(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Log in colored format."""
        color = _LEVEL_COLORS.get(level, RESET)
        component_color = _COMPONENT_COLORS.get(component.split(".", 1)[0], RESET)

        # Format: [COMPONENT] message
        output = f"{component_color}[{component.upper()}]{RESET} {color}{message}{RESET}"

        if context and self.config.show_context:
            context_str = str(context)
            if len(context_str) > self.config.truncate_at:
                context_str = context_str[: self.config.truncate_at] + "..."
            output += f" {LIGHT_BLUE}{context_str}{RESET}"

        print(output, file=self.config.output)


class ServerLogger:
    """Logger for one server connection: lifecycle, protocol and stderr lines."""

    def __init__(self, parent: HostLogger, server_name: str):
        self.parent = parent
        self.server_name = server_name
        self.component = f"mcp.{server_name}"

    def log(self, level: LogLevel, message: str, **context: Any) -> None:
        """Log a free-form message for this server."""
        context.setdefault("server", self.server_name)
        self.parent._log(level, self.component, message, context)

    def spawning(self, command: str, args: list[str] | tuple[str, ...]) -> None:
        """Log process launch."""
        command_line = " ".join([command, *args])
        self.parent._log(
            LogLevel.INFO,
            self.component,
            f"Spawning: {command_line}",
            {"server": self.server_name, "event": "spawning"},
        )

    def connected(self, tool_count: int, server_info: dict[str, Any] | None = None) -> None:
        """Log a completed handshake."""
        context: dict[str, Any] = {
            "server": self.server_name,
            "event": "connected",
            "tool_count": tool_count,
        }
        if server_info:
            context["server_info"] = server_info
        self.parent._log(
            LogLevel.INFO,
            self.component,
            f"Connected ({tool_count} tools) ✓",
            context,
        )

    def disconnected(self, reason: str | None = None) -> None:
        """Log a closed connection."""
        message = "Disconnected" if not reason else f"Disconnected: {reason}"
        self.parent._log(
            LogLevel.INFO,
            self.component,
            message,
            {"server": self.server_name, "event": "disconnected", "reason": reason},
        )

    def failed(self, error: BaseException) -> None:
        """Log a failed start."""
        self.parent._log(
            LogLevel.ERROR,
            self.component,
            f"Connection failed: {error}",
            {
                "server": self.server_name,
                "event": "connection_failed",
                "error_type": type(error).__name__,
            },
        )

    def malformed_line(self, line: str, error: BaseException) -> None:
        """Log a stdout line that is not valid JSON."""
        preview = line
        if len(preview) > self.parent.config.truncate_at:
            preview = preview[: self.parent.config.truncate_at] + "..."
        self.parent._log(
            LogLevel.WARN,
            self.component,
            f"Failed to parse message: {preview}",
            {"server": self.server_name, "event": "malformed_line", "error": str(error)},
        )

    def stderr(self, text: str) -> None:
        """Log a diagnostic line written by the server to stderr."""
        self.parent._log(
            LogLevel.WARN,
            f"stderr.{self.server_name}",
            text,
            {"server": self.server_name},
        )
