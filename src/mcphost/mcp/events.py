"""Event feeds for clients and the manager."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from mcphost.types import ConnectionStatus

from .types import ToolDescriptor

E = TypeVar("E")


class ClientEventType(str, Enum):
    """Events emitted by a single-server client."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    TOOLS = "tools"


@dataclass(frozen=True)
class ClientEvent:
    """Client event; ``error`` is set for ERROR and optionally DISCONNECTED."""

    type: ClientEventType
    error: str | None = None
    tools: tuple[ToolDescriptor, ...] = ()


class ManagerEventType(str, Enum):
    """Events emitted by the multi-server manager."""

    SERVER_STATUS_CHANGED = "server-status-changed"
    SERVER_TOOLS_UPDATED = "server-tools-updated"


@dataclass(frozen=True)
class ManagerEvent:
    """Manager event attributed to one server."""

    type: ManagerEventType
    server_id: str
    status: ConnectionStatus | None = None
    error: str | None = None
    tools: tuple[ToolDescriptor, ...] = ()


class EventEmitter(Generic[E]):
    """Observer list with per-listener fault isolation.

    A listener that raises is logged and skipped; the remaining listeners
    still receive the event.
    """

    def __init__(self, source: str, logger: Any = None):
        """Initialize emitter.

        Args:
            source: Log component used when a listener fails
            logger: Optional HostLogger
        """
        self._source = source
        self._logger = logger
        self._listeners: list[Callable[[E], None]] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def on(self, listener: Callable[[E], None]) -> None:
        """Add a listener (adding the same listener twice is a no-op)."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def off(self, listener: Callable[[E], None]) -> None:
        """Remove a listener if registered."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, event: E) -> None:
        """Deliver an event to a snapshot of the current listeners."""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                if self._logger:
                    self._logger.error(
                        self._source,
                        f"Listener error: {e}",
                        error_type=type(e).__name__,
                    )
