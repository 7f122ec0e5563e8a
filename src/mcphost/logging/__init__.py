"""mcphost logging - component-scoped colored logging."""

from .logger import HostLogger, LogConfig, ServerLogger

__all__ = [
    "HostLogger",
    "ServerLogger",
    "LogConfig",
]
