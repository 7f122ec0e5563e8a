"""mcphost configuration - config loading and persisted server state."""

from .loader import ConfigLoader, resolve_env_vars
from .models import (
    DEFAULT_PROTOCOL_VERSION,
    ClientSettings,
    HostConfig,
    LoggingConfig,
    ServerConfig,
    ServerDefinition,
    ServerEntry,
)
from .state import ServerStateStore

__all__ = [
    # Config models
    "HostConfig",
    "ClientSettings",
    "LoggingConfig",
    "ServerConfig",
    "ServerDefinition",
    "ServerEntry",
    "DEFAULT_PROTOCOL_VERSION",
    # Loader
    "ConfigLoader",
    "resolve_env_vars",
    # State
    "ServerStateStore",
]
