"""Shared types for mcphost.

Import from here rather than submodules:
    from mcphost.types import ConnectionStatus, LogLevel
"""

from .enums import (
    ConnectionStatus,
    LogFormat,
    LogLevel,
    MCPTransport,
    ToolSource,
)
from .validation import ValidationIssue, ValidationResult

__all__ = [
    # Enums
    "LogLevel",
    "LogFormat",
    "MCPTransport",
    "ToolSource",
    "ConnectionStatus",
    # Validation
    "ValidationIssue",
    "ValidationResult",
]
