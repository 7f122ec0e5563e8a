"""mcphost error types."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error source categories."""

    PROCESS = "PROCESS"
    TRANSPORT = "TRANSPORT"
    PROTOCOL = "PROTOCOL"
    TOOL = "TOOL"
    CONFIG = "CONFIG"
    SYSTEM = "SYSTEM"


@dataclass
class MCPHostError(Exception):
    """Structured error with context. Base exception for all mcphost errors."""

    # Identity
    code: str  # e.g., "MCP_REQUEST_TIMEOUT"
    category: ErrorCategory

    # Messages
    message: str  # Human-readable summary
    detail: str | None = None  # Extended explanation
    suggestion: str | None = None  # Actionable fix

    # Context
    retryable: bool = False
    server_name: str | None = None
    tool_name: str | None = None
    method: str | None = None  # JSON-RPC method of the failed request
    request_id: int | None = None
    rpc_code: int | None = None  # JSON-RPC error code from the server

    # Error chain
    cause: "MCPHostError | None" = None

    # Metadata
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        """Set Exception message."""
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Serialize for status surfaces and logs.

        Returns:
            Dictionary representation of the error
        """
        return {
            "code": self.code,
            "category": self.category.value,
            "message": self.message,
            "detail": self.detail,
            "suggestion": self.suggestion,
            "retryable": self.retryable,
            "server_name": self.server_name,
            "tool_name": self.tool_name,
            "method": self.method,
            "request_id": self.request_id,
            "rpc_code": self.rpc_code,
            "timestamp": self.timestamp.isoformat(),
            "cause": self.cause.to_dict() if self.cause else None,
        }

    def with_context(
        self,
        server_name: str | None = None,
        tool_name: str | None = None,
    ) -> "MCPHostError":
        """Return copy with additional context.

        Args:
            server_name: Optional server name
            tool_name: Optional tool name

        Returns:
            New MCPHostError instance with updated context
        """
        return MCPHostError(
            code=self.code,
            category=self.category,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
            retryable=self.retryable,
            server_name=server_name or self.server_name,
            tool_name=tool_name or self.tool_name,
            method=self.method,
            request_id=self.request_id,
            rpc_code=self.rpc_code,
            cause=self.cause,
            timestamp=self.timestamp,
        )


@dataclass
class ErrorTemplate:
    """Template for creating errors."""

    code: str
    category: ErrorCategory
    message_template: str  # "MCP server '{server_name}' not connected"
    detail_template: str | None = None
    suggestion_template: str | None = None
    default_retryable: bool = False


@dataclass
class MatchResult:
    """Result of matching an exception."""

    code: str
    context: dict[str, Any]
    retryable: bool | None = None  # None = use template default


class ErrorMatcher(ABC):
    """Base class for exception matchers."""

    @abstractmethod
    def matches(self, error: BaseException) -> bool:
        """Check if this matcher handles the error."""

    @abstractmethod
    def extract(self, error: BaseException) -> MatchResult:
        """Extract error code and context from the exception."""
