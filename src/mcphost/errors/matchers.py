"""Error matchers for converting exceptions to MCPHostErrors."""

import asyncio

from .errors import ErrorMatcher, MatchResult


class CommandNotFoundMatcher(ErrorMatcher):
    """Matches a missing server binary (ENOENT on spawn)."""

    def matches(self, error: BaseException) -> bool:
        return isinstance(error, FileNotFoundError)

    def extract(self, error: BaseException) -> MatchResult:
        return MatchResult(
            code="MCP_COMMAND_NOT_FOUND",
            context={
                "command": getattr(error, "filename", None) or "unknown",
                "detail": str(error),
            },
            retryable=False,
        )


class PermissionDeniedMatcher(ErrorMatcher):
    """Matches a server binary that cannot be executed."""

    def matches(self, error: BaseException) -> bool:
        return isinstance(error, PermissionError)

    def extract(self, error: BaseException) -> MatchResult:
        return MatchResult(
            code="MCP_SPAWN_FAILED",
            context={"reason": "permission denied", "detail": str(error)},
            retryable=False,
        )


class BrokenPipeMatcher(ErrorMatcher):
    """Matches writes to a process whose stdin has closed."""

    def matches(self, error: BaseException) -> bool:
        return isinstance(error, (BrokenPipeError, ConnectionResetError))

    def extract(self, error: BaseException) -> MatchResult:
        return MatchResult(code="MCP_CONNECTION_CLOSED", context={"detail": str(error)})


class TimeoutErrorMatcher(ErrorMatcher):
    """Matches timeout errors."""

    def matches(self, error: BaseException) -> bool:
        return isinstance(error, (asyncio.TimeoutError, TimeoutError))

    def extract(self, error: BaseException) -> MatchResult:
        return MatchResult(
            code="MCP_REQUEST_TIMEOUT",
            context={"timeout_seconds": "unknown"},
        )


class GenericErrorMatcher(ErrorMatcher):
    """Fallback matcher for any exception."""

    def matches(self, error: BaseException) -> bool:
        return True

    def extract(self, error: BaseException) -> MatchResult:
        return MatchResult(
            code="INTERNAL_ERROR",
            context={"detail": str(error), "error_type": type(error).__name__},
            retryable=False,
        )


class ErrorMatcherChain:
    """Ordered chain of matchers. First match wins."""

    def __init__(self) -> None:
        """Initialize matcher chain with built-in matchers."""
        self.matchers: list[ErrorMatcher] = []
        self._load_builtin_matchers()

    def match(self, error: BaseException) -> MatchResult:
        """Find first matching matcher and extract result.

        Args:
            error: Exception to match

        Returns:
            MatchResult from first matching matcher
        """
        for matcher in self.matchers:
            if matcher.matches(error):
                return matcher.extract(error)

        return MatchResult(code="INTERNAL_ERROR", context={"detail": str(error)})

    def _load_builtin_matchers(self) -> None:
        """Load built-in matchers in priority order."""
        # Order matters - more specific matchers first
        self.matchers = [
            CommandNotFoundMatcher(),
            PermissionDeniedMatcher(),
            BrokenPipeMatcher(),
            TimeoutErrorMatcher(),
            GenericErrorMatcher(),  # Fallback - must be last
        ]
