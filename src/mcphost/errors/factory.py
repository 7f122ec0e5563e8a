"""Error factory for creating MCPHostErrors from any exception type."""

from typing import Any

from .errors import MCPHostError
from .matchers import ErrorMatcherChain
from .registry import ErrorRegistry


class ErrorFactory:
    """Creates MCPHostErrors from codes or from arbitrary exceptions."""

    def __init__(
        self,
        registry: ErrorRegistry | None = None,
        matcher_chain: ErrorMatcherChain | None = None,
    ):
        """Initialize error factory.

        Args:
            registry: Error registry (defaults to new ErrorRegistry())
            matcher_chain: Matcher chain (defaults to new ErrorMatcherChain())
        """
        self.registry = registry or ErrorRegistry()
        self.matcher_chain = matcher_chain or ErrorMatcherChain()

    def from_exception(self, error: BaseException, **context: Any) -> MCPHostError:
        """Convert any exception to MCPHostError.

        Context from the matcher is overridden by explicit keyword context.

        Args:
            error: Exception to convert
            **context: Additional context (server_name, command, ...)

        Returns:
            MCPHostError instance
        """
        if isinstance(error, MCPHostError):
            return error.with_context(
                server_name=context.get("server_name"),
                tool_name=context.get("tool_name"),
            )

        match_result = self.matcher_chain.match(error)

        merged = match_result.context.copy()
        merged.update({k: v for k, v in context.items() if v is not None})

        host_error = self.registry.create(code=match_result.code, context=merged)

        if match_result.retryable is not None:
            host_error.retryable = match_result.retryable

        return host_error

    def create(
        self,
        code: str,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> MCPHostError:
        """Create MCPHostError directly from code.

        Args:
            code: Error code
            context: Context variables for template interpolation
            **kwargs: Additional context variables

        Returns:
            MCPHostError instance
        """
        merged_context = dict(context or {})
        merged_context.update(kwargs)

        return self.registry.create(code=code, context=merged_context)


# Convenience default
_default_factory: ErrorFactory | None = None


def get_error_factory() -> ErrorFactory:
    """Get default error factory.

    Returns:
        Default ErrorFactory instance
    """
    global _default_factory  # noqa: PLW0603
    if _default_factory is None:
        _default_factory = ErrorFactory()
    return _default_factory


def create_error(code: str, **context: Any) -> MCPHostError:
    """Convenience function to create error.

    Args:
        code: Error code
        **context: Context variables for template interpolation

    Returns:
        MCPHostError instance
    """
    return get_error_factory().create(code, context)


def error_from_exception(error: BaseException, **context: Any) -> MCPHostError:
    """Convenience function to convert an exception."""
    return get_error_factory().from_exception(error, **context)
