"""Error registry for creating errors from templates."""

from typing import Any

from .errors import ErrorCategory, ErrorTemplate, MCPHostError


class ErrorRegistry:
    """Registry of error templates. Creates errors from templates + context."""

    def __init__(self) -> None:
        """Initialize error registry with built-in templates."""
        self._templates: dict[str, ErrorTemplate] = {}
        self._load_builtin_templates()

    def get_template(self, code: str) -> ErrorTemplate | None:
        """Get template by error code.

        Args:
            code: Error code to look up

        Returns:
            ErrorTemplate if found, None otherwise
        """
        return self._templates.get(code)

    def register(self, template: ErrorTemplate) -> None:
        """Register (or replace) a template."""
        self._templates[template.code] = template

    def list_codes(self) -> list[str]:
        """List all registered error codes."""
        return list(self._templates.keys())

    def create(
        self,
        code: str,
        context: dict[str, Any] | None = None,
        cause: MCPHostError | None = None,
    ) -> MCPHostError:
        """Create error instance from template + context.

        Args:
            code: Error code
            context: Context variables for template interpolation
            cause: Optional cause error

        Returns:
            MCPHostError instance

        Raises:
            ValueError: If error code not found
        """
        template = self.get_template(code)
        if not template:
            msg = f"Unknown error code: {code}"
            raise ValueError(msg)

        context = context or {}

        message = self._interpolate(template.message_template, context)
        # An explicit detail in the context wins over the template
        detail = context.get("detail") or self._interpolate(template.detail_template, context)
        suggestion = self._interpolate(template.suggestion_template, context)

        if message is None:
            message = f"Error {code}"

        return MCPHostError(
            code=template.code,
            category=template.category,
            message=message,
            detail=detail,
            suggestion=suggestion,
            retryable=template.default_retryable,
            server_name=context.get("server_name"),
            tool_name=context.get("tool_name"),
            method=context.get("method"),
            request_id=context.get("request_id"),
            rpc_code=context.get("rpc_code"),
            cause=cause,
        )

    def _interpolate(
        self,
        template: str | None,
        context: dict[str, Any],
    ) -> str | None:
        """Safe string interpolation.

        Args:
            template: Template string with {var} placeholders
            context: Context variables

        Returns:
            Interpolated string or None if template is None
        """
        if template is None:
            return None

        try:
            return template.format(**context)
        except KeyError:
            # Missing context variable - return template as-is
            return template

    def _load_builtin_templates(self) -> None:
        """Load hardcoded built-in templates."""
        # PROCESS Errors
        self._templates["MCP_COMMAND_NOT_FOUND"] = ErrorTemplate(
            code="MCP_COMMAND_NOT_FOUND",
            category=ErrorCategory.PROCESS,
            message_template="Command not found: '{command}'",
            detail_template="The MCP server binary '{command}' could not be found on PATH",
            suggestion_template="Install the server or use an absolute path to the command",
        )

        self._templates["MCP_SPAWN_FAILED"] = ErrorTemplate(
            code="MCP_SPAWN_FAILED",
            category=ErrorCategory.PROCESS,
            message_template="Failed to start MCP server '{server_name}': {reason}",
            detail_template="The server process could not be launched or exited during startup",
            suggestion_template="Check the command, its permissions and the server's stderr output",
            default_retryable=True,
        )

        # TRANSPORT Errors
        self._templates["MCP_NOT_CONNECTED"] = ErrorTemplate(
            code="MCP_NOT_CONNECTED",
            category=ErrorCategory.TRANSPORT,
            message_template="MCP server '{server_name}' not connected",
            detail_template="The operation requires an established connection",
            suggestion_template="Start the server before calling its tools",
            default_retryable=True,
        )

        self._templates["MCP_CONNECTION_CLOSED"] = ErrorTemplate(
            code="MCP_CONNECTION_CLOSED",
            category=ErrorCategory.TRANSPORT,
            message_template="Connection closed",
            detail_template="The connection to '{server_name}' closed before a response arrived",
            suggestion_template="Restart the server and retry the request",
            default_retryable=True,
        )

        self._templates["MCP_REQUEST_TIMEOUT"] = ErrorTemplate(
            code="MCP_REQUEST_TIMEOUT",
            category=ErrorCategory.TRANSPORT,
            message_template="Request timeout: {method}",
            detail_template="No response within {timeout_seconds}s",
            suggestion_template="Increase the request timeout or check if the server is stuck",
            default_retryable=True,
        )

        self._templates["MCP_TRANSPORT_UNSUPPORTED"] = ErrorTemplate(
            code="MCP_TRANSPORT_UNSUPPORTED",
            category=ErrorCategory.TRANSPORT,
            message_template="Transport '{transport}' is not supported for '{server_name}'",
            detail_template="Only stdio servers can be managed by this host",
            suggestion_template="Configure the server with transport: stdio",
        )

        # PROTOCOL Errors
        self._templates["MCP_RPC_ERROR"] = ErrorTemplate(
            code="MCP_RPC_ERROR",
            category=ErrorCategory.PROTOCOL,
            message_template="{message}",
            detail_template="Server '{server_name}' returned JSON-RPC error {rpc_code} for {method}",
        )

        self._templates["MCP_PROTOCOL_ERROR"] = ErrorTemplate(
            code="MCP_PROTOCOL_ERROR",
            category=ErrorCategory.PROTOCOL,
            message_template="Invalid {method} result from '{server_name}'",
            detail_template="The server response does not follow the MCP schema",
            suggestion_template="Check that the server implements the MCP version in use",
        )

        # TOOL Errors
        self._templates["SERVER_NOT_FOUND"] = ErrorTemplate(
            code="SERVER_NOT_FOUND",
            category=ErrorCategory.TOOL,
            message_template="Server not found: {server_id}",
            detail_template="No MCP server with id '{server_id}' is configured",
            suggestion_template="Check the server id against the configured servers",
        )

        self._templates["SERVER_ALREADY_EXISTS"] = ErrorTemplate(
            code="SERVER_ALREADY_EXISTS",
            category=ErrorCategory.TOOL,
            message_template="Server already exists: {server_id}",
            detail_template="An MCP server with id '{server_id}' is already registered",
            suggestion_template="Remove the existing server first or choose another id",
        )

        self._templates["TOOL_NOT_ALLOWED"] = ErrorTemplate(
            code="TOOL_NOT_ALLOWED",
            category=ErrorCategory.TOOL,
            message_template="Tool '{tool_name}' is not allowed on '{server_name}'",
            detail_template="The tool is not in the server's allowed_tools list",
            suggestion_template="Add the tool to allowed_tools in the server configuration",
        )

        # CONFIG Errors
        self._templates["CONFIG_INVALID"] = ErrorTemplate(
            code="CONFIG_INVALID",
            category=ErrorCategory.CONFIG,
            message_template="Invalid configuration",
            detail_template="The mcphost configuration is invalid",
            suggestion_template="Check the configuration file and fix errors",
        )

        # SYSTEM Errors
        self._templates["INTERNAL_ERROR"] = ErrorTemplate(
            code="INTERNAL_ERROR",
            category=ErrorCategory.SYSTEM,
            message_template="Internal error: {error_type}",
            detail_template="An unexpected error occurred",
            suggestion_template="Check the logs and report this issue",
        )
