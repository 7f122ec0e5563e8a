"""Tests for the error registry, matcher chain and factory."""

import asyncio

import pytest

from mcphost.errors import (
    ErrorCategory,
    ErrorFactory,
    ErrorMatcherChain,
    ErrorRegistry,
    ErrorTemplate,
    MCPHostError,
    create_error,
    error_from_exception,
)

pytestmark = pytest.mark.unit


class TestErrorRegistry:
    """Tests for ErrorRegistry."""

    def test_builtin_codes(self):
        codes = set(ErrorRegistry().list_codes())
        assert {
            "MCP_COMMAND_NOT_FOUND",
            "MCP_SPAWN_FAILED",
            "MCP_NOT_CONNECTED",
            "MCP_CONNECTION_CLOSED",
            "MCP_REQUEST_TIMEOUT",
            "MCP_RPC_ERROR",
            "MCP_PROTOCOL_ERROR",
            "SERVER_NOT_FOUND",
            "SERVER_ALREADY_EXISTS",
            "TOOL_NOT_ALLOWED",
            "INTERNAL_ERROR",
        } <= codes

    def test_create_interpolates_context(self):
        error = ErrorRegistry().create(
            "MCP_REQUEST_TIMEOUT",
            {"method": "tools/call", "server_name": "notes", "request_id": 7},
        )

        assert error.code == "MCP_REQUEST_TIMEOUT"
        assert error.category == ErrorCategory.TRANSPORT
        assert error.message == "Request timeout: tools/call"
        assert error.server_name == "notes"
        assert error.method == "tools/call"
        assert error.request_id == 7
        assert error.retryable is True

    def test_missing_context_keeps_template(self):
        error = ErrorRegistry().create("SERVER_NOT_FOUND")
        assert error.message == "Server not found: {server_id}"

    def test_explicit_detail_wins(self):
        error = ErrorRegistry().create("MCP_CONNECTION_CLOSED", {"detail": "Client stopped"})
        assert error.detail == "Client stopped"

    def test_unknown_code(self):
        with pytest.raises(ValueError, match="Unknown error code"):
            ErrorRegistry().create("NOPE")

    def test_register_custom_template(self):
        registry = ErrorRegistry()
        registry.register(
            ErrorTemplate(
                code="CUSTOM",
                category=ErrorCategory.SYSTEM,
                message_template="Custom {thing}",
                default_retryable=True,
            )
        )

        error = registry.create("CUSTOM", {"thing": "failure"})
        assert error.message == "Custom failure"
        assert error.retryable is True


class TestMCPHostError:
    """Tests for MCPHostError itself."""

    def test_is_exception_with_message(self):
        error = create_error("SERVER_NOT_FOUND", server_id="ghost")

        assert isinstance(error, Exception)
        assert str(error) == "Server not found: ghost"
        with pytest.raises(MCPHostError, match="ghost"):
            raise error

    def test_with_context_copies(self):
        error = create_error("MCP_CONNECTION_CLOSED", method="tools/call", request_id=3)
        scoped = error.with_context(server_name="notes", tool_name="search")

        assert scoped is not error
        assert scoped.server_name == "notes"
        assert scoped.tool_name == "search"
        assert scoped.method == "tools/call"
        assert scoped.request_id == 3
        assert scoped.timestamp == error.timestamp
        assert error.server_name is None

    def test_with_context_keeps_existing_values(self):
        error = create_error("MCP_NOT_CONNECTED", server_name="notes")
        assert error.with_context().server_name == "notes"

    def test_to_dict(self):
        cause = create_error("MCP_CONNECTION_CLOSED")
        error = ErrorRegistry().create(
            "MCP_RPC_ERROR", {"message": "boom", "rpc_code": -32603}, cause=cause
        )

        data = error.to_dict()
        assert data["code"] == "MCP_RPC_ERROR"
        assert data["category"] == "PROTOCOL"
        assert data["message"] == "boom"
        assert data["rpc_code"] == -32603
        assert data["cause"]["code"] == "MCP_CONNECTION_CLOSED"
        assert isinstance(data["timestamp"], str)


class TestErrorMatcherChain:
    """Tests for exception classification."""

    @pytest.mark.parametrize(
        ("error", "code"),
        [
            (FileNotFoundError(2, "No such file or directory", "mcp-notes"), "MCP_COMMAND_NOT_FOUND"),
            (PermissionError(13, "Permission denied"), "MCP_SPAWN_FAILED"),
            (BrokenPipeError(32, "Broken pipe"), "MCP_CONNECTION_CLOSED"),
            (ConnectionResetError(), "MCP_CONNECTION_CLOSED"),
            (asyncio.TimeoutError(), "MCP_REQUEST_TIMEOUT"),
            (RuntimeError("unexpected"), "INTERNAL_ERROR"),
        ],
    )
    def test_classification(self, error, code):
        assert ErrorMatcherChain().match(error).code == code

    def test_command_extracted_from_filename(self):
        result = ErrorMatcherChain().match(FileNotFoundError(2, "No such file", "mcp-notes"))
        assert result.context["command"] == "mcp-notes"
        assert result.retryable is False

    def test_empty_chain_falls_back(self):
        chain = ErrorMatcherChain()
        chain.matchers = []
        assert chain.match(ValueError("x")).code == "INTERNAL_ERROR"


class TestErrorFactory:
    """Tests for ErrorFactory."""

    def test_explicit_context_overrides_matcher(self):
        error = ErrorFactory().from_exception(
            FileNotFoundError(2, "No such file", "node"),
            server_name="notes",
            command="mcp-notes",
        )

        assert error.code == "MCP_COMMAND_NOT_FOUND"
        assert error.message == "Command not found: 'mcp-notes'"
        assert error.server_name == "notes"
        assert error.retryable is False

    def test_none_context_ignored(self):
        error = ErrorFactory().from_exception(
            FileNotFoundError(2, "No such file", "node"), command=None
        )
        assert error.message == "Command not found: 'node'"

    def test_host_error_passthrough_adds_context(self):
        original = create_error("MCP_NOT_CONNECTED", server_name="notes")
        converted = error_from_exception(original, tool_name="search")

        assert converted.code == "MCP_NOT_CONNECTED"
        assert converted.tool_name == "search"
        assert converted.server_name == "notes"

    def test_generic_error(self):
        error = error_from_exception(KeyError("x"))

        assert error.code == "INTERNAL_ERROR"
        assert error.message == "Internal error: KeyError"
        assert error.category == ErrorCategory.SYSTEM

    def test_create_merges_kwargs(self):
        error = ErrorFactory().create(
            "TOOL_NOT_ALLOWED", {"server_name": "notes"}, tool_name="delete"
        )
        assert error.message == "Tool 'delete' is not allowed on 'notes'"
