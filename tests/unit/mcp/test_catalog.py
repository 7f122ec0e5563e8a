"""Unit tests for the tool catalog helpers."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from mcphost.errors import create_error
from mcphost.mcp.catalog import (
    ToolCallOutcome,
    ToolInfo,
    build_tool_catalog,
    call_tool_safely,
    create_tool_name,
    display_name,
    extract_original_tool_name,
    format_tool_result,
    group_by_server,
    status_label,
)
from mcphost.mcp.types import AttributedTool, ToolCallResult, ToolDescriptor
from mcphost.types import ConnectionStatus, ToolSource


class TestToolNames:
    """Tests for prefixed tool names."""

    def test_create_tool_name(self):
        assert create_tool_name("notes", "search_notes") == "mcp_notes_search_notes"

    def test_server_name_sanitized(self):
        assert create_tool_name("my-notes server", "search") == "mcp_my_notes_server_search"

    def test_extract_original_tool_name(self):
        assert extract_original_tool_name("mcp_notes_search_notes") == "search_notes"

    def test_extract_leaves_unprefixed_names(self):
        assert extract_original_tool_name("search_notes") == "search_notes"

    def test_display_name(self):
        assert display_name("search_notes") == "Search Notes"


class TestStatusLabel:
    """Tests for status_label()."""

    @pytest.mark.parametrize(
        "status,label",
        [
            (ConnectionStatus.CONNECTED, "Connected"),
            (ConnectionStatus.CONNECTING, "Connecting"),
            (ConnectionStatus.ERROR, "Error"),
            (ConnectionStatus.DISCONNECTED, "Stopped"),
        ],
    )
    def test_labels(self, status, label):
        assert status_label(status) == label


class TestBuildToolCatalog:
    """Tests for build_tool_catalog()."""

    def test_entries_from_manager_tools(self):
        manager = MagicMock()
        manager.get_all_tools.return_value = [
            AttributedTool(
                server_id="notes-id",
                server_name="notes",
                tool=ToolDescriptor(name="search_notes", description="Search notes"),
            ),
            AttributedTool(
                server_id="notes-id",
                server_name="notes",
                tool=ToolDescriptor(name="echo"),
            ),
        ]

        catalog = build_tool_catalog(manager)

        assert catalog[0] == ToolInfo(
            id="mcp_notes_search_notes",
            display_name="Search Notes",
            description="Search notes",
            source=ToolSource.MCP,
            server_id="notes-id",
            server_name="notes",
            enabled_by_default=False,
        )
        assert catalog[1].description == "echo"

    def test_group_by_server(self):
        catalog = [
            ToolInfo(id="mcp_a_x", display_name="X", description="", server_name="a"),
            ToolInfo(id="mcp_b_y", display_name="Y", description="", server_name="b"),
            ToolInfo(id="mcp_a_z", display_name="Z", description="", server_name="a"),
            ToolInfo(id="read", display_name="Read", description="", source=ToolSource.BUILTIN),
        ]

        grouped = group_by_server(catalog)

        assert list(grouped) == ["mcp:a", "mcp:b"]
        assert [info.id for info in grouped["mcp:a"]] == ["mcp_a_x", "mcp_a_z"]


class TestFormatToolResult:
    """Tests for format_tool_result()."""

    def test_text_content_returned_verbatim(self):
        result = ToolCallResult.from_wire(
            {"content": [{"type": "text", "text": "line 1"}, {"type": "text", "text": "line 2"}]}
        )
        assert format_tool_result(ToolCallOutcome(success=True, result=result)) == "line 1\nline 2"

    def test_non_text_content_returned_as_json(self):
        raw = {"content": [{"type": "image", "data": "AAAA", "mimeType": "image/png"}]}
        result = ToolCallResult.from_wire(raw)
        assert json.loads(format_tool_result(ToolCallOutcome(success=True, result=result))) == raw

    def test_tool_error_keeps_is_error_flag(self):
        raw = {"content": [{"type": "text", "text": "tool failed"}], "isError": True}
        result = ToolCallResult.from_wire(raw)
        rendered = json.loads(format_tool_result(ToolCallOutcome(success=True, result=result)))
        assert rendered["isError"] is True

    def test_failure_rendered_inline(self):
        rendered = format_tool_result(ToolCallOutcome(success=False, error="not connected"))
        assert json.loads(rendered) == {"success": False, "error": "not connected"}


class TestCallToolSafely:
    """Tests for call_tool_safely()."""

    @pytest.mark.asyncio
    async def test_success(self):
        manager = MagicMock()
        result = ToolCallResult.from_wire({"content": [{"type": "text", "text": "ok"}]})
        manager.call_tool = AsyncMock(return_value=result)

        outcome = await call_tool_safely(manager, "notes", "echo", {"text": "ok"})

        assert outcome.success is True
        assert outcome.result is result
        manager.call_tool.assert_awaited_once_with("notes", "echo", {"text": "ok"})

    @pytest.mark.asyncio
    async def test_transport_failure_captured(self):
        manager = MagicMock()
        manager.call_tool = AsyncMock(
            side_effect=create_error("MCP_NOT_CONNECTED", server_name="notes")
        )

        outcome = await call_tool_safely(manager, "notes", "echo")

        assert outcome.success is False
        assert outcome.error == "MCP server 'notes' not connected"
