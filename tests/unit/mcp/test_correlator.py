"""Unit tests for the JSON-RPC request correlator."""

import asyncio

import pytest

from mcphost.errors import MCPHostError, create_error
from mcphost.mcp.correlator import (
    SETTLED_CLOSED,
    SETTLED_ERROR,
    SETTLED_SUCCESS,
    SETTLED_TIMEOUT,
    RequestCorrelator,
)
from mcphost.mcp.protocol import JSONRPCMessage


def _closed(pending):
    return create_error("MCP_CONNECTION_CLOSED", server_name="notes", method=pending.method)


class TestRegister:
    """Tests for id allocation."""

    @pytest.mark.asyncio
    async def test_ids_are_sequential(self):
        correlator = RequestCorrelator("notes")
        ids = [correlator.register("tools/list").id for _ in range(3)]
        assert ids == [1, 2, 3]
        assert correlator.last_id == 3
        assert len(correlator) == 3
        correlator.reject_all(_closed)

    @pytest.mark.asyncio
    async def test_ids_not_reused_after_settle(self):
        correlator = RequestCorrelator("notes")
        first = correlator.register("initialize")
        correlator.settle(JSONRPCMessage.success_response(first.id, {}))
        second = correlator.register("tools/list")
        assert second.id == first.id + 1
        correlator.reject_all(_closed)


class TestSettle:
    """Tests for settling requests from responses."""

    @pytest.mark.asyncio
    async def test_success_resolves_with_result(self):
        correlator = RequestCorrelator("notes")
        pending = correlator.register("tools/list")

        assert correlator.settle(JSONRPCMessage.success_response(pending.id, {"tools": []}))
        assert await pending.future == {"tools": []}
        assert pending.id not in correlator

    @pytest.mark.asyncio
    async def test_error_rejects_with_server_message(self):
        correlator = RequestCorrelator("notes")
        pending = correlator.register("tools/call")

        correlator.settle(JSONRPCMessage.error_response(pending.id, -32602, "Unknown tool: x"))

        with pytest.raises(MCPHostError) as exc_info:
            await pending.future
        assert exc_info.value.code == "MCP_RPC_ERROR"
        assert exc_info.value.message == "Unknown tool: x"
        assert exc_info.value.rpc_code == -32602
        assert exc_info.value.server_name == "notes"

    @pytest.mark.asyncio
    async def test_out_of_order_responses_settle_by_id(self):
        correlator = RequestCorrelator("notes")
        first = correlator.register("tools/call")
        second = correlator.register("tools/call")

        correlator.settle(JSONRPCMessage.success_response(second.id, "second"))
        correlator.settle(JSONRPCMessage.success_response(first.id, "first"))

        assert await first.future == "first"
        assert await second.future == "second"

    @pytest.mark.asyncio
    async def test_duplicate_response_ignored(self):
        correlator = RequestCorrelator("notes")
        pending = correlator.register("tools/call")
        response = JSONRPCMessage.success_response(pending.id, "once")

        assert correlator.settle(response) is True
        assert correlator.settle(response) is False
        assert await pending.future == "once"

    @pytest.mark.asyncio
    async def test_unknown_id_ignored(self):
        correlator = RequestCorrelator("notes")
        pending = correlator.register("tools/call")

        assert correlator.settle(JSONRPCMessage.success_response(99, "stray")) is False
        assert not pending.future.done()
        correlator.reject_all(_closed)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_id", ["1", True, 1.0, None])
    async def test_non_integer_ids_ignored(self, bad_id):
        correlator = RequestCorrelator("notes")
        pending = correlator.register("tools/call")

        assert correlator.settle({"jsonrpc": "2.0", "id": bad_id, "result": {}}) is False
        assert not pending.future.done()
        correlator.reject_all(_closed)


class TestTimeout:
    """Tests for per-request timeouts."""

    @pytest.mark.asyncio
    async def test_timeout_rejects_and_removes(self):
        correlator = RequestCorrelator("notes", default_timeout=0.05)
        pending = correlator.register("tools/call")

        with pytest.raises(MCPHostError) as exc_info:
            await pending.future
        assert exc_info.value.code == "MCP_REQUEST_TIMEOUT"
        assert exc_info.value.message == "Request timeout: tools/call"
        assert pending.id not in correlator

    @pytest.mark.asyncio
    async def test_late_response_after_timeout_ignored(self):
        correlator = RequestCorrelator("notes", default_timeout=0.05)
        pending = correlator.register("tools/call")
        with pytest.raises(MCPHostError):
            await pending.future

        assert correlator.settle(JSONRPCMessage.success_response(pending.id, "late")) is False

    @pytest.mark.asyncio
    async def test_timeout_fails_only_that_request(self):
        correlator = RequestCorrelator("notes", default_timeout=5.0)
        slow = correlator.register("tools/call", timeout=0.05)
        other = correlator.register("tools/call")

        with pytest.raises(MCPHostError):
            await slow.future
        assert not other.future.done()
        correlator.settle(JSONRPCMessage.success_response(other.id, "ok"))
        assert await other.future == "ok"

    @pytest.mark.asyncio
    async def test_timer_cancelled_on_settle(self):
        correlator = RequestCorrelator("notes", default_timeout=0.05)
        pending = correlator.register("tools/list")
        correlator.settle(JSONRPCMessage.success_response(pending.id, {}))

        assert pending.timer is None
        await asyncio.sleep(0.1)
        assert await pending.future == {}


class TestRejectAll:
    """Tests for connection teardown."""

    @pytest.mark.asyncio
    async def test_rejects_every_pending_request(self):
        correlator = RequestCorrelator("notes")
        requests = [correlator.register("tools/call") for _ in range(3)]

        assert correlator.reject_all(_closed) == 3
        assert len(correlator) == 0
        for pending in requests:
            with pytest.raises(MCPHostError) as exc_info:
                await pending.future
            assert exc_info.value.code == "MCP_CONNECTION_CLOSED"

    @pytest.mark.asyncio
    async def test_reject_all_on_empty_table(self):
        assert RequestCorrelator("notes").reject_all(_closed) == 0


class TestCancellation:
    """Tests for caller-side cancellation."""

    @pytest.mark.asyncio
    async def test_cancelled_future_dropped(self):
        correlator = RequestCorrelator("notes")
        pending = correlator.register("tools/call")

        pending.future.cancel()
        await asyncio.sleep(0)

        assert pending.id not in correlator


class TestOnSettled:
    """Tests for the settlement hook."""

    @pytest.mark.asyncio
    async def test_outcomes_reported(self):
        outcomes = []
        correlator = RequestCorrelator(
            "notes",
            default_timeout=0.05,
            on_settled=lambda pending, outcome: outcomes.append((pending.id, outcome)),
        )
        ok = correlator.register("a")
        failed = correlator.register("b")
        timed_out = correlator.register("c")
        closed = correlator.register("d", timeout=5.0)

        correlator.settle(JSONRPCMessage.success_response(ok.id, 1))
        correlator.settle(JSONRPCMessage.error_response(failed.id, -1, "no"))
        with pytest.raises(MCPHostError):
            await timed_out.future
        correlator.reject_all(_closed)

        for future in (failed.future, closed.future):
            with pytest.raises(MCPHostError):
                await future

        assert outcomes == [
            (ok.id, SETTLED_SUCCESS),
            (failed.id, SETTLED_ERROR),
            (timed_out.id, SETTLED_TIMEOUT),
            (closed.id, SETTLED_CLOSED),
        ]
