"""Request correlation: pairs JSON-RPC responses with outstanding requests."""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from mcphost.errors import MCPHostError, create_error

from .protocol import JSONRPCMessage

# Settlement outcomes reported to the on_settled hook
SETTLED_SUCCESS = "success"
SETTLED_ERROR = "error"
SETTLED_TIMEOUT = "timeout"
SETTLED_CLOSED = "closed"

SettledCallback = Callable[["PendingRequest", str], None]


@dataclass
class PendingRequest:
    """An outstanding request awaiting its response or timeout."""

    id: int
    method: str
    future: asyncio.Future[Any]
    timeout: float | None
    timer: asyncio.TimerHandle | None
    started_at: float

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at


class RequestCorrelator:
    """Pending-request table for one client.

    Ids are allocated sequentially and never reused for the lifetime of the
    correlator, so a late response to a timed-out or torn-down request can
    never settle a newer one. Every registered request is settled exactly
    once: by its response, by its timer, or by ``reject_all``.
    """

    def __init__(
        self,
        server_name: str = "",
        default_timeout: float | None = 30.0,
        on_settled: SettledCallback | None = None,
    ):
        """Initialize correlator.

        Args:
            server_name: Server name used in error context
            default_timeout: Seconds before an unanswered request is rejected
                (None or 0 disables the timer)
            on_settled: Optional hook called with (request, outcome) after
                each settlement
        """
        self.server_name = server_name
        self.default_timeout = default_timeout
        self._on_settled = on_settled
        self._last_id = 0
        self._pending: dict[int, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    @property
    def last_id(self) -> int:
        """Most recently allocated id (0 before the first request)."""
        return self._last_id

    def pending_ids(self) -> list[int]:
        return list(self._pending)

    def register(self, method: str, timeout: float | None = None) -> PendingRequest:
        """Allocate the next id and start tracking a request.

        Must be called from inside the event loop that will settle it.

        Args:
            method: JSON-RPC method (for errors and metrics)
            timeout: Per-request override of the default timeout

        Returns:
            The new PendingRequest
        """
        loop = asyncio.get_running_loop()
        self._last_id += 1
        request_id = self._last_id

        effective_timeout = self.default_timeout if timeout is None else timeout
        timer = None
        if effective_timeout:
            timer = loop.call_later(effective_timeout, self._expire, request_id)

        pending = PendingRequest(
            id=request_id,
            method=method,
            future=loop.create_future(),
            timeout=effective_timeout,
            timer=timer,
            started_at=time.monotonic(),
        )
        self._pending[request_id] = pending
        pending.future.add_done_callback(
            lambda future, rid=request_id: self._forget_cancelled(rid, future)
        )
        return pending

    def settle(self, message: dict[str, Any]) -> bool:
        """Settle the request a response belongs to.

        Unknown ids (stale, duplicate or never issued) are ignored.

        Args:
            message: Decoded response message

        Returns:
            True if a pending request was settled
        """
        request_id = message.get("id")
        if isinstance(request_id, bool) or not isinstance(request_id, int):
            return False

        pending = self._pending.pop(request_id, None)
        if pending is None:
            return False

        self._cancel_timer(pending)
        if pending.future.done():
            return False

        if JSONRPCMessage.is_error(message):
            error = JSONRPCMessage.get_error(message)
            pending.future.set_exception(
                create_error(
                    "MCP_RPC_ERROR",
                    message=str(error.get("message", "Unknown error")),
                    rpc_code=error.get("code"),
                    method=pending.method,
                    request_id=pending.id,
                    server_name=self.server_name,
                )
            )
            self._notify(pending, SETTLED_ERROR)
        else:
            pending.future.set_result(JSONRPCMessage.get_result(message))
            self._notify(pending, SETTLED_SUCCESS)
        return True

    def fail(self, request_id: int, error: BaseException) -> bool:
        """Reject one request (e.g. its write failed).

        Returns:
            True if the request was still pending
        """
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return False
        self._cancel_timer(pending)
        if not pending.future.done():
            pending.future.set_exception(error)
            self._notify(pending, SETTLED_CLOSED)
        return True

    def reject_all(self, make_error: Callable[[PendingRequest], BaseException]) -> int:
        """Reject every outstanding request (connection teardown).

        Args:
            make_error: Builds the exception for each request

        Returns:
            Number of requests rejected
        """
        pending_requests = list(self._pending.values())
        self._pending.clear()

        for pending in pending_requests:
            self._cancel_timer(pending)
            if not pending.future.done():
                pending.future.set_exception(make_error(pending))
                self._notify(pending, SETTLED_CLOSED)
        return len(pending_requests)

    def _expire(self, request_id: int) -> None:
        """Timer callback: reject a request that got no response in time."""
        pending = self._pending.pop(request_id, None)
        if pending is None or pending.future.done():
            return

        error: MCPHostError = create_error(
            "MCP_REQUEST_TIMEOUT",
            method=pending.method,
            timeout_seconds=pending.timeout,
            request_id=pending.id,
            server_name=self.server_name,
        )
        pending.future.set_exception(error)
        self._notify(pending, SETTLED_TIMEOUT)

    def _forget_cancelled(self, request_id: int, future: asyncio.Future[Any]) -> None:
        """Drop the entry if the awaiting caller cancelled its future."""
        if not future.cancelled():
            return
        pending = self._pending.get(request_id)
        if pending is not None and pending.future is future:
            del self._pending[request_id]
            self._cancel_timer(pending)

    @staticmethod
    def _cancel_timer(pending: PendingRequest) -> None:
        if pending.timer is not None:
            pending.timer.cancel()
            pending.timer = None

    def _notify(self, pending: PendingRequest, outcome: str) -> None:
        if self._on_settled is not None:
            self._on_settled(pending, outcome)
