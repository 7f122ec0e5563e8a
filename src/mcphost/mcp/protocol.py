"""JSON-RPC 2.0 codec for MCP over ndjson."""

import json
from enum import Enum
from typing import Any

JSONRPC_VERSION = "2.0"

# Standard JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class MessageKind(str, Enum):
    """Classification of a decoded inbound message."""

    RESPONSE = "response"  # id, no method
    NOTIFICATION = "notification"  # method, no id
    REQUEST = "request"  # method and id (server-initiated, unsupported)
    INVALID = "invalid"  # anything else (e.g. error response with null id)


class JSONRPCMessage:
    """JSON-RPC 2.0 message builder and parser."""

    @staticmethod
    def request(method: str, params: dict[str, Any] | None = None, id: int = 1) -> dict[str, Any]:
        """Build a JSON-RPC request.

        Args:
            method: Method name (e.g., "initialize", "tools/list", "tools/call")
            params: Optional parameters
            id: Request ID

        Returns:
            JSON-RPC request dict
        """
        msg: dict[str, Any] = {
            "jsonrpc": JSONRPC_VERSION,
            "id": id,
            "method": method,
        }
        if params is not None:
            msg["params"] = params
        return msg

    @staticmethod
    def notification(method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Build a JSON-RPC notification (no response expected).

        Args:
            method: Method name
            params: Optional parameters

        Returns:
            JSON-RPC notification dict
        """
        msg: dict[str, Any] = {
            "jsonrpc": JSONRPC_VERSION,
            "method": method,
        }
        if params is not None:
            msg["params"] = params
        return msg

    @staticmethod
    def success_response(id: int | str, result: Any) -> dict[str, Any]:
        """Build a JSON-RPC success response."""
        return {
            "jsonrpc": JSONRPC_VERSION,
            "id": id,
            "result": result,
        }

    @staticmethod
    def error_response(
        id: int | str | None, code: int, message: str, data: Any = None
    ) -> dict[str, Any]:
        """Build a JSON-RPC error response."""
        error: dict[str, Any] = {
            "code": code,
            "message": message,
        }
        if data is not None:
            error["data"] = data

        return {
            "jsonrpc": JSONRPC_VERSION,
            "id": id,
            "error": error,
        }

    @staticmethod
    def encode(message: dict[str, Any]) -> bytes:
        """Serialize one message as an ndjson line.

        ``json.dumps`` escapes control characters, so the encoded object never
        contains a raw newline and the trailing ``\\n`` is the only frame
        delimiter.
        """
        return (json.dumps(message, separators=(",", ":")) + "\n").encode("utf-8")

    @staticmethod
    def parse(message: str | bytes) -> dict[str, Any]:
        """Parse a JSON-RPC message.

        Args:
            message: JSON string or bytes

        Returns:
            Parsed message dict

        Raises:
            ValueError: If message is not valid JSON or not a JSON object
        """
        if isinstance(message, bytes):
            message = message.decode("utf-8")
        parsed = json.loads(message)
        if not isinstance(parsed, dict):
            raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
        return parsed

    @staticmethod
    def classify(message: dict[str, Any]) -> MessageKind:
        """Classify a decoded message.

        A message with a non-null ``id`` and no ``method`` is a response;
        a message with ``method`` is a notification or, if it also carries
        an ``id``, a server-initiated request.
        """
        has_method = isinstance(message.get("method"), str)
        has_id = message.get("id") is not None
        if has_id and "method" not in message:
            return MessageKind.RESPONSE
        if has_method:
            return MessageKind.REQUEST if has_id else MessageKind.NOTIFICATION
        return MessageKind.INVALID

    @staticmethod
    def is_error(message: dict[str, Any]) -> bool:
        """Check if message is an error response."""
        return message.get("error") is not None

    @staticmethod
    def get_result(message: dict[str, Any]) -> Any:
        """Extract result from response message (None when absent)."""
        return message.get("result")

    @staticmethod
    def get_error(message: dict[str, Any]) -> dict[str, Any]:
        """Extract error from error response.

        Non-object errors are normalized to ``{"code": INTERNAL_ERROR, "message": str(error)}``.
        """
        error = message.get("error")
        if isinstance(error, dict):
            return error
        return {"code": INTERNAL_ERROR, "message": str(error)}
