from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mcp_weather.types.json_rpc import ErrorData, RequestId


class ProtocolError(Exception):
    """Exception raised to answer a request with a JSON-RPC error response.

    Request handlers raise it when the request cannot be satisfied (unknown
    tool, invalid arguments); the dispatcher turns it into an error response
    instead of an internal error.

    Attributes:
        error: The ErrorData sent back to the peer
    """

    error: ErrorData

    def __init__(self, error: ErrorData):
        super().__init__(error.message)
        self.error = error


class MessageDecodeError(ProtocolError):
    """Raised by the transports when an inbound payload is not a known protocol message."""

    def __init__(self, error: ErrorData, request_id: RequestId | None = None):
        super().__init__(error)
        self.request_id = request_id
