"""Pieces shared by both transport adapters."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from enum import Enum
from http import HTTPStatus
from typing import Any

from starlette.responses import JSONResponse, Response

from mcp_weather.exceptions import MessageDecodeError
from mcp_weather.types.json_rpc import INTERNAL_ERROR, ErrorData, JSONRPCErrorResponse, RequestId

logger = logging.getLogger(__name__)

# Maximum size for incoming messages
MAXIMUM_MESSAGE_SIZE = 4 * 1024 * 1024  # 4MB


class TransportKind(str, Enum):
    STREAMABLE_HTTP = "streamable-http"
    SSE = "sse"


class ClosureSignal:
    """Single-shot notification that the connection behind a session is gone.

    A transport adapter creates one signal per session and fires it when the
    connection closes. The session subscribes exactly once; firing runs the
    subscriber synchronously, and any later ``fire`` is a no-op. Subscribing to
    a signal that already fired runs the subscriber immediately.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._callback: Callable[[], Any] | None = None
        self._fired = False

    @property
    def fired(self) -> bool:
        return self._fired

    def subscribe(self, callback: Callable[[], Any]) -> None:
        with self._lock:
            if self._callback is not None:
                raise RuntimeError("ClosureSignal already has a subscriber")
            self._callback = callback
            fired = self._fired

        if fired:
            callback()

    def fire(self) -> bool:
        """Fire the signal. Returns False if it had already fired."""
        with self._lock:
            if self._fired:
                return False
            self._fired = True
            callback = self._callback

        if callback is not None:
            callback()
        return True


def error_response(
    status_code: int,
    message: str,
    *,
    code: int = INTERNAL_ERROR,
    request_id: RequestId | None = None,
    headers: dict[str, str] | None = None,
) -> Response:
    """An HTTP error response whose body is a JSON-RPC error."""
    body = JSONRPCErrorResponse(id=request_id, error=ErrorData(code=code, message=message))
    return JSONResponse(
        body.model_dump(by_alias=True, exclude_none=True),
        status_code=status_code,
        headers=headers,
    )


def decode_error_response(error: MessageDecodeError) -> Response:
    logger.debug("Rejected client message: %s", error.error.message)
    body = JSONRPCErrorResponse(id=error.request_id, error=error.error)
    return JSONResponse(
        body.model_dump(by_alias=True, exclude_none=True),
        status_code=HTTPStatus.BAD_REQUEST,
    )
