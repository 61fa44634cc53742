"""
SSE Server Transport Module

This module implements the push-stream transport. A client opens a long-lived
GET stream, learns from the first ``endpoint`` event where to submit its
messages, and then POSTs each message to that endpoint. Responses and
notifications all travel back down the stream.

Example usage:
```
    # Create the transport with the message endpoint path
    sse = SseServerTransport("/messages", SessionRegistry("sse"))

    async with sse.run(running):
        # GET /sse
        await sse.connect_sse(scope, receive, send)

        # POST /messages?sessionId=...
        response = await sse.handle_post_message(request, request.query_params.get("sessionId"))
```

Closing the stream closes the session and unregisters it. Messages submitted
afterwards are answered with 404.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Any
from uuid import UUID

import anyio
from anyio.abc import TaskGroup
from sse_starlette import EventSourceResponse
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from mcp_weather.exceptions import MessageDecodeError
from mcp_weather.registry import SessionRegistry
from mcp_weather.runner import RunningServer
from mcp_weather.session import ServerSession
from mcp_weather.transport.base import (
    MAXIMUM_MESSAGE_SIZE,
    ClosureSignal,
    TransportKind,
    decode_error_response,
)
from mcp_weather.transport.sink import OutboxSink
from mcp_weather.types.messages import decode_client_message

logger = logging.getLogger(__name__)

SESSION_ID_PARAM = "sessionId"


class SseServerTransport:
    """
    SSE server transport for MCP. Provides two entry points:

    1. connect_sse() serves the GET stream that carries every server message
       of one session.
    2. handle_post_message() accepts the client messages of that session.
    """

    kind = TransportKind.SSE

    def __init__(
        self,
        endpoint: str,
        registry: SessionRegistry[ServerSession],
        *,
        max_pending_messages: int = 100,
    ) -> None:
        """
        Creates a new SSE server transport, which will direct the client to POST
        messages to the relative path given.

        Args:
            endpoint: Path clients POST their messages to, e.g. "/messages".
            registry: Registry holding the sessions of this transport.
            max_pending_messages: Bound on messages queued for a slow stream.
        """
        self._endpoint = endpoint
        self.registry = registry
        self.max_pending_messages = max_pending_messages

        self._running: RunningServer | None = None
        self._task_group: TaskGroup | None = None
        self._run_lock = anyio.Lock()
        self._has_started = False
        logger.debug(f"SseServerTransport initialized with endpoint: {endpoint}")

    @asynccontextmanager
    async def run(self, running: RunningServer) -> AsyncIterator[None]:
        """Own the task group submitted messages are processed in. Can only be entered once."""
        async with self._run_lock:
            if self._has_started:
                raise RuntimeError(
                    "SseServerTransport .run() can only be called once per instance. "
                    "Create a new instance if you need to run again."
                )
            self._has_started = True

        async with anyio.create_task_group() as tg:
            self._running = running
            self._task_group = tg
            logger.info("SSE transport started")
            try:
                yield
            finally:
                logger.info("SSE transport shutting down")
                tg.cancel_scope.cancel()
                self._task_group = None
                self.registry.close_all()

    def _require_running(self) -> tuple[RunningServer, TaskGroup]:
        if self._task_group is None or self._running is None:
            raise RuntimeError("Task group is not initialized. Make sure to use run().")
        return self._running, self._task_group

    async def connect_sse(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Serve one SSE stream until the client disconnects or the server shuts down."""
        if scope["type"] != "http":
            logger.error("connect_sse received non-HTTP request")
            raise ValueError("connect_sse can only handle HTTP requests")

        running, _ = self._require_running()

        session = self.registry.create(
            lambda session_id: ServerSession(
                session_id,
                running,
                transport=self.kind,
                max_pending_messages=self.max_pending_messages,
                on_close=self.registry.remove,
            )
        )
        signal = ClosureSignal()
        session.attach(signal)
        logger.debug(f"Created new session with ID: {session.session_id}")

        root_path = scope.get("root_path", "")
        endpoint_url = f"{root_path}{self._endpoint}?{SESSION_ID_PARAM}={session.session_id}"

        async def event_generator() -> AsyncIterator[dict[str, Any]]:
            try:
                logger.debug(f"Sending endpoint event: {endpoint_url}")
                yield {"event": "endpoint", "data": endpoint_url}
                async for message in session.outgoing():
                    logger.debug(f"Sending message via SSE: {message}")
                    yield {
                        "event": "message",
                        "data": message.model_dump_json(by_alias=True, exclude_none=True),
                    }
            finally:
                signal.fire()

        try:
            response = EventSourceResponse(event_generator())
            await response(scope, receive, send)
        except Exception as e:
            session.fail(e)
            raise
        finally:
            if signal.fire():
                logger.debug(f"Client session disconnected {session.session_id}")

    async def handle_post_message(self, request: Request, session_id: str | None) -> Response:
        _, tg = self._require_running()
        logger.debug("Handling POST message")

        if session_id is None:
            logger.warning("Received request without session_id")
            return Response("session_id is required", status_code=HTTPStatus.BAD_REQUEST)

        try:
            UUID(hex=session_id)
        except ValueError:
            logger.warning(f"Received invalid session ID: {session_id}")
            return Response("Invalid session ID", status_code=HTTPStatus.BAD_REQUEST)

        session = self.registry.get(session_id)
        if session is None:
            logger.warning(f"Could not find session for ID: {session_id}")
            return Response("Could not find session", status_code=HTTPStatus.NOT_FOUND)

        body = await request.body()
        if len(body) > MAXIMUM_MESSAGE_SIZE:
            return Response("Payload Too Large", status_code=HTTPStatus.REQUEST_ENTITY_TOO_LARGE)
        logger.debug(f"Received JSON: {body!r}")

        try:
            message = decode_client_message(body)
        except MessageDecodeError as e:
            return decode_error_response(e)

        logger.debug(f"Accepting message for session {session_id}: {message}")
        tg.start_soon(self._run_handler, session, message)
        return Response("Accepted", status_code=HTTPStatus.ACCEPTED)

    async def _run_handler(self, session: ServerSession, message: Any) -> None:
        try:
            await session.handle_message(OutboxSink(session), message)
        except Exception:
            logger.exception("Handler error on session %s", session.session_id)
