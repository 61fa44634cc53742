"""Streamable HTTP transport: request/response sessions keyed by the mcp-session-id header.

- POST carries one client message. Without a session id a new session is
  created and its id is returned in the response header. A request is answered
  with its JSON-RPC response, as plain JSON when the handler emitted nothing
  else and as an SSE stream when it emitted intermediate notifications first.
- GET polls the session, returning every message waiting in its outbox. The
  messages come back as a JSON array, or as SSE events when the client only
  accepts text/event-stream. Either way the response ends once the outbox is
  drained.
- DELETE terminates the session.

Requests within one session are processed one at a time, in arrival order.
Sessions are not expired when idle: one lives until the client DELETEs it or
the transport shuts down, which fires the closure signal of every session it
still holds.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from http import HTTPStatus

import anyio
from anyio.abc import TaskGroup
from anyio.streams.memory import MemoryObjectReceiveStream
from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse

from mcp_weather.context import ResponseSink
from mcp_weather.exceptions import MessageDecodeError
from mcp_weather.registry import SessionRegistry
from mcp_weather.runner import RunningServer
from mcp_weather.session import ServerSession
from mcp_weather.transport.base import (
    MAXIMUM_MESSAGE_SIZE,
    ClosureSignal,
    TransportKind,
    decode_error_response,
    error_response,
)
from mcp_weather.transport.sink import ChannelSink, DeferredSink, NullSink, SinkEvent
from mcp_weather.types.json_rpc import INVALID_REQUEST, RequestBase
from mcp_weather.types.messages import ClientMessage, decode_client_message

logger = logging.getLogger(__name__)

MCP_SESSION_ID_HEADER = "mcp-session-id"
CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_SSE = "text/event-stream"

INVALID_SESSION_MESSAGE = "Bad Request: No valid session ID provided"


def _format_sse_event(data: str, event_id: str | None = None) -> str:
    """Format a single SSE event."""
    lines: list[str] = []
    if event_id is not None:
        lines.append(f"id: {event_id}")
    lines.append("event: message")
    lines.append(f"data: {data}")
    lines.append("")
    lines.append("")
    return "\n".join(lines)


def _accepts_only_event_stream(request: Request) -> bool:
    accept = request.headers.get("accept", "").lower()
    return CONTENT_TYPE_SSE in accept and CONTENT_TYPE_JSON not in accept


class StreamableHTTPTransport:
    """Adapter between HTTP requests and the streamable HTTP session registry.

    Usage:
        transport = StreamableHTTPTransport(SessionRegistry("streamable-http"))
        async with transport.run(running):
            response = await transport.handle_post(request, request.headers.get("mcp-session-id"))
    """

    kind = TransportKind.STREAMABLE_HTTP

    def __init__(
        self,
        registry: SessionRegistry[ServerSession],
        *,
        json_response: bool = False,
        max_pending_messages: int = 100,
    ) -> None:
        self.registry = registry
        self.json_response = json_response
        self.max_pending_messages = max_pending_messages

        self._running: RunningServer | None = None
        self._task_group: TaskGroup | None = None
        self._run_lock = anyio.Lock()
        self._has_started = False
        # closure signal per live session, fired on shutdown
        self._signals: dict[str, ClosureSignal] = {}

    @asynccontextmanager
    async def run(self, running: RunningServer) -> AsyncIterator[None]:
        """Own the task group that handlers run in.

        Can only be entered once per instance. On exit every pending handler is
        cancelled and every session is closed.
        """
        async with self._run_lock:
            if self._has_started:
                raise RuntimeError(
                    "StreamableHTTPTransport .run() can only be called once per instance. "
                    "Create a new instance if you need to run again."
                )
            self._has_started = True

        async with anyio.create_task_group() as tg:
            self._running = running
            self._task_group = tg
            logger.info("Streamable HTTP transport started")
            try:
                yield
            finally:
                logger.info("Streamable HTTP transport shutting down")
                tg.cancel_scope.cancel()
                self._task_group = None
                for signal in list(self._signals.values()):
                    signal.fire()

    def _require_running(self) -> tuple[RunningServer, TaskGroup]:
        if self._task_group is None or self._running is None:
            raise RuntimeError("Task group is not initialized. Make sure to use run().")
        return self._running, self._task_group

    def _create_session(self, running: RunningServer) -> ServerSession:
        session = self.registry.create(
            lambda session_id: ServerSession(
                session_id,
                running,
                transport=self.kind,
                single_flight=True,
                max_pending_messages=self.max_pending_messages,
                on_close=self._forget_session,
            )
        )
        signal = ClosureSignal()
        self._signals[session.session_id] = signal
        session.attach(signal)
        return session

    def _forget_session(self, session_id: str) -> None:
        self._signals.pop(session_id, None)
        self.registry.remove(session_id)

    def _invalid_session(self, session_id: str | None) -> Response:
        logger.debug("Rejected request with session id %r", session_id)
        return error_response(HTTPStatus.BAD_REQUEST, INVALID_SESSION_MESSAGE, code=INVALID_REQUEST)

    # --- verbs ---

    async def handle_post(self, request: Request, session_id: str | None) -> Response:
        running, tg = self._require_running()

        content_type = request.headers.get("content-type", "")
        if not content_type.lower().startswith(CONTENT_TYPE_JSON):
            return error_response(
                HTTPStatus.UNSUPPORTED_MEDIA_TYPE,
                "Unsupported Media Type: Content-Type must be application/json",
                code=INVALID_REQUEST,
            )

        body = await request.body()
        if len(body) > MAXIMUM_MESSAGE_SIZE:
            return error_response(
                HTTPStatus.REQUEST_ENTITY_TOO_LARGE,
                "Payload Too Large: Message exceeds maximum size",
                code=INVALID_REQUEST,
            )

        try:
            message = decode_client_message(body)
        except MessageDecodeError as e:
            return decode_error_response(e)

        if session_id is None:
            session = self._create_session(running)
        else:
            existing = self.registry.get(session_id)
            if existing is None:
                return self._invalid_session(session_id)
            session = existing

        headers = {MCP_SESSION_ID_HEADER: session.session_id}

        if not isinstance(message, RequestBase):
            tg.start_soon(self._run_handler, session, NullSink(), message)
            return Response(status_code=HTTPStatus.ACCEPTED, headers=headers)

        send, recv = anyio.create_memory_object_stream[SinkEvent](self.max_pending_messages)
        sink = DeferredSink(send, session) if self.json_response else ChannelSink(send)
        tg.start_soon(self._run_handler, session, sink, message)

        try:
            first = await recv.receive()
        except anyio.EndOfStream:
            recv.close()
            if session.is_closed:
                return error_response(
                    HTTPStatus.NOT_FOUND, "Session terminated", code=INVALID_REQUEST, request_id=message.id
                )
            return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, "Internal error", request_id=message.id)

        if first.is_final:
            recv.close()
            return JSONResponse(first.message.model_dump(by_alias=True, exclude_none=True), headers=headers)

        return StreamingResponse(
            self._event_stream(first, recv),
            media_type=CONTENT_TYPE_SSE,
            headers={
                **headers,
                "Cache-Control": "no-cache, no-transform",
                "Connection": "keep-alive",
            },
        )

    async def handle_get(self, request: Request, session_id: str | None) -> Response:
        """Poll: hand back whatever is waiting in the session outbox."""
        self._require_running()
        session = self.registry.get(session_id)
        if session is None:
            return self._invalid_session(session_id)

        messages = session.drain()
        logger.debug("Poll on session %s returned %d messages", session.session_id, len(messages))
        headers = {MCP_SESSION_ID_HEADER: session.session_id}

        if _accepts_only_event_stream(request):
            body = "".join(
                _format_sse_event(message.model_dump_json(by_alias=True, exclude_none=True)) for message in messages
            )
            return Response(
                body,
                media_type=CONTENT_TYPE_SSE,
                headers={**headers, "Cache-Control": "no-cache, no-transform"},
            )

        return JSONResponse(
            [message.model_dump(by_alias=True, exclude_none=True) for message in messages],
            headers=headers,
        )

    async def handle_delete(self, request: Request, session_id: str | None) -> Response:
        self._require_running()
        session = self.registry.get(session_id)
        if session is None:
            return self._invalid_session(session_id)

        session.terminate()
        return Response(status_code=HTTPStatus.OK)

    # --- internals ---

    async def _event_stream(self, first: SinkEvent, recv: MemoryObjectReceiveStream[SinkEvent]) -> AsyncIterator[str]:
        data = first.message.model_dump_json(by_alias=True, exclude_none=True)
        yield _format_sse_event(data, first.event_id)
        async with recv:
            async for event in recv:
                event_data = event.message.model_dump_json(by_alias=True, exclude_none=True)
                yield _format_sse_event(event_data, event.event_id)

    async def _run_handler(self, session: ServerSession, sink: ResponseSink, message: ClientMessage) -> None:
        """Run the session's handler and close the sink when done."""
        try:
            await session.handle_message(sink, message)
        except anyio.BrokenResourceError:
            logger.debug("Client of session %s went away before the response was sent", session.session_id)
        except Exception:
            logger.exception("Handler error on session %s", session.session_id)
        finally:
            await sink.close()