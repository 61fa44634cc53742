"""Dispatch front: routes each HTTP exchange to the transport that owns it.

The session id is extracted according to the route: the ``mcp-session-id``
header on the streamable HTTP path, the ``sessionId`` query parameter on the
message path, and none at all when a new SSE stream is opened.

Any unexpected failure while handling an exchange is logged and turned into a
500 response, provided nothing has been sent to the client yet.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from http import HTTPStatus

from starlette.requests import Request
from starlette.responses import Response
from starlette.types import Message, Receive, Scope, Send

from mcp_weather.registry import SessionRegistry
from mcp_weather.runner import RunningServer
from mcp_weather.session import ServerSession
from mcp_weather.transport.base import error_response
from mcp_weather.transport.sse import SESSION_ID_PARAM, SseServerTransport
from mcp_weather.transport.streamable_http import MCP_SESSION_ID_HEADER, StreamableHTTPTransport

logger = logging.getLogger(__name__)


class DispatchFront:
    """ASGI app in front of both transport adapters.

    Usage:
        front = DispatchFront(streamable, sse)
        async with front.run(running):
            await front(scope, receive, send)
    """

    def __init__(
        self,
        streamable: StreamableHTTPTransport,
        sse: SseServerTransport,
        *,
        streamable_http_path: str = "/mcp",
        sse_path: str = "/sse",
        message_path: str = "/messages",
    ) -> None:
        self.streamable = streamable
        self.sse = sse
        self.streamable_http_path = streamable_http_path
        self.sse_path = sse_path
        self.message_path = message_path

    @property
    def registries(self) -> dict[str, SessionRegistry[ServerSession]]:
        return {
            self.streamable.kind.value: self.streamable.registry,
            self.sse.kind.value: self.sse.registry,
        }

    @asynccontextmanager
    async def run(self, running: RunningServer) -> AsyncIterator[None]:
        async with self.streamable.run(running), self.sse.run(running):
            yield

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        response_started = False

        async def guarded_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self._dispatch(scope, receive, guarded_send)
        except Exception:
            logger.exception("Unhandled error on %s %s", scope.get("method"), scope.get("path"))
            if response_started:
                raise
            response = error_response(HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error")
            await response(scope, receive, send)

    async def _dispatch(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        path = scope["path"]
        method = request.method

        if path == self.streamable_http_path:
            session_id = request.headers.get(MCP_SESSION_ID_HEADER)
            match method:
                case "POST":
                    response = await self.streamable.handle_post(request, session_id)
                case "GET":
                    response = await self.streamable.handle_get(request, session_id)
                case "DELETE":
                    response = await self.streamable.handle_delete(request, session_id)
                case _:
                    response = _method_not_allowed("GET, POST, DELETE")
        elif path == self.sse_path:
            if method != "GET":
                response = _method_not_allowed("GET")
            else:
                await self.sse.connect_sse(scope, receive, send)
                return
        elif path == self.message_path:
            if method != "POST":
                response = _method_not_allowed("POST")
            else:
                response = await self.sse.handle_post_message(request, request.query_params.get(SESSION_ID_PARAM))
        else:
            response = Response("Not Found", status_code=HTTPStatus.NOT_FOUND)

        await response(scope, receive, send)


def _method_not_allowed(allow: str) -> Response:
    return Response("Method Not Allowed", status_code=HTTPStatus.METHOD_NOT_ALLOWED, headers={"Allow": allow})
