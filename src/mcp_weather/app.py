"""Starlette application wiring the weather server to both transports."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.routing import Route

from mcp_weather.dispatch import DispatchFront
from mcp_weather.httpx_utils import HttpClientFactory, create_http_client
from mcp_weather.registry import SessionRegistry
from mcp_weather.runner import ServerRunner
from mcp_weather.session import ServerSession
from mcp_weather.settings import Settings
from mcp_weather.tools import create_lifespan, create_server
from mcp_weather.transport.sse import SseServerTransport
from mcp_weather.transport.streamable_http import StreamableHTTPTransport
from mcp_weather.utilities.logging import get_logger

logger = get_logger(__name__)

HEALTH_MESSAGE = "MCP weather server is running"


async def health(request: Request) -> PlainTextResponse:
    return PlainTextResponse(HEALTH_MESSAGE)


def create_app(
    settings: Settings | None = None,
    *,
    http_client_factory: HttpClientFactory = create_http_client,
) -> Starlette:
    """Create the ASGI app serving both transports from one process.

    Usage:
        app = create_app(Settings(json_response=True))
        uvicorn.run(app, host="0.0.0.0", port=3000)

    The dispatch front is stored on ``app.state.front`` so that the session
    registries can be inspected while the app runs.
    """
    settings = settings or Settings()
    server = create_server(settings)
    runner = ServerRunner(server, lifespan=create_lifespan(settings, http_client_factory))

    streamable_registry: SessionRegistry[ServerSession] = SessionRegistry("streamable-http")
    sse_registry: SessionRegistry[ServerSession] = SessionRegistry("sse")

    front = DispatchFront(
        StreamableHTTPTransport(
            streamable_registry,
            json_response=settings.json_response,
            max_pending_messages=settings.max_pending_messages,
        ),
        SseServerTransport(
            settings.message_path,
            sse_registry,
            max_pending_messages=settings.max_pending_messages,
        ),
        streamable_http_path=settings.streamable_http_path,
        sse_path=settings.sse_path,
        message_path=settings.message_path,
    )

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with runner.run() as running:
            async with front.run(running):
                logger.info(
                    "%s %s serving %s and %s",
                    server.name,
                    server.version,
                    settings.streamable_http_path,
                    settings.sse_path,
                )
                yield

    # Routes without a method list so the front answers unsupported verbs itself
    routes = [
        Route("/", endpoint=health, methods=["GET"]),
        Route(settings.streamable_http_path, endpoint=front),
        Route(settings.sse_path, endpoint=front),
        Route(settings.message_path, endpoint=front),
    ]

    app = Starlette(debug=settings.debug, routes=routes, lifespan=lifespan)
    app.state.front = front
    return app
