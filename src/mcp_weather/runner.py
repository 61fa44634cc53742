"""ServerRunner and RunningServer.

The runner bridges the LowLevelServer (pure dispatch) with the sessions.
It manages the process-wide lifecycle (lifespan) and answers the protocol
handshake on behalf of the server.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any

from mcp_weather.context import RequestContext
from mcp_weather.server import LowLevelServer
from mcp_weather.types.base import LATEST_PROTOCOL_VERSION, SUPPORTED_PROTOCOL_VERSIONS
from mcp_weather.types.initialize import (
    Implementation,
    InitializeRequestParams,
    InitializeResult,
    ServerCapabilities,
)
from mcp_weather.types.json_rpc import JSONRPCResponse, NotificationBase, RequestBase

logger = logging.getLogger(__name__)

Lifespan = Callable[[LowLevelServer], AbstractAsyncContextManager[Any]]


@asynccontextmanager
async def _default_lifespan(server: LowLevelServer) -> AsyncIterator[dict[str, Any]]:
    yield {}


class ServerRunner:
    """Manages lifecycle and produces a RunningServer.

    Usage:
        runner = ServerRunner(server, lifespan=my_lifespan)
        async with runner.run() as running:
            # Hand running to the transports
            ...
    """

    def __init__(self, server: LowLevelServer, *, lifespan: Lifespan | None = None) -> None:
        self.server = server
        self._lifespan = lifespan or _default_lifespan

    @asynccontextmanager
    async def run(self) -> AsyncIterator[RunningServer]:
        """Enter server lifespan once, yield a running server."""
        async with self._lifespan(self.server) as server_state:
            logger.debug("Server %s entered its lifespan", self.server.name)
            yield RunningServer(self.server, server_state)


class RunningServer:
    """A server with active lifespan, shared by every session."""

    def __init__(self, server: LowLevelServer, server_state: Any) -> None:
        self._server = server
        self._server_state = server_state

    async def dispatch_request(self, ctx: RequestContext, request: RequestBase[Any, Any]) -> JSONRPCResponse:
        return await self._server.dispatch_request(ctx, request)

    async def dispatch_notification(self, ctx: RequestContext, notification: NotificationBase[Any, Any]) -> None:
        await self._server.dispatch_notification(ctx, notification)

    def initialize(self, params: InitializeRequestParams) -> InitializeResult:
        """Answer the initialize handshake.

        The client's protocol version is echoed back when supported, otherwise
        the latest version is offered and the client decides whether to go on.
        """
        if params.protocol_version in SUPPORTED_PROTOCOL_VERSIONS:
            protocol_version = params.protocol_version
        else:
            protocol_version = LATEST_PROTOCOL_VERSION

        return InitializeResult(
            protocol_version=protocol_version,
            capabilities=self._server.get_capabilities(),
            server_info=Implementation(name=self._server.name, version=self._server.version),
            instructions=self._server.instructions,
        )

    @property
    def capabilities(self) -> ServerCapabilities:
        return self._server.get_capabilities()

    @property
    def server_state(self) -> Any:
        return self._server_state
