"""The weather server: tool definitions, handlers and the lifespan that owns the HTTP client."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any

import httpx
from pydantic import ValidationError

from mcp_weather.context import RequestContext
from mcp_weather.exceptions import ProtocolError
from mcp_weather.httpx_utils import HttpClientFactory, create_http_client
from mcp_weather.server import LowLevelServer
from mcp_weather.settings import Settings
from mcp_weather.types import (
    INVALID_PARAMS,
    CallToolRequest,
    CallToolResult,
    ErrorData,
    JsonSchema,
    ListToolsRequest,
    ListToolsResult,
    Tool,
    ToolAnnotations,
)
from mcp_weather.utilities.logging import get_logger
from mcp_weather.weather import WeatherArguments, lookup_weather

logger = get_logger(__name__)

WEATHER_TOOL_NAME = "realtime_weather"

WEATHER_TOOL = Tool(
    name=WEATHER_TOOL_NAME,
    title="Realtime weather",
    description="Get the current weather for a city",
    input_schema=JsonSchema.model_validate(WeatherArguments.model_json_schema()),
    annotations=ToolAnnotations(read_only_hint=True, open_world_hint=True),
)

TOOLS = [WEATHER_TOOL]


def create_lifespan(
    settings: Settings,
    http_client_factory: HttpClientFactory = create_http_client,
) -> Callable[[LowLevelServer], AbstractAsyncContextManager[dict[str, Any]]]:
    """Lifespan that shares one HTTP client between every session."""

    @asynccontextmanager
    async def lifespan(server: LowLevelServer) -> AsyncIterator[dict[str, Any]]:
        async with http_client_factory(timeout=httpx.Timeout(settings.http_timeout)) as client:
            logger.debug("HTTP client for %s ready", server.name)
            yield {"http_client": client, "settings": settings}

    return lifespan


def create_server(settings: Settings) -> LowLevelServer:
    server = LowLevelServer(name=settings.server_name, version=settings.server_version)

    @server.request_handler("tools/list")
    async def list_tools(ctx: RequestContext, request: ListToolsRequest) -> ListToolsResult:
        return ListToolsResult(tools=TOOLS)

    @server.request_handler("tools/call")
    async def call_tool(ctx: RequestContext, request: CallToolRequest) -> CallToolResult:
        name = request.params.name
        if name != WEATHER_TOOL_NAME:
            raise ProtocolError(ErrorData(code=INVALID_PARAMS, message=f"Unknown tool: {name}"))

        try:
            arguments = WeatherArguments.model_validate(request.params.arguments or {})
        except ValidationError as e:
            raise ProtocolError(
                ErrorData(code=INVALID_PARAMS, message=f"Invalid arguments for tool {name}", data=str(e))
            )

        async def progress(step: float, message: str) -> None:
            await ctx.report_progress(step, total=2, message=message)

        return await lookup_weather(
            ctx.server_state["http_client"],
            arguments.city,
            arguments.country,
            arguments.lang,
            settings=settings,
            progress=progress,
        )

    return server
