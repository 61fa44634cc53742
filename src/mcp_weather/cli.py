"""Command line entry point: ``mcp-weather`` / ``python -m mcp_weather``."""

from typing import Any

import click
import uvicorn

from mcp_weather.app import create_app
from mcp_weather.settings import Settings
from mcp_weather.utilities.logging import configure_logging


@click.command()
@click.option("--host", default=None, help="Interface to bind (default: MCP_WEATHER_HOST or 0.0.0.0)")
@click.option("--port", type=int, default=None, help="Port to listen on (default: MCP_WEATHER_PORT, PORT or 3000)")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Logging level",
)
@click.option(
    "--json-response",
    is_flag=True,
    default=None,
    help="Answer POST requests with plain JSON instead of SSE streams",
)
def main(host: str | None, port: int | None, log_level: str | None, json_response: bool | None) -> int:
    overrides: dict[str, Any] = {}
    if host is not None:
        overrides["host"] = host
    if port is not None:
        overrides["port"] = port
    if log_level is not None:
        overrides["log_level"] = log_level.upper()
    if json_response:
        overrides["json_response"] = True

    settings = Settings(**overrides)
    configure_logging(settings.log_level)

    app = create_app(settings)
    click.echo(f"MCP weather server listening on http://{settings.host}:{settings.port}", err=True)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    return 0
