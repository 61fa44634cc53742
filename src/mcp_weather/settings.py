"""Server settings.

All settings can be configured via environment variables with the prefix
MCP_WEATHER_. For example, MCP_WEATHER_LOG_LEVEL=DEBUG sets log_level. The
listening port also honours the bare PORT variable set by hosting platforms.
"""

from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MCP_WEATHER_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    # Server settings
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    server_name: str = "mcp-http"
    server_version: str = "1.0.0"

    # HTTP settings
    host: str = "0.0.0.0"
    port: int = Field(default=3000, validation_alias=AliasChoices("MCP_WEATHER_PORT", "PORT", "port"))
    streamable_http_path: str = "/mcp"
    sse_path: str = "/sse"
    message_path: str = "/messages"

    # Session settings
    json_response: bool = False
    """Answer POST requests with plain JSON and defer intermediate messages to the poll verb."""

    max_pending_messages: int = Field(default=100, ge=1)
    """Bound on the per-session outbox of messages waiting for delivery."""

    # Weather collaborators
    geocoding_url: str = "https://geocoding-api.open-meteo.com/v1/search"
    forecast_url: str = "https://api.open-meteo.com/v1/forecast"
    http_timeout: float = Field(default=10.0, gt=0)
