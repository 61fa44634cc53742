"""MCP Base Types - protocol versions and the models every MCP payload builds on."""

from typing import Annotated, Any, Final

from pydantic import BaseModel, ConfigDict, Field

LATEST_PROTOCOL_VERSION: Final[str] = "2025-11-25"

SUPPORTED_PROTOCOL_VERSIONS: Final[tuple[str, ...]] = (
    "2024-11-05",
    "2025-03-26",
    "2025-06-18",
    LATEST_PROTOCOL_VERSION,
)

ProgressToken = str | int


class MCPModel(BaseModel):
    """Base class for all MCP domain types. Allows extra fields for forward compatibility."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class RequestMeta(MCPModel):
    progress_token: Annotated[ProgressToken | None, Field(alias="progressToken")] = None


class RequestParams(MCPModel):
    """Request params; ``_meta`` carries the progress token a client wants progress on."""

    meta: Annotated[RequestMeta | None, Field(alias="_meta")] = None


class NotificationParams(MCPModel):
    meta: Annotated[dict[str, Any] | None, Field(alias="_meta")] = None


class Result(MCPModel):
    meta: Annotated[dict[str, Any] | None, Field(alias="_meta")] = None


class EmptyResult(Result):
    """A response that indicates success but carries no data."""


class ProgressNotificationParams(NotificationParams):
    """Params of the notifications/progress the server sends while a tool runs."""

    progress_token: Annotated[ProgressToken, Field(alias="progressToken")]
    progress: float
    total: float | None = None
    message: str | None = None
