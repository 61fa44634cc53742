"""MCP Initialize Types - the handshake, ping and cancellation."""

from typing import Annotated, Any, Literal

from pydantic import Field

from mcp_weather.types.base import MCPModel, NotificationParams, RequestParams, Result
from mcp_weather.types.json_rpc import NotificationBase, RequestBase, RequestId


class Implementation(MCPModel):
    """Name and version of the client or server on either end of a session."""

    name: str
    version: str
    title: str | None = None


class ClientCapabilities(MCPModel):
    """Recorded on the session only; the server never calls back into the client."""

    roots: dict[str, Any] | None = None
    sampling: dict[str, Any] | None = None
    elicitation: dict[str, Any] | None = None
    experimental: dict[str, Any] | None = None


class ToolsCapability(MCPModel):
    # The tool set is fixed at startup
    list_changed: Annotated[bool, Field(alias="listChanged")] = False


class ServerCapabilities(MCPModel):
    tools: ToolsCapability | None = None


class InitializeRequestParams(RequestParams):
    """Parameters for the initialize request."""

    protocol_version: Annotated[str, Field(alias="protocolVersion")]
    capabilities: ClientCapabilities
    client_info: Annotated[Implementation, Field(alias="clientInfo")]


class InitializeRequest(RequestBase[Literal["initialize"], InitializeRequestParams]):
    """Sent from client to server when first connecting."""

    method: Literal["initialize"] = "initialize"
    params: InitializeRequestParams


class InitializeResult(Result):
    """Server's response to an initialize request."""

    protocol_version: Annotated[str, Field(alias="protocolVersion")]
    capabilities: ServerCapabilities
    server_info: Annotated[Implementation, Field(alias="serverInfo")]
    instructions: str | None = None


class InitializedNotification(NotificationBase[Literal["notifications/initialized"], NotificationParams | None]):
    """Sent from client to server after initialization is complete."""

    method: Literal["notifications/initialized"] = "notifications/initialized"
    params: NotificationParams | None = None


class PingRequest(RequestBase[Literal["ping"], RequestParams | None]):
    """A liveness check; the receiver answers with an empty result."""

    method: Literal["ping"] = "ping"
    params: RequestParams | None = None


class CancelledNotificationParams(NotificationParams):
    """Parameters for notifications/cancelled."""

    request_id: Annotated[RequestId | None, Field(alias="requestId")] = None
    reason: str | None = None


class CancelledNotification(NotificationBase[Literal["notifications/cancelled"], CancelledNotificationParams]):
    """Sent by the client to indicate it is no longer interested in a request."""

    method: Literal["notifications/cancelled"] = "notifications/cancelled"
    params: CancelledNotificationParams
