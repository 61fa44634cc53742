"""JSON-RPC 2.0 envelopes exchanged with MCP clients.

Inbound, a payload is first read as an untyped ``JSONRPCRequest``,
``JSONRPCNotification`` or response, then narrowed to one of the typed
``RequestBase`` / ``NotificationBase`` subclasses the server understands (see
``messages``). Outbound, the server only ever sends responses and notifications.
"""

from typing import Annotated, Any, Final, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

PARSE_ERROR: Final[int] = -32700
INVALID_REQUEST: Final[int] = -32600
METHOD_NOT_FOUND: Final[int] = -32601
INVALID_PARAMS: Final[int] = -32602
INTERNAL_ERROR: Final[int] = -32603

# Strict so that "1" and 1 stay distinct ids
RequestId = Annotated[int, Field(strict=True)] | str

MethodT = TypeVar("MethodT", bound=str)
ParamsT = TypeVar("ParamsT", bound=BaseModel | dict[str, Any] | None)


class JSONRPCBase(BaseModel):
    model_config = ConfigDict(extra="allow")

    jsonrpc: Literal["2.0"] = "2.0"


class RequestBase(JSONRPCBase, Generic[MethodT, ParamsT]):
    """A request that expects a response."""

    id: RequestId
    method: MethodT
    params: ParamsT


class NotificationBase(JSONRPCBase, Generic[MethodT, ParamsT]):
    """A notification which does not expect a response."""

    method: MethodT
    params: ParamsT


class JSONRPCRequest(RequestBase[str, dict[str, Any] | None]):
    """A request whose method has not been checked yet."""

    params: dict[str, Any] | None = None


class JSONRPCNotification(NotificationBase[str, dict[str, Any] | None]):
    """A notification with free-form params, as the server emits progress."""

    params: dict[str, Any] | None = None


class ErrorData(BaseModel):
    model_config = ConfigDict(extra="allow")

    code: int
    message: str
    data: Any | None = None


class JSONRPCResultResponse(JSONRPCBase):
    id: RequestId
    result: dict[str, Any]


class JSONRPCErrorResponse(JSONRPCBase):
    # None when the request could not be read far enough to find its id
    id: RequestId | None = None
    error: ErrorData


JSONRPCResponse = JSONRPCResultResponse | JSONRPCErrorResponse

# Everything the server sends to a client
JSONRPCMessage = JSONRPCNotification | JSONRPCResponse
