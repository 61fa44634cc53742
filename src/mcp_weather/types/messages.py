"""The closed set of messages a client may send, and the decoder that enforces it.

Decoding happens in two steps. The payload is first classified as a JSON-RPC
request, notification or response by field presence; requests and
notifications are then validated against the tagged union of the methods this
server understands, discriminated on ``method``. Anything outside that set is
rejected with a JSON-RPC error code the transport can hand back to the client.
"""

import json
from typing import Annotated, Any, get_args

from pydantic import Field, TypeAdapter, ValidationError

from mcp_weather.exceptions import MessageDecodeError
from mcp_weather.types.initialize import (
    CancelledNotification,
    InitializedNotification,
    InitializeRequest,
    PingRequest,
)
from mcp_weather.types.json_rpc import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    ErrorData,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
)
from mcp_weather.types.tools import CallToolRequest, ListToolsRequest

ClientRequest = Annotated[
    InitializeRequest | PingRequest | ListToolsRequest | CallToolRequest,
    Field(discriminator="method"),
]
ClientNotification = Annotated[
    InitializedNotification | CancelledNotification,
    Field(discriminator="method"),
]

# Sorts a payload into request, notification or response by field presence
_Envelope = JSONRPCRequest | JSONRPCNotification | JSONRPCResponse
_EnvelopeAdapter: TypeAdapter[_Envelope] = TypeAdapter(_Envelope)
ClientRequestAdapter: TypeAdapter[ClientRequest] = TypeAdapter(ClientRequest)
ClientNotificationAdapter: TypeAdapter[ClientNotification] = TypeAdapter(ClientNotification)

ClientMessage = (
    InitializeRequest
    | PingRequest
    | ListToolsRequest
    | CallToolRequest
    | InitializedNotification
    | CancelledNotification
    | JSONRPCResponse
)


def _methods(union: Any) -> frozenset[str]:
    members = get_args(get_args(union)[0])
    return frozenset(member.model_fields["method"].default for member in members)


REQUEST_METHODS = _methods(ClientRequest)
NOTIFICATION_METHODS = _methods(ClientNotification)


def decode_client_message(body: bytes | str) -> ClientMessage:
    """Decode a raw request body into a typed client message.

    Raises:
        MessageDecodeError: if the body is not JSON, not a single JSON-RPC
            message, names an unknown method or carries invalid params.
    """
    try:
        raw = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MessageDecodeError(ErrorData(code=PARSE_ERROR, message=f"Parse error: {e}"))

    if isinstance(raw, list):
        raise MessageDecodeError(ErrorData(code=INVALID_REQUEST, message="Batch requests are not supported"))

    try:
        message = _EnvelopeAdapter.validate_python(raw)
    except ValidationError as e:
        raise MessageDecodeError(ErrorData(code=INVALID_REQUEST, message=f"Invalid Request: {e.error_count()} errors"))

    if isinstance(message, JSONRPCRequest):
        if message.method not in REQUEST_METHODS:
            raise MessageDecodeError(
                ErrorData(code=METHOD_NOT_FOUND, message=f"Method not found: {message.method}"),
                request_id=message.id,
            )
        try:
            return ClientRequestAdapter.validate_python(raw)
        except ValidationError as e:
            raise MessageDecodeError(
                ErrorData(code=INVALID_PARAMS, message=f"Invalid params for {message.method}", data=str(e)),
                request_id=message.id,
            )

    if isinstance(message, JSONRPCNotification):
        if message.method not in NOTIFICATION_METHODS:
            raise MessageDecodeError(
                ErrorData(code=METHOD_NOT_FOUND, message=f"Unknown notification: {message.method}")
            )
        try:
            return ClientNotificationAdapter.validate_python(raw)
        except ValidationError as e:
            raise MessageDecodeError(
                ErrorData(code=INVALID_PARAMS, message=f"Invalid params for {message.method}", data=str(e))
            )

    return message
