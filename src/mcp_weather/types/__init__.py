from .base import LATEST_PROTOCOL_VERSION, SUPPORTED_PROTOCOL_VERSIONS, EmptyResult, ProgressNotificationParams
from .content import ContentBlock, TextContent
from .initialize import (
    CancelledNotification,
    ClientCapabilities,
    Implementation,
    InitializedNotification,
    InitializeRequest,
    InitializeRequestParams,
    InitializeResult,
    PingRequest,
    ServerCapabilities,
    ToolsCapability,
)
from .json_rpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    ErrorData,
    JSONRPCErrorResponse,
    JSONRPCMessage,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    JSONRPCResultResponse,
    RequestId,
)
from .messages import ClientMessage, decode_client_message
from .tools import (
    CallToolRequest,
    CallToolRequestParams,
    CallToolResult,
    JsonSchema,
    ListToolsRequest,
    ListToolsResult,
    Tool,
    ToolAnnotations,
)

__all__ = [
    "CallToolRequest",
    "CallToolRequestParams",
    "CallToolResult",
    "CancelledNotification",
    "ClientCapabilities",
    "ClientMessage",
    "ContentBlock",
    "EmptyResult",
    "ErrorData",
    "Implementation",
    "INTERNAL_ERROR",
    "INVALID_PARAMS",
    "INVALID_REQUEST",
    "InitializeRequest",
    "InitializeRequestParams",
    "InitializeResult",
    "InitializedNotification",
    "JSONRPCErrorResponse",
    "JSONRPCMessage",
    "JSONRPCNotification",
    "JSONRPCRequest",
    "JSONRPCResponse",
    "JSONRPCResultResponse",
    "JsonSchema",
    "LATEST_PROTOCOL_VERSION",
    "ListToolsRequest",
    "ListToolsResult",
    "METHOD_NOT_FOUND",
    "PARSE_ERROR",
    "PingRequest",
    "ProgressNotificationParams",
    "RequestId",
    "SUPPORTED_PROTOCOL_VERSIONS",
    "ServerCapabilities",
    "TextContent",
    "Tool",
    "ToolAnnotations",
    "ToolsCapability",
    "decode_client_message",
]
