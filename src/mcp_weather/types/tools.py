"""MCP Tools Types - Types for tool listing and invocation."""

from typing import Annotated, Any, Literal

from pydantic import Field

from mcp_weather.types.base import MCPModel, RequestParams, Result
from mcp_weather.types.content import ContentBlock, TextContent
from mcp_weather.types.json_rpc import RequestBase


class JsonSchema(MCPModel):
    """A JSON Schema object."""

    schema_: Annotated[str | None, Field(alias="$schema")] = None
    type: Literal["object"] = "object"
    properties: dict[str, Any] | None = None
    required: list[str] | None = None


class ToolAnnotations(MCPModel):
    """Additional properties describing a Tool to clients."""

    destructive_hint: Annotated[bool | None, Field(alias="destructiveHint")] = None
    idempotent_hint: Annotated[bool | None, Field(alias="idempotentHint")] = None
    open_world_hint: Annotated[bool | None, Field(alias="openWorldHint")] = None
    read_only_hint: Annotated[bool | None, Field(alias="readOnlyHint")] = None
    title: str | None = None


class Tool(MCPModel):
    """Definition of a tool the server provides."""

    input_schema: Annotated[JsonSchema, Field(alias="inputSchema")]
    name: str

    annotations: ToolAnnotations | None = None
    description: str | None = None
    output_schema: Annotated[JsonSchema | None, Field(alias="outputSchema")] = None
    title: str | None = None


class ListToolsRequestParams(RequestParams):
    """Parameters for tools/list request."""

    cursor: str | None = None


class ListToolsRequest(RequestBase[Literal["tools/list"], ListToolsRequestParams | None]):
    """Request to list available tools."""

    method: Literal["tools/list"] = "tools/list"
    params: ListToolsRequestParams | None = None


class ListToolsResult(Result):
    """Server's response to a tools/list request."""

    tools: list[Tool]
    next_cursor: Annotated[str | None, Field(alias="nextCursor")] = None


class CallToolRequestParams(RequestParams):
    """Parameters for tools/call request."""

    name: str
    arguments: dict[str, Any] | None = None


class CallToolRequest(RequestBase[Literal["tools/call"], CallToolRequestParams]):
    """Request to call a tool."""

    method: Literal["tools/call"] = "tools/call"


class CallToolResult(Result):
    """Server's response to a tools/call request.

    This is the tagged outcome of a capability: ``is_error`` distinguishes a
    failure summary from a success summary, and ``structured_content`` carries
    the optional machine-readable payload.
    """

    content: list[ContentBlock]
    structured_content: Annotated[dict[str, Any] | None, Field(alias="structuredContent")] = None
    is_error: Annotated[bool, Field(alias="isError")] = False

    @classmethod
    def success(cls, text: str, structured_content: dict[str, Any] | None = None) -> "CallToolResult":
        return cls(content=[TextContent(text=text)], structured_content=structured_content)

    @classmethod
    def failure(cls, text: str) -> "CallToolResult":
        return cls(content=[TextContent(text=text)], is_error=True)

    @property
    def text(self) -> str:
        return "\n".join(block.text for block in self.content)
