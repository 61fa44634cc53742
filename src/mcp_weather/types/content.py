"""MCP Content Types - Content block types used in tool results."""

from typing import Annotated, Any, Literal

from pydantic import Field

from mcp_weather.types.base import MCPModel


class TextContent(MCPModel):
    """Text provided to or from an LLM."""

    type: Literal["text"] = "text"
    text: str
    meta: Annotated[dict[str, Any] | None, Field(alias="_meta")] = None


# Only text blocks are produced by this server
ContentBlock = TextContent
