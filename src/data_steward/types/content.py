"""Content blocks carried in tool results."""

from typing import Annotated, Literal

from pydantic import Field

from data_steward.types.base import MCPModel, Meta


class TextContent(MCPModel):
    """Text provided to or from an LLM."""

    type: Literal["text"] = "text"
    text: str
    meta: Annotated[Meta | None, Field(alias="_meta")] = None


ContentBlock = TextContent
