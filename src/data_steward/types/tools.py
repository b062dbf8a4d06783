"""MCP Tools Types - Types for tool listing and invocation."""

from typing import Annotated, Any, Literal

from pydantic import Field

from data_steward.types.base import MCPModel, Meta, RequestParams, Result
from data_steward.types.content import ContentBlock

SchemaType = Literal["object", "string", "number", "integer", "boolean", "array", "null"]


class PropertySchema(MCPModel):
    """Schema of a single property inside a tool's input schema.

    Nested objects describe their own ``properties`` and ``required`` lists,
    so connection parameters and similar structured arguments stay typed.
    """

    type: SchemaType
    description: str | None = None
    properties: dict[str, "PropertySchema"] | None = None
    required: list[str] | None = None
    items: "PropertySchema | None" = None


class JsonSchema(MCPModel):
    """A JSON Schema object."""

    schema_: Annotated[str | None, Field(alias="$schema")] = None
    type: Literal["object"] = "object"
    properties: dict[str, PropertySchema] | None = None
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

    meta: Annotated[Meta | None, Field(alias="_meta")] = None
    annotations: ToolAnnotations | None = None
    description: str | None = None
    title: str | None = None


class ListToolsResult(Result[Meta]):
    """Server's response to a tools/list request."""

    tools: list[Tool]
    next_cursor: Annotated[str | None, Field(alias="nextCursor")] = None


class CallToolRequestParams(RequestParams):
    """Parameters for tools/call request."""

    name: str
    arguments: dict[str, Any] | None = None


class CallToolResult(Result[Meta]):
    """Server's response to a tools/call request."""

    content: list[ContentBlock]
    structured_content: Annotated[dict[str, Any] | None, Field(alias="structuredContent")] = None
    is_error: Annotated[bool, Field(alias="isError")] = False
