"""Base types shared by the MCP-level models."""

from typing import Annotated, Any, Final, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

LATEST_PROTOCOL_VERSION: Final[str] = "2025-06-18"
SUPPORTED_PROTOCOL_VERSIONS: Final[tuple[str, ...]] = ("2024-11-05", "2025-03-26", LATEST_PROTOCOL_VERSION)

ProgressToken = str | int


class MCPModel(BaseModel):
    """Base class for all MCP domain types. Allows extra fields for forward compatibility."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class RequestMeta(MCPModel):
    """Metadata for MCP requests."""

    progress_token: Annotated[ProgressToken | None, Field(alias="progressToken")] = None


class RequestParams(MCPModel):
    """Base class for MCP request parameters with _meta support."""

    meta: Annotated[RequestMeta | None, Field(alias="_meta")] = None


class Meta(MCPModel):
    """Base class for MCP meta information models."""


MetaT = TypeVar("MetaT", bound=Meta | dict[str, Any] | None)


class NotificationParams(MCPModel):
    """Base class for MCP notification parameters with _meta support."""

    meta: Annotated[Meta | None, Field(alias="_meta")] = None


class Result(MCPModel, Generic[MetaT]):
    """Base class for MCP results with _meta support."""

    meta: Annotated[MetaT | None, Field(alias="_meta")] = None


class EmptyResult(Result[Meta]):
    """A response that indicates success but carries no data."""
