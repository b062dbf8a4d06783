"""Tool definition contract shared by the catalog and the executors."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from data_steward.types.content import TextContent
from data_steward.types.tools import CallToolResult, Tool


@runtime_checkable
class ToolDefinition(Protocol):
    """A named callable capability.

    ``describe`` produces the descriptor advertised by tools/list and may be
    recomputed on every catalog refresh. ``execute`` must never raise: any
    failure is reported as text content of the returned result.
    """

    name: str

    def describe(self) -> Tool: ...

    async def execute(self, arguments: dict[str, Any]) -> CallToolResult: ...


def text_result(*texts: str, is_error: bool = False) -> CallToolResult:
    return CallToolResult(content=[TextContent(text=text) for text in texts], is_error=is_error)
