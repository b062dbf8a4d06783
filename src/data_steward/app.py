"""Assembles the Data Steward server: tool handlers, catalog and HTTP app."""

from __future__ import annotations

import logging

from starlette.applications import Starlette

from data_steward import __version__
from data_steward.catalog import ToolCatalog
from data_steward.config import DataStewardSettings
from data_steward.context import RequestContext
from data_steward.exceptions import RPCError
from data_steward.server import LowLevelServer
from data_steward.tools.base import text_result
from data_steward.tools.table_ddl import TableDDLTool
from data_steward.transport.starlette import create_starlette_app
from data_steward.types.base import EmptyResult
from data_steward.types.json_rpc import JSONRPCNotification, JSONRPCRequest
from data_steward.types.tools import CallToolRequestParams, CallToolResult, ListToolsResult

logger = logging.getLogger(__name__)

SERVER_NAME = "data-steward"


def build_server(catalog: ToolCatalog, *, name: str = SERVER_NAME, version: str = __version__) -> LowLevelServer:
    """Create a LowLevelServer answering ping, tools/list and tools/call from ``catalog``."""
    server = LowLevelServer(name=name, version=version, tools_list_changed=True, log_messages=True)

    @server.request_handler("ping")
    async def handle_ping(ctx: RequestContext, request: JSONRPCRequest) -> EmptyResult:
        return EmptyResult()

    @server.request_handler("tools/list")
    async def handle_list_tools(ctx: RequestContext, request: JSONRPCRequest) -> ListToolsResult:
        return ListToolsResult(tools=catalog.list_tools())

    @server.request_handler("tools/call")
    async def handle_call_tool(ctx: RequestContext, request: JSONRPCRequest) -> CallToolResult:
        params = request.params or {}
        if params.get("arguments") is None:
            raise RPCError.internal("arguments undefined")
        if not params.get("name"):
            raise RPCError.internal("tool name undefined")

        call = CallToolRequestParams.model_validate(params)
        definition = catalog.get(call.name)
        if definition is None:
            logger.info("Call for unknown tool %s", call.name)
            return text_result(f"Tool not found: {call.name}", is_error=True)

        await ctx.report_progress(0, 1, f"Running {call.name}")
        result = await definition.execute(call.arguments or {})
        await ctx.report_progress(1, 1, f"Finished {call.name}")
        return result

    @server.notification_handler("notifications/cancelled")
    async def handle_cancelled(ctx: RequestContext, notification: JSONRPCNotification) -> None:
        # Tool calls run to completion; the cancellation is only recorded.
        params = notification.params or {}
        logger.info("Client cancelled request %s: %s", params.get("requestId"), params.get("reason", "no reason given"))

    return server


def default_catalog() -> ToolCatalog:
    return ToolCatalog([TableDDLTool()])


def create_app(settings: DataStewardSettings | None = None, *, catalog: ToolCatalog | None = None) -> Starlette:
    """Build the ASGI app serving the default tool catalog."""
    settings = settings or DataStewardSettings()
    catalog = catalog or default_catalog()
    return create_starlette_app(build_server(catalog), catalog, settings=settings)
