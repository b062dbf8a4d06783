"""LowLevelServer - method registry and dispatch.

Maps JSON-RPC method names to handlers and turns whatever a handler returns
or raises into a response envelope. Knows nothing about sessions or HTTP.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, ValidationError

from data_steward.context import RequestContext
from data_steward.exceptions import RPCError
from data_steward.types.common import ServerCapabilities
from data_steward.types.json_rpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    ErrorData,
    JSONRPCErrorResponse,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    JSONRPCResultResponse,
)

logger = logging.getLogger(__name__)

RequestHandler = Callable[[RequestContext, JSONRPCRequest], Awaitable[Any]]
NotificationHandler = Callable[[RequestContext, JSONRPCNotification], Awaitable[None]]

TOOL_METHODS = frozenset({"tools/list", "tools/call"})


def _result_payload(result: Any) -> dict[str, Any]:
    if isinstance(result, BaseModel):
        return result.model_dump(by_alias=True, exclude_none=True)
    if isinstance(result, dict):
        return result
    return {}


class LowLevelServer:
    """Method registry plus dispatch.

    Usage:
        server = LowLevelServer(name="data-steward", version="0.1.0")

        @server.request_handler("tools/list")
        async def list_tools(ctx: RequestContext, request: JSONRPCRequest):
            return ListToolsResult(tools=catalog.list_tools())

    A handler signals a fault meant for the client by raising RPCError. A
    pydantic ValidationError becomes INVALID_PARAMS; anything else is logged
    with its traceback and answered with a generic INTERNAL_ERROR.
    """

    def __init__(
        self,
        *,
        name: str,
        version: str,
        instructions: str | None = None,
        tools_list_changed: bool = False,
        log_messages: bool = False,
    ) -> None:
        self.name = name
        self.version = version
        self.instructions = instructions
        self._tools_list_changed = tools_list_changed
        self._log_messages = log_messages
        self._request_handlers: dict[str, RequestHandler] = {}
        self._notification_handlers: dict[str, NotificationHandler] = {}

    def request_handler(self, method: str) -> Callable[[RequestHandler], RequestHandler]:
        def register(fn: RequestHandler) -> RequestHandler:
            self._request_handlers[method] = fn
            return fn

        return register

    def notification_handler(self, method: str) -> Callable[[NotificationHandler], NotificationHandler]:
        def register(fn: NotificationHandler) -> NotificationHandler:
            self._notification_handlers[method] = fn
            return fn

        return register

    async def dispatch_request(self, ctx: RequestContext, request: JSONRPCRequest) -> JSONRPCResponse:
        handler = self._request_handlers.get(request.method)
        if handler is None:
            return self._error(request, METHOD_NOT_FOUND, f"Method not found: {request.method}")

        try:
            result = await handler(ctx, request)
        except RPCError as e:
            logger.warning("%s failed: %s", request.method, e.error.message)
            return JSONRPCErrorResponse(id=request.id, error=e.error)
        except ValidationError as e:
            return self._error(request, INVALID_PARAMS, f"Invalid params for {request.method}: {e}")
        except Exception:
            logger.exception("Unhandled error in %s handler", request.method)
            return self._error(request, INTERNAL_ERROR, "Internal error")

        return JSONRPCResultResponse(id=request.id, result=_result_payload(result))

    async def dispatch_notification(self, ctx: RequestContext, notification: JSONRPCNotification) -> None:
        handler = self._notification_handlers.get(notification.method)
        if handler is None:
            logger.debug("No handler for notification %s", notification.method)
            return
        try:
            await handler(ctx, notification)
        except Exception:
            logger.exception("Unhandled error in %s handler", notification.method)

    def get_capabilities(self) -> ServerCapabilities:
        """Advertise tools when a tool method is registered, logging when enabled."""
        capabilities = ServerCapabilities()
        if self._request_handlers.keys() & TOOL_METHODS:
            capabilities.tools = {"listChanged": self._tools_list_changed}
        if self._log_messages:
            capabilities.logging = {}
        return capabilities

    @staticmethod
    def _error(request: JSONRPCRequest, code: int, message: str) -> JSONRPCErrorResponse:
        return JSONRPCErrorResponse(id=request.id, error=ErrorData(code=code, message=message))
