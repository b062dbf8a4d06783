"""Starlette adapter - thin wrapper around StreamableHTTPHandler.

This is the only file with a Starlette dependency. It converts HTTP
requests/responses to and from the framework-agnostic StreamableHTTPHandler.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from uuid import uuid4

import anyio
from sse_starlette import EventSourceResponse
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from data_steward.catalog import CatalogChangeNotifier, ToolCatalog
from data_steward.config import DataStewardSettings
from data_steward.exceptions import (
    INTERNAL_SERVER_ERROR_MESSAGE,
    BadRequestError,
    CapacityError,
    ChannelClosedError,
    ConflictError,
    RPCError,
)
from data_steward.runner import Lifespan, ServerRunner
from data_steward.server import LowLevelServer
from data_steward.streaming import NotificationStreamer
from data_steward.transport.channel import AcceptedResponse, JSONResult, SSEStream
from data_steward.transport.httphandler import MCP_SESSION_ID_HEADER, StreamableHTTPHandler
from data_steward.transport.registry import SessionRegistry
from data_steward.types.json_rpc import PARSE_ERROR, SERVER_ERROR, ErrorData, JSONRPCErrorResponse

logger = logging.getLogger(__name__)

SSE_HEADERS = {"Cache-Control": "no-cache, no-transform", "Connection": "keep-alive"}


def _error_response(status_code: int, error: ErrorData) -> JSONResponse:
    """An Error envelope not tied to any request; it carries a fresh random id."""
    body = JSONRPCErrorResponse(id=str(uuid4()), error=error)
    return JSONResponse(body.model_dump(by_alias=True, exclude_none=True), status_code=status_code)


def _rpc_error_response(e: RPCError) -> JSONResponse:
    return _error_response(409 if isinstance(e, ConflictError) else 400, e.error)


def _internal_error_response() -> JSONResponse:
    return _error_response(500, ErrorData(code=SERVER_ERROR, message=INTERNAL_SERVER_ERROR_MESSAGE))


def _dump(message: Any) -> Any:
    if isinstance(message, list):
        return [item.model_dump(by_alias=True, exclude_none=True) for item in message]
    return message.model_dump(by_alias=True, exclude_none=True)


@asynccontextmanager
async def run_http_handler(
    server: LowLevelServer,
    catalog: ToolCatalog,
    settings: DataStewardSettings,
    *,
    lifespan: Lifespan | None = None,
) -> AsyncIterator[StreamableHTTPHandler]:
    """Run everything a served app needs for its lifetime and yield the handler.

    Starts the server runner, the session registry and the catalog refresh
    loop. On exit every open session is closed and the refresh loop stops.
    """
    runner = ServerRunner(server, lifespan=lifespan)
    registry = SessionRegistry(max_sessions=settings.max_sessions)
    notifier = CatalogChangeNotifier(catalog, registry, interval=settings.catalog_refresh_interval)
    streamer = NotificationStreamer(interval=settings.stream_interval, count=settings.stream_message_count)
    async with runner.run() as running:
        async with anyio.create_task_group() as tg:
            handler = StreamableHTTPHandler(
                running,
                tg,
                registry,
                streamer=streamer,
                outbound_buffer_size=settings.outbound_buffer_size,
            )
            try:
                async with notifier.run():
                    yield handler
            finally:
                await registry.close_all()
                tg.cancel_scope.cancel()


def create_starlette_app(
    server: LowLevelServer,
    catalog: ToolCatalog,
    *,
    settings: DataStewardSettings | None = None,
    lifespan: Lifespan | None = None,
) -> Starlette:
    """Create a Starlette ASGI app from a LowLevelServer and its tool catalog.

    Usage:
        catalog = ToolCatalog([TableDDLTool()])
        server = build_server(catalog)
        app = create_starlette_app(server, catalog)
        uvicorn.run(app, host="127.0.0.1", port=3000)
    """
    settings = settings or DataStewardSettings()

    @asynccontextmanager
    async def app_lifespan(app: Starlette) -> AsyncIterator[None]:
        async with run_http_handler(server, catalog, settings, lifespan=lifespan) as handler:
            app.state.handler = handler
            yield

    def _session_headers(handler: StreamableHTTPHandler, session_id: str) -> dict[str, str]:
        # A handshake that did not complete leaves no session to advertise.
        if session_id in handler.registry:
            return {MCP_SESSION_ID_HEADER: session_id}
        return {}

    async def handle_post(request: Request) -> Response:
        handler: StreamableHTTPHandler = request.app.state.handler
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)

        content_type = request.headers.get("content-type", "")
        if "application/json" not in content_type.lower():
            return _error_response(
                415,
                ErrorData(code=SERVER_ERROR, message="Unsupported Media Type: Content-Type must be application/json"),
            )

        raw = await request.body()
        if len(raw) > settings.max_body_bytes:
            return _error_response(
                413,
                ErrorData(code=SERVER_ERROR, message=f"Payload Too Large: limit is {settings.max_body_bytes} bytes"),
            )

        try:
            body = json.loads(raw)
        except ValueError as e:
            return _error_response(400, ErrorData(code=PARSE_ERROR, message=f"Parse error: {e}"))

        try:
            result = await handler.handle_post(session_id, body)
        except RPCError as e:
            return _rpc_error_response(e)
        except ChannelClosedError:
            return _rpc_error_response(BadRequestError())
        except CapacityError as e:
            logger.warning("Refusing new session: %s", e)
            return _error_response(
                503,
                ErrorData(code=SERVER_ERROR, message="Service Unavailable: session limit reached"),
            )
        except Exception:
            logger.exception("Error handling POST request")
            return _internal_error_response()

        match result:
            case AcceptedResponse():
                return Response(status_code=202)

            case JSONResult(body=response_body, session_id=sid):
                return JSONResponse(content=_dump(response_body), headers=_session_headers(handler, sid))

            case SSEStream(first_event=first, event_stream=stream, session_id=sid):

                async def generate() -> AsyncIterator[dict[str, str]]:
                    yield {"event": "message", "data": first.message.model_dump_json(by_alias=True, exclude_none=True)}
                    async with stream:
                        async for event in stream:
                            yield {
                                "event": "message",
                                "data": event.message.model_dump_json(by_alias=True, exclude_none=True),
                            }

                return EventSourceResponse(generate(), headers={**_session_headers(handler, sid), **SSE_HEADERS})

        return _internal_error_response()  # unreachable but satisfies type checker

    async def handle_get(request: Request) -> Response:
        handler: StreamableHTTPHandler = request.app.state.handler
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)

        try:
            result = await handler.handle_get(session_id)
        except RPCError as e:
            return _rpc_error_response(e)
        except ChannelClosedError:
            return _rpc_error_response(BadRequestError())
        except Exception:
            logger.exception("Error handling GET request")
            return _internal_error_response()

        async def generate() -> AsyncIterator[dict[str, str]]:
            try:
                async for message in result.stream:
                    yield {"event": "message", "data": message.model_dump_json(by_alias=True, exclude_none=True)}
            finally:
                await result.stream.aclose()

        return EventSourceResponse(
            generate(),
            headers={MCP_SESSION_ID_HEADER: result.session_id, **SSE_HEADERS},
        )

    async def handle_delete(request: Request) -> Response:
        handler: StreamableHTTPHandler = request.app.state.handler
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        if not session_id:
            return _rpc_error_response(BadRequestError())
        deleted = await handler.handle_delete(session_id)
        return Response(status_code=200 if deleted else 404)

    return Starlette(
        debug=settings.debug,
        lifespan=app_lifespan,
        routes=[
            Route(settings.path, handle_post, methods=["POST"]),
            Route(settings.path, handle_get, methods=["GET"]),
            Route(settings.path, handle_delete, methods=["DELETE"]),
        ],
    )
