"""ServerRunner and RunningServer.

The runner sits between the LowLevelServer (pure dispatch) and the HTTP
transport: it owns the server lifespan and answers the initialize handshake
itself, so request handlers only ever see an established session.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any

from data_steward.context import RequestContext, ResponseSink
from data_steward.server import LowLevelServer
from data_steward.session import SessionInfo
from data_steward.types.base import LATEST_PROTOCOL_VERSION, SUPPORTED_PROTOCOL_VERSIONS, ProgressToken
from data_steward.types.common import Implementation, ServerCapabilities
from data_steward.types.initialize import InitializeRequestParams, InitializeResult
from data_steward.types.json_rpc import (
    JSONRPCMessage,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResultResponse,
    RequestId,
)

logger = logging.getLogger(__name__)

Lifespan = Callable[[LowLevelServer], AbstractAsyncContextManager[Any]]

# Client notifications consumed by the runner rather than dispatched.
HANDSHAKE_NOTIFICATIONS = frozenset({"notifications/initialized"})


@asynccontextmanager
async def _empty_lifespan(server: LowLevelServer) -> AsyncIterator[dict[str, Any]]:
    yield {}


def _progress_token(request: JSONRPCRequest) -> ProgressToken | None:
    meta = (request.params or {}).get("_meta")
    if isinstance(meta, dict):
        return meta.get("progressToken")
    return None


def negotiate_protocol_version(requested: str) -> str:
    """Echo a version we speak, otherwise offer the newest one."""
    if requested in SUPPORTED_PROTOCOL_VERSIONS:
        return requested
    return LATEST_PROTOCOL_VERSION


class ServerRunner:
    """Enters the server lifespan once and hands out a RunningServer.

    Usage:
        runner = ServerRunner(server, lifespan=open_pools)
        async with runner.run() as running:
            ...  # give ``running`` to the transport
    """

    def __init__(self, server: LowLevelServer, *, lifespan: Lifespan | None = None) -> None:
        self.server = server
        self._lifespan = lifespan or _empty_lifespan

    @asynccontextmanager
    async def run(self) -> AsyncIterator[RunningServer]:
        async with self._lifespan(self.server) as state:
            yield RunningServer(self.server, state)


class RunningServer:
    """A server inside its lifespan. Shared by every session of the transport."""

    def __init__(self, server: LowLevelServer, server_state: Any) -> None:
        self._server = server
        self._server_state = server_state

    @property
    def capabilities(self) -> ServerCapabilities:
        return self._server.get_capabilities()

    async def handle_message(
        self,
        sink: ResponseSink,
        message: JSONRPCMessage,
        *,
        session: SessionInfo | None = None,
    ) -> SessionInfo | None:
        """Process one inbound message, replying through ``sink`` where a reply is due.

        Returns the negotiated SessionInfo when ``message`` was the initialize
        call, None for everything else.
        """
        if isinstance(message, JSONRPCRequest):
            if message.method == "initialize":
                return await self._initialize(sink, message)
            ctx = self._context(sink, session, message.id, progress_token=_progress_token(message))
            response = await self._server.dispatch_request(ctx, message)
            await sink.send_result(response)
        elif isinstance(message, JSONRPCNotification):
            if message.method not in HANDSHAKE_NOTIFICATIONS:
                await self._server.dispatch_notification(self._context(sink, session, "notification"), message)
        else:
            # This server never sends requests, so there is nothing to match a response against.
            logger.debug("Ignoring unsolicited response %r", message)
        return None

    def _context(
        self,
        sink: ResponseSink,
        session: SessionInfo | None,
        request_id: RequestId,
        *,
        progress_token: ProgressToken | None = None,
    ) -> RequestContext:
        return RequestContext(
            server_state=self._server_state,
            session=session,
            request_id=request_id,
            _sink=sink,
            progress_token=progress_token,
        )

    async def _initialize(self, sink: ResponseSink, request: JSONRPCRequest) -> SessionInfo:
        params = InitializeRequestParams.model_validate(request.params)
        protocol_version = negotiate_protocol_version(params.protocol_version)

        result = InitializeResult(
            protocol_version=protocol_version,
            capabilities=self.capabilities,
            server_info=Implementation(name=self._server.name, version=self._server.version),
            instructions=self._server.instructions,
        )
        await sink.send_result(
            JSONRPCResultResponse(id=request.id, result=result.model_dump(by_alias=True, exclude_none=True))
        )

        logger.debug("Initialized client %s (protocol %s)", params.client_info.name, protocol_version)
        return SessionInfo(
            client_info=params.client_info,
            client_capabilities=params.capabilities,
            protocol_version=protocol_version,
        )
