"""StreamableHTTPHandler - Framework-agnostic HTTP dispatch logic.

Resolves or creates sessions, hands payloads to their channels and starts the
notification stream for GET requests. No Starlette dependency: the framework
adapter turns the returned results (and raised RPCErrors) into HTTP responses.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from anyio.abc import TaskGroup
from pydantic import ValidationError

from data_steward.exceptions import BadRequestError, InvalidRequestError
from data_steward.runner import RunningServer
from data_steward.streaming import NotificationStreamer
from data_steward.transport.channel import (
    DEFAULT_OUTBOUND_BUFFER_SIZE,
    OutboundStream,
    PostResult,
    TransportChannel,
)
from data_steward.transport.registry import Session, SessionRegistry
from data_steward.types.initialize import InitializeRequest
from data_steward.types.json_rpc import JSONRPCMessage, JSONRPCMessageAdapter

logger = logging.getLogger(__name__)

MCP_SESSION_ID_HEADER = "mcp-session-id"


def is_initialize_request(body: Any) -> bool:
    """True if the raw body is, or (for a batch) contains, a valid initialize call."""
    if isinstance(body, list):
        return any(is_initialize_request(item) for item in body)
    try:
        InitializeRequest.model_validate(body)
    except ValidationError:
        return False
    return True


def parse_messages(body: Any) -> tuple[list[JSONRPCMessage], bool]:
    """Validate a decoded body as one JSON-RPC message or a non-empty batch.

    Returns the messages and whether the body was a batch. The validation
    detail is logged, never returned to the client.
    """
    is_batch = isinstance(body, list)
    items = body if is_batch else [body]
    if not items:
        raise InvalidRequestError()
    try:
        messages = [JSONRPCMessageAdapter.validate_python(item) for item in items]
    except ValidationError as e:
        logger.debug("Rejecting invalid JSON-RPC payload: %s", e)
        raise InvalidRequestError() from e
    return messages, is_batch


@dataclass
class GetResult:
    """The session's standalone event stream, ready to be served."""

    stream: OutboundStream
    session_id: str


class StreamableHTTPHandler:
    """Framework-agnostic request dispatcher.

    Testable without any HTTP framework: call handle_post() with a session id
    (or None) and the decoded JSON body.
    """

    def __init__(
        self,
        running: RunningServer,
        tg: TaskGroup,
        registry: SessionRegistry,
        *,
        streamer: NotificationStreamer | None = None,
        outbound_buffer_size: int = DEFAULT_OUTBOUND_BUFFER_SIZE,
    ) -> None:
        self._running = running
        self._tg = tg
        self.registry = registry
        self.streamer = streamer or NotificationStreamer()
        self._outbound_buffer_size = outbound_buffer_size

    async def handle_post(self, session_id: str | None, body: Any) -> PostResult:
        """Handle a POST carrying the decoded JSON ``body``.

        The session is resolved first: an unknown id, or a missing id on
        anything but a handshake, is a BadRequestError whatever the body
        holds. Only a routed body is then validated as JSON-RPC.
        """
        if session_id is not None:
            session = self.registry.lookup(session_id)
            if session is None:
                logger.debug("Rejecting POST for unknown session %s", session_id)
                raise BadRequestError()
            messages, is_batch = parse_messages(body)
            logger.debug("Routing POST to session %s", session_id)
            return await session.channel.deliver_inbound(messages, is_batch=is_batch)

        if not is_initialize_request(body):
            raise BadRequestError()
        messages, is_batch = parse_messages(body)
        return await self._establish(messages, is_batch=is_batch)

    async def handle_get(self, session_id: str | None) -> GetResult:
        """Open the session's standalone event stream and start one notification stream on it."""
        session = self._resolve(session_id)
        stream = session.channel.open_stream()
        self._tg.start_soon(self.streamer.stream, session.channel)
        return GetResult(stream=stream, session_id=session.id)

    async def handle_delete(self, session_id: str) -> bool:
        """Handle a DELETE request (session termination)."""
        session = self.registry.remove(session_id)
        if session is None:
            return False
        await session.channel.close()
        return True

    async def _establish(self, messages: Sequence[JSONRPCMessage], *, is_batch: bool) -> PostResult:
        session = self.registry.create_session(self._new_channel)
        try:
            result = await session.channel.deliver_inbound(messages, is_batch=is_batch)
        except Exception:
            self.registry.remove(session.id)
            await session.channel.close()
            raise
        if not session.channel.is_initialized:
            logger.warning("Handshake for session %s did not complete, discarding it", session.id)
            self.registry.remove(session.id)
            await session.channel.close()
        return result

    def _new_channel(self, session_id: str) -> TransportChannel:
        return TransportChannel(
            session_id,
            self._running,
            self._tg,
            outbound_buffer_size=self._outbound_buffer_size,
        )

    def _resolve(self, session_id: str | None) -> Session:
        if not session_id:
            raise BadRequestError()
        session = self.registry.lookup(session_id)
        if session is None:
            raise BadRequestError()
        return session
