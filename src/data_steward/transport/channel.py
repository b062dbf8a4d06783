"""Per-session transport channel.

A TransportChannel is the conduit between one client session and the running
server. Inbound calls arrive through ``deliver_inbound`` (one HTTP POST each);
outbound messages that are not tied to a request (catalog changes, streamed
log messages) are queued with ``send_outbound`` and drained by the session's
standalone event stream (the HTTP GET).
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from typing import Any

import anyio
from anyio.abc import TaskGroup
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from pydantic import ValidationError

from data_steward.exceptions import ChannelClosedError, ConflictError
from data_steward.runner import RunningServer
from data_steward.session import SessionInfo
from data_steward.transport.sink import BatchSink, ChannelSink, NoOpSink, SinkEvent
from data_steward.types.json_rpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    ErrorData,
    JSONRPCErrorResponse,
    JSONRPCMessage,
    JSONRPCRequest,
    JSONRPCResponse,
    NotificationBase,
    to_jsonrpc_notification,
)

logger = logging.getLogger(__name__)

DEFAULT_OUTBOUND_BUFFER_SIZE = 64


# --- Post result types ---


@dataclass
class AcceptedResponse:
    """Only notifications or client responses were posted. Ack with 202."""


@dataclass
class JSONResult:
    """Handler completed without intermediate messages (or a batch was handled). Return as JSON."""

    body: JSONRPCResponse | list[JSONRPCResponse]
    session_id: str


@dataclass
class SSEStream:
    """Handler is streaming. First event already available."""

    first_event: SinkEvent
    event_stream: MemoryObjectReceiveStream[SinkEvent]
    session_id: str


PostResult = AcceptedResponse | JSONResult | SSEStream


class OutboundStream:
    """The single listener attached to a channel's outbound queue.

    Iterating yields queued messages in send order and ends when the channel
    is closed. ``aclose`` detaches the listener so a later GET can attach again.
    """

    def __init__(self, channel: TransportChannel, receive: MemoryObjectReceiveStream[JSONRPCMessage]) -> None:
        self._channel = channel
        self._receive = receive
        self._detached = False

    def __aiter__(self) -> AsyncIterator[JSONRPCMessage]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[JSONRPCMessage]:
        try:
            async for message in self._receive:
                yield message
        except anyio.ClosedResourceError:
            return

    async def aclose(self) -> None:
        if not self._detached:
            self._detached = True
            self._channel._release_listener()


class TransportChannel:
    """Bidirectional message channel bound to a single session.

    The first request handled on a channel must be ``initialize``; a second
    ``initialize`` is rejected. Outbound sends keep their order and fail with
    ChannelClosedError once the channel has been closed.
    """

    def __init__(
        self,
        session_id: str,
        running: RunningServer,
        task_group: TaskGroup,
        *,
        outbound_buffer_size: int = DEFAULT_OUTBOUND_BUFFER_SIZE,
    ) -> None:
        self.session_id = session_id
        self.session_info: SessionInfo | None = None
        self._running = running
        self._tg = task_group
        self._outbound_send: MemoryObjectSendStream[JSONRPCMessage]
        self._outbound_receive: MemoryObjectReceiveStream[JSONRPCMessage]
        self._outbound_send, self._outbound_receive = anyio.create_memory_object_stream[JSONRPCMessage](
            outbound_buffer_size
        )
        self._listening = False
        self._closed = False

    @property
    def is_initialized(self) -> bool:
        return self.session_info is not None

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_listening(self) -> bool:
        return self._listening

    # --- inbound ---

    async def deliver_inbound(self, messages: Sequence[JSONRPCMessage], *, is_batch: bool = False) -> PostResult:
        """Hand one POSTed payload to the server.

        A batch, even of one message, is answered with a JSON array.
        """
        if self._closed:
            raise ChannelClosedError(self.session_id)
        if not is_batch and len(messages) == 1:
            return await self._deliver_one(messages[0])
        return await self._deliver_batch(messages)

    async def _deliver_one(self, message: JSONRPCMessage) -> PostResult:
        if not isinstance(message, JSONRPCRequest):
            self._tg.start_soon(self._run_notification, message)
            return AcceptedResponse()

        if message.method == "initialize":
            return JSONResult(body=await self._handshake(message), session_id=self.session_id)

        if not self.is_initialized:
            return JSONResult(body=self._not_initialized(message), session_id=self.session_id)

        # Create channel for handler → response
        send, recv = anyio.create_memory_object_stream[SinkEvent](16)
        sink = ChannelSink(send)
        self._tg.start_soon(self._run_handler, sink, message)

        # Read first event to decide response format
        try:
            first = await recv.receive()
        except anyio.EndOfStream:
            return JSONResult(
                body=JSONRPCErrorResponse(id=message.id, error=ErrorData(code=INTERNAL_ERROR, message="Internal error")),
                session_id=self.session_id,
            )

        if first.is_final:
            async with recv:
                pass
            return JSONResult(body=first.message, session_id=self.session_id)  # type: ignore[arg-type]

        return SSEStream(first_event=first, event_stream=recv, session_id=self.session_id)

    async def _deliver_batch(self, messages: Sequence[JSONRPCMessage]) -> PostResult:
        responses: list[JSONRPCResponse] = []
        for message in messages:
            if not isinstance(message, JSONRPCRequest):
                await self._run_notification(message)
                continue
            if message.method == "initialize":
                responses.append(await self._handshake(message))
                continue
            if not self.is_initialized:
                responses.append(self._not_initialized(message))
                continue

            sink = BatchSink(self._forward)
            try:
                await self._running.handle_message(sink, message, session=self.session_info)
            except Exception:
                logger.exception("Handler error in batch for session %s", self.session_id)
            responses.append(
                sink.result
                or JSONRPCErrorResponse(id=message.id, error=ErrorData(code=INTERNAL_ERROR, message="Internal error"))
            )

        if not responses:
            return AcceptedResponse()
        return JSONResult(body=responses, session_id=self.session_id)

    async def _handshake(self, request: JSONRPCRequest) -> JSONRPCResponse:
        if self.session_info is not None:
            return JSONRPCErrorResponse(
                id=request.id,
                error=ErrorData(code=INVALID_REQUEST, message="Invalid Request: session is already initialized"),
            )
        sink = BatchSink(self._forward)
        try:
            session_info = await self._running.handle_message(sink, request)
        except ValidationError as e:
            return JSONRPCErrorResponse(
                id=request.id,
                error=ErrorData(code=INVALID_PARAMS, message=f"Invalid initialize params: {e}"),
            )
        if sink.result is None:
            logger.error("Initialize for session %s produced no response", self.session_id)
            return JSONRPCErrorResponse(id=request.id, error=ErrorData(code=INTERNAL_ERROR, message="Internal error"))
        self.session_info = session_info
        logger.info("Session %s initialized", self.session_id)
        return sink.result

    def _not_initialized(self, request: JSONRPCRequest) -> JSONRPCErrorResponse:
        return JSONRPCErrorResponse(
            id=request.id,
            error=ErrorData(code=INVALID_REQUEST, message="Invalid Request: session is not initialized"),
        )

    async def _run_notification(self, message: JSONRPCMessage) -> None:
        """Run a notification handler (no response needed)."""
        try:
            await self._running.handle_message(NoOpSink(), message, session=self.session_info)
        except Exception:
            logger.exception("Notification handler error for session %s", self.session_id)

    async def _run_handler(self, sink: ChannelSink, message: JSONRPCRequest) -> None:
        """Run the handler and close the sink when done."""
        try:
            await self._running.handle_message(sink, message, session=self.session_info)
        except Exception:
            logger.exception("Handler error for session %s", self.session_id)
        finally:
            await sink.close()

    # --- outbound ---

    async def send_outbound(self, message: JSONRPCMessage) -> None:
        """Queue a message for the session's event stream.

        Messages keep their send order. A full buffer drops the message rather
        than stalling the sender.
        """
        if self._closed:
            raise ChannelClosedError(self.session_id)
        try:
            self._outbound_send.send_nowait(message)
        except anyio.WouldBlock:
            logger.warning("Outbound buffer full for session %s, dropping message", self.session_id)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError) as e:
            raise ChannelClosedError(self.session_id) from e

    async def send_notification(self, notification: NotificationBase[Any, Any]) -> None:
        await self.send_outbound(to_jsonrpc_notification(notification))

    async def _forward(self, message: JSONRPCMessage) -> None:
        try:
            await self.send_outbound(message)
        except ChannelClosedError:
            logger.debug("Dropping message for closed session %s", self.session_id)

    def open_stream(self) -> OutboundStream:
        """Attach the standalone event-stream listener."""
        if self._closed:
            raise ChannelClosedError(self.session_id)
        if self._listening:
            raise ConflictError()
        self._listening = True
        return OutboundStream(self, self._outbound_receive)

    def _release_listener(self) -> None:
        self._listening = False

    async def close(self) -> None:
        """Close the channel. Further sends raise ChannelClosedError and the event stream ends."""
        if self._closed:
            return
        self._closed = True
        await self._outbound_send.aclose()
        logger.debug("Channel for session %s closed", self.session_id)
