"""ResponseSink implementations used by the HTTP channel."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import anyio
from anyio.streams.memory import MemoryObjectSendStream

from data_steward.types.json_rpc import JSONRPCMessage, JSONRPCResponse


@dataclass
class SinkEvent:
    """An event produced by a ResponseSink for the transport layer to consume."""

    message: JSONRPCMessage
    is_final: bool = False


class ChannelSink:
    """ResponseSink that writes events to a memory channel.

    The HTTP handler reads from the other end of the channel to decide
    between an event-stream and a plain JSON response.
    """

    def __init__(self, send_stream: MemoryObjectSendStream[SinkEvent]) -> None:
        self._send = send_stream
        self._closed = False

    async def send_intermediate(self, message: JSONRPCMessage) -> None:
        """Send an intermediate message (a notification tied to this request)."""
        if self._closed:
            return
        await self._send.send(SinkEvent(message=message))

    async def send_result(self, response: JSONRPCResponse) -> None:
        """Send the final result and close the channel."""
        if self._closed:
            return
        await self._send.send(SinkEvent(message=response, is_final=True))
        self._closed = True
        await self._send.aclose()

    async def close(self) -> None:
        """Close the channel without sending a result (e.g., on handler error)."""
        if self._closed:
            return
        self._closed = True
        with anyio.CancelScope(shield=True):
            await self._send.aclose()


class BatchSink:
    """ResponseSink for one member of a JSON-RPC batch.

    The final response is kept for the batch reply; intermediate messages are
    handed to ``forward`` (the session's outbound queue) because a batch is
    answered with a single JSON array.
    """

    def __init__(self, forward: Callable[[JSONRPCMessage], Awaitable[None]]) -> None:
        self._forward = forward
        self.result: JSONRPCResponse | None = None

    async def send_intermediate(self, message: JSONRPCMessage) -> None:
        await self._forward(message)

    async def send_result(self, response: JSONRPCResponse) -> None:
        self.result = response

    async def close(self) -> None:
        pass


class NoOpSink:
    """A sink that does nothing. Used for notifications which don't produce responses."""

    async def send_intermediate(self, message: JSONRPCMessage) -> None:
        pass

    async def send_result(self, response: JSONRPCResponse) -> None:
        pass

    async def close(self) -> None:
        pass
