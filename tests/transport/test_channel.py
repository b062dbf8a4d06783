from collections.abc import AsyncIterator
from typing import Any

import anyio
import pytest

from data_steward.context import RequestContext
from data_steward.exceptions import ChannelClosedError, ConflictError
from data_steward.runner import ServerRunner
from data_steward.server import LowLevelServer
from data_steward.session import SessionInfo
from data_steward.transport.channel import AcceptedResponse, JSONResult, SSEStream, TransportChannel
from data_steward.types.base import EmptyResult
from data_steward.types.common import ClientCapabilities, Implementation
from data_steward.types.json_rpc import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    JSONRPCErrorResponse,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResultResponse,
)
from data_steward.types.notifications import ToolListChangedNotification

pytestmark = pytest.mark.anyio


def _make_server() -> LowLevelServer:
    server = LowLevelServer(name="test-server", version="0.1.0")

    @server.request_handler("ping")
    async def handle_ping(ctx: RequestContext, request: JSONRPCRequest) -> EmptyResult:
        return EmptyResult()

    @server.request_handler("progress")
    async def handle_progress(ctx: RequestContext, request: JSONRPCRequest) -> dict[str, Any]:
        await ctx.send_notification("notifications/progress", {"progress": 1, "total": 1})
        return {"done": True}

    return server


def _init_request(request_id: int = 1) -> JSONRPCRequest:
    return JSONRPCRequest(
        id=request_id,
        method="initialize",
        params={
            "protocolVersion": "2025-06-18",
            "capabilities": {},
            "clientInfo": {"name": "test-client", "version": "1.0"},
        },
    )


@pytest.fixture
async def make_channel() -> AsyncIterator[Any]:
    runner = ServerRunner(_make_server())
    async with runner.run() as running:
        async with anyio.create_task_group() as tg:

            def factory(**kwargs: Any) -> TransportChannel:
                return TransportChannel("session-1", running, tg, **kwargs)

            yield factory
            tg.cancel_scope.cancel()


@pytest.fixture
async def channel(make_channel: Any) -> TransportChannel:
    channel = make_channel()
    await channel.deliver_inbound([_init_request()])
    return channel


async def test_handshake_initializes_channel(make_channel: Any) -> None:
    channel = make_channel()

    result = await channel.deliver_inbound([_init_request()])

    assert isinstance(result, JSONResult)
    assert isinstance(result.body, JSONRPCResultResponse)
    assert result.body.result["protocolVersion"] == "2025-06-18"
    assert result.body.result["serverInfo"] == {"name": "test-server", "version": "0.1.0"}
    assert channel.is_initialized
    assert channel.session_info is not None
    assert channel.session_info.client_info.name == "test-client"


async def test_unsupported_protocol_version_gets_latest(make_channel: Any) -> None:
    channel = make_channel()
    request = _init_request()
    assert request.params is not None
    request.params["protocolVersion"] = "1999-01-01"

    result = await channel.deliver_inbound([request])

    assert isinstance(result, JSONResult)
    assert isinstance(result.body, JSONRPCResultResponse)
    assert result.body.result["protocolVersion"] == "2025-06-18"


async def test_handshake_without_response_leaves_channel_uninitialized(
    make_channel: Any, monkeypatch: pytest.MonkeyPatch
) -> None:
    channel = make_channel()

    async def silent(sink: Any, message: Any, *, session: Any = None) -> SessionInfo:
        return SessionInfo(
            client_info=Implementation(name="test-client", version="1.0"),
            client_capabilities=ClientCapabilities(),
            protocol_version="2025-06-18",
        )

    monkeypatch.setattr(channel._running, "handle_message", silent)

    result = await channel.deliver_inbound([_init_request()])

    assert isinstance(result, JSONResult)
    assert isinstance(result.body, JSONRPCErrorResponse)
    assert result.body.error.code == INTERNAL_ERROR
    assert not channel.is_initialized


async def test_second_initialize_is_rejected(channel: TransportChannel) -> None:
    result = await channel.deliver_inbound([_init_request(request_id=2)])

    assert isinstance(result, JSONResult)
    assert isinstance(result.body, JSONRPCErrorResponse)
    assert result.body.error.code == INVALID_REQUEST


async def test_request_before_initialize_is_rejected(make_channel: Any) -> None:
    channel = make_channel()

    result = await channel.deliver_inbound([JSONRPCRequest(id=1, method="ping")])

    assert isinstance(result, JSONResult)
    assert isinstance(result.body, JSONRPCErrorResponse)
    assert result.body.error.code == INVALID_REQUEST


async def test_request_returns_json_result(channel: TransportChannel) -> None:
    result = await channel.deliver_inbound([JSONRPCRequest(id=2, method="ping")])

    assert isinstance(result, JSONResult)
    assert isinstance(result.body, JSONRPCResultResponse)
    assert result.body.id == 2
    assert result.body.result == {}
    assert result.session_id == "session-1"


async def test_notification_is_accepted(channel: TransportChannel) -> None:
    result = await channel.deliver_inbound([JSONRPCNotification(method="notifications/initialized")])
    assert isinstance(result, AcceptedResponse)


async def test_intermediate_messages_switch_to_event_stream(channel: TransportChannel) -> None:
    result = await channel.deliver_inbound([JSONRPCRequest(id=3, method="progress")])

    assert isinstance(result, SSEStream)
    assert isinstance(result.first_event.message, JSONRPCNotification)
    assert result.first_event.message.method == "notifications/progress"
    async with result.event_stream:
        events = [event async for event in result.event_stream]
    assert len(events) == 1
    assert events[0].is_final
    assert isinstance(events[0].message, JSONRPCResultResponse)
    assert events[0].message.result == {"done": True}


async def test_batch_is_answered_in_order(channel: TransportChannel) -> None:
    result = await channel.deliver_inbound(
        [
            JSONRPCRequest(id=10, method="ping"),
            JSONRPCNotification(method="notifications/initialized"),
            JSONRPCRequest(id=11, method="nonexistent"),
        ]
    )

    assert isinstance(result, JSONResult)
    assert isinstance(result.body, list)
    assert [response.id for response in result.body] == [10, 11]
    assert isinstance(result.body[0], JSONRPCResultResponse)
    assert isinstance(result.body[1], JSONRPCErrorResponse)


async def test_single_message_batch_is_answered_with_array(channel: TransportChannel) -> None:
    result = await channel.deliver_inbound([JSONRPCRequest(id=7, method="ping")], is_batch=True)

    assert isinstance(result, JSONResult)
    assert isinstance(result.body, list)
    assert [response.id for response in result.body] == [7]
    assert isinstance(result.body[0], JSONRPCResultResponse)


async def test_batch_forwards_intermediate_messages_to_outbound(channel: TransportChannel) -> None:
    stream = channel.open_stream()

    result = await channel.deliver_inbound([JSONRPCRequest(id=1, method="progress"), JSONRPCRequest(id=2, method="ping")])
    await channel.close()

    assert isinstance(result, JSONResult)
    assert isinstance(result.body, list)
    assert [response.id for response in result.body] == [1, 2]
    outbound = [message async for message in stream]
    assert [message.method for message in outbound] == ["notifications/progress"]  # type: ignore[union-attr]


async def test_outbound_messages_keep_send_order(channel: TransportChannel) -> None:
    stream = channel.open_stream()

    for index in range(3):
        await channel.send_outbound(JSONRPCNotification(method=f"notifications/test/{index}"))
    await channel.close()

    received = [message async for message in stream]
    assert [message.method for message in received] == [  # type: ignore[union-attr]
        "notifications/test/0",
        "notifications/test/1",
        "notifications/test/2",
    ]


async def test_send_notification_wraps_typed_notification(channel: TransportChannel) -> None:
    stream = channel.open_stream()

    await channel.send_notification(ToolListChangedNotification())
    await channel.close()

    received = [message async for message in stream]
    assert len(received) == 1
    assert isinstance(received[0], JSONRPCNotification)
    assert received[0].method == "notifications/tools/list_changed"


async def test_only_one_listener_at_a_time(channel: TransportChannel) -> None:
    stream = channel.open_stream()
    assert channel.is_listening

    with pytest.raises(ConflictError):
        channel.open_stream()

    await stream.aclose()
    assert not channel.is_listening
    second = channel.open_stream()
    await second.aclose()


async def test_full_buffer_drops_messages(make_channel: Any) -> None:
    channel = make_channel(outbound_buffer_size=1)
    stream = channel.open_stream()

    await channel.send_outbound(JSONRPCNotification(method="notifications/first"))
    await channel.send_outbound(JSONRPCNotification(method="notifications/second"))
    await channel.close()

    received = [message async for message in stream]
    assert [message.method for message in received] == ["notifications/first"]  # type: ignore[union-attr]


async def test_closed_channel_refuses_traffic(channel: TransportChannel) -> None:
    await channel.close()
    await channel.close()

    assert channel.is_closed
    with pytest.raises(ChannelClosedError):
        await channel.send_outbound(JSONRPCNotification(method="notifications/message"))
    with pytest.raises(ChannelClosedError):
        await channel.deliver_inbound([JSONRPCRequest(id=1, method="ping")])
    with pytest.raises(ChannelClosedError):
        channel.open_stream()
