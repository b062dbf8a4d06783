"""RequestContext and the ResponseSink protocol."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from data_steward.session import SessionInfo
from data_steward.types.base import ProgressToken
from data_steward.types.json_rpc import (
    JSONRPCMessage,
    JSONRPCNotification,
    JSONRPCResponse,
    RequestId,
    to_jsonrpc_notification,
)
from data_steward.types.notifications import ProgressNotification, ProgressNotificationParams


@runtime_checkable
class ResponseSink(Protocol):
    """Where a handler's outgoing messages go while one request is processed.

    The HTTP channel uses a ChannelSink for single requests, so the first
    message decides between a JSON body and an event stream, and a BatchSink
    for members of a JSON-RPC batch.
    """

    async def send_intermediate(self, message: JSONRPCMessage) -> None: ...

    async def send_result(self, response: JSONRPCResponse) -> None:
        """Send the final result. After this, the sink is done."""
        ...

    async def close(self) -> None: ...


@dataclass
class RequestContext:
    """Handed to every handler along with the request itself."""

    server_state: Any
    session: SessionInfo | None
    request_id: RequestId
    _sink: ResponseSink
    progress_token: ProgressToken | None = None

    async def send_notification(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Send a notification tied to this request.

        Over HTTP the reply to a single request then becomes an event stream.
        """
        await self._sink.send_intermediate(JSONRPCNotification(method=method, params=params))

    async def report_progress(self, progress: float, total: float | None = None, message: str | None = None) -> None:
        """Send notifications/progress, if the caller asked for it with ``_meta.progressToken``."""
        if self.progress_token is None:
            return
        notification = ProgressNotification(
            params=ProgressNotificationParams(
                progress_token=self.progress_token,
                progress=progress,
                total=total,
                message=message,
            )
        )
        await self._sink.send_intermediate(to_jsonrpc_notification(notification))
