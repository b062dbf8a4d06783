"""Notification streaming engine.

Pushes a short, bounded run of log-message notifications onto a session's
channel once its event stream has been opened.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Protocol

import anyio

from data_steward.exceptions import ChannelClosedError
from data_steward.types.json_rpc import NotificationBase
from data_steward.types.notifications import LoggingMessageNotification, LoggingMessageNotificationParams

logger = logging.getLogger(__name__)

DEFAULT_STREAM_INTERVAL = 1.0
DEFAULT_STREAM_MESSAGE_COUNT = 2

ESTABLISHED_MESSAGE = "SSE Connection established"
COMPLETE_MESSAGE = "Streaming complete!"


class NotificationTarget(Protocol):
    session_id: str

    async def send_notification(self, notification: NotificationBase[Any, Any]) -> None: ...


def info_message(data: str) -> LoggingMessageNotification:
    return LoggingMessageNotification(params=LoggingMessageNotificationParams(level="info", data=data))


class NotificationStreamer:
    """Emits: one "established" message, ``count`` numbered messages spaced by
    ``interval`` seconds, then one "complete" message.

    A failed send ends that stream quietly; it is logged and never raised to
    the caller.
    """

    def __init__(
        self,
        *,
        interval: float = DEFAULT_STREAM_INTERVAL,
        count: int = DEFAULT_STREAM_MESSAGE_COUNT,
    ) -> None:
        self.interval = interval
        self.count = count

    async def stream(self, target: NotificationTarget) -> int:
        """Run one stream instance against ``target``. Returns the number of messages sent."""
        sent = 0
        try:
            await target.send_notification(info_message(ESTABLISHED_MESSAGE))
            sent += 1
            for sequence in range(1, self.count + 1):
                await anyio.sleep(self.interval)
                timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
                await target.send_notification(info_message(f"Message {sequence} at {timestamp}"))
                sent += 1
            await target.send_notification(info_message(COMPLETE_MESSAGE))
            sent += 1
        except ChannelClosedError:
            logger.info("Session %s closed after %d streamed message(s)", target.session_id, sent)
        except Exception:
            logger.exception("Error streaming notifications to session %s", target.session_id)
        return sent
