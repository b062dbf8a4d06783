from typing import Annotated, Any, Literal

from pydantic import Field

from data_steward.types.base import NotificationParams, ProgressToken
from data_steward.types.json_rpc import NotificationBase

LoggingLevel = Literal["debug", "info", "notice", "warning", "error", "critical", "alert", "emergency"]


class LoggingMessageNotificationParams(NotificationParams):
    """Parameters for a notifications/message notification."""

    level: LoggingLevel
    logger: str | None = None
    data: Any


class LoggingMessageNotification(
    NotificationBase[Literal["notifications/message"], LoggingMessageNotificationParams]
):
    """A log message pushed from server to client."""

    method: Literal["notifications/message"] = "notifications/message"


# noinspection PyTypeChecker
class ToolListChangedNotification(
    NotificationBase[Literal["notifications/tools/list_changed"], NotificationParams | None]
):
    """Informs the client that the list of tools it can call has changed."""

    method: Literal["notifications/tools/list_changed"] = "notifications/tools/list_changed"
    params: NotificationParams | None = None


class ProgressNotificationParams(NotificationParams):
    """Parameters for a notifications/progress notification."""

    progress_token: Annotated[ProgressToken, Field(alias="progressToken")]
    progress: float
    total: float | None = None
    message: str | None = None


class ProgressNotification(NotificationBase[Literal["notifications/progress"], ProgressNotificationParams]):
    """Progress update for a long-running request, sent only when the client supplied a progress token."""

    method: Literal["notifications/progress"] = "notifications/progress"
