"""JSON-RPC 2.0 envelopes: the Call, Result, Error and Notification shapes."""

from typing import Annotated, Any, Final, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

JSONRPC_VERSION: Final[str] = "2.0"

PARSE_ERROR: Final[int] = -32700
INVALID_REQUEST: Final[int] = -32600
METHOD_NOT_FOUND: Final[int] = -32601
INVALID_PARAMS: Final[int] = -32602
INTERNAL_ERROR: Final[int] = -32603

# Implementation-defined server error, used for transport-level faults.
SERVER_ERROR: Final[int] = -32000

RequestId = Annotated[int, Field(strict=True)] | str


class JSONRPCBase(BaseModel):
    """Base class for all JSON-RPC messages."""

    model_config = ConfigDict(extra="allow")

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION


MethodT = TypeVar("MethodT", bound=str)
ParamsT = TypeVar("ParamsT", bound=BaseModel | dict[str, Any] | None)


class RequestBase(JSONRPCBase, Generic[MethodT, ParamsT]):
    """A request that expects a response."""

    id: RequestId
    method: MethodT
    params: ParamsT


# noinspection PyTypeChecker
class JSONRPCRequest(RequestBase[str, dict[str, Any] | None]):
    """A request that expects a response."""

    params: dict[str, Any] | None = None


class NotificationBase(JSONRPCBase, Generic[MethodT, ParamsT]):
    """A notification which does not expect a response."""

    method: MethodT
    params: ParamsT


# noinspection PyTypeChecker
class JSONRPCNotification(NotificationBase[str, dict[str, Any] | None]):
    """A notification which does not expect a response."""

    params: dict[str, Any] | None = None


class ErrorData(BaseModel):
    """Error information in a JSON-RPC error response."""

    model_config = ConfigDict(extra="allow")

    code: int
    message: str
    data: Any | None = None


class JSONRPCResultResponse(JSONRPCBase):
    """The Result envelope: a successful reply to the Call with the same id."""

    id: RequestId
    result: dict[str, Any]


class JSONRPCErrorResponse(JSONRPCBase):
    """The Error envelope. ``id`` is None only when the failing Call could not be identified."""

    id: RequestId | None = None
    error: ErrorData


JSONRPCResponse = JSONRPCResultResponse | JSONRPCErrorResponse
JSONRPCMessage = JSONRPCRequest | JSONRPCNotification | JSONRPCResponse

JSONRPCMessageAdapter: TypeAdapter[JSONRPCMessage] = TypeAdapter(JSONRPCMessage)


def to_jsonrpc_notification(notification: NotificationBase[Any, Any]) -> JSONRPCNotification:
    """Flatten a typed notification into the wire-level envelope."""
    return JSONRPCNotification.model_validate(notification.model_dump(by_alias=True, exclude_none=True))
