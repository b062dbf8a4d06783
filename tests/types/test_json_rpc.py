"""
Tests for JSON-RPC envelope discrimination and serialization.

Discrimination is based on field presence:
- Call:         has 'id' AND 'method'
- Notification: has 'method' but NO 'id'
- Result:       has 'id' AND 'result' (no 'method')
- Error:        has 'error' field
"""

from typing import Any

import pytest
from pydantic import ValidationError

from data_steward.types.json_rpc import (
    INVALID_REQUEST,
    PARSE_ERROR,
    SERVER_ERROR,
    ErrorData,
    JSONRPCErrorResponse,
    JSONRPCMessage,
    JSONRPCMessageAdapter,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResultResponse,
    to_jsonrpc_notification,
)
from data_steward.types.notifications import (
    LoggingMessageNotification,
    LoggingMessageNotificationParams,
    ToolListChangedNotification,
)


@pytest.mark.parametrize(
    ("raw", "expected_type"),
    [
        ({"jsonrpc": "2.0", "id": 1, "method": "ping"}, JSONRPCRequest),
        ({"jsonrpc": "2.0", "id": "str-id", "method": "tools/call", "params": {"x": 1}}, JSONRPCRequest),
        ({"jsonrpc": "2.0", "method": "notifications/initialized"}, JSONRPCNotification),
        ({"jsonrpc": "2.0", "method": "notifications/cancelled", "params": {}}, JSONRPCNotification),
        ({"jsonrpc": "2.0", "id": 1, "result": {}}, JSONRPCResultResponse),
        ({"jsonrpc": "2.0", "id": "abc", "result": {"data": 123}}, JSONRPCResultResponse),
        (
            {"jsonrpc": "2.0", "id": 1, "error": {"code": INVALID_REQUEST, "message": "Invalid Request"}},
            JSONRPCErrorResponse,
        ),
        (
            {"jsonrpc": "2.0", "id": None, "error": {"code": PARSE_ERROR, "message": "Parse error"}},
            JSONRPCErrorResponse,
        ),
    ],
)
def test_adapter_returns_correct_type(raw: dict[str, Any], expected_type: type[JSONRPCMessage]) -> None:
    message = JSONRPCMessageAdapter.validate_python(raw)
    assert isinstance(message, expected_type)


@pytest.mark.parametrize(
    "raw",
    [
        {"jsonrpc": "1.0", "id": 1, "method": "ping"},
        {"jsonrpc": "2.0", "id": 1},
        {"id": 1, "method": 5},
        "not an object",
    ],
)
def test_adapter_rejects_malformed_messages(raw: Any) -> None:
    with pytest.raises(ValidationError):
        JSONRPCMessageAdapter.validate_python(raw)


def test_error_response_serializes_without_data() -> None:
    response = JSONRPCErrorResponse(
        id="4f0c", error=ErrorData(code=SERVER_ERROR, message="Bad Request: invalid session ID or method.")
    )
    assert response.model_dump(by_alias=True, exclude_none=True) == {
        "jsonrpc": "2.0",
        "id": "4f0c",
        "error": {"code": -32000, "message": "Bad Request: invalid session ID or method."},
    }


def test_tool_list_changed_notification_envelope() -> None:
    envelope = to_jsonrpc_notification(ToolListChangedNotification())
    assert isinstance(envelope, JSONRPCNotification)
    assert envelope.model_dump(by_alias=True, exclude_none=True) == {
        "jsonrpc": "2.0",
        "method": "notifications/tools/list_changed",
    }


def test_logging_message_notification_envelope() -> None:
    notification = LoggingMessageNotification(
        params=LoggingMessageNotificationParams(level="info", data="SSE Connection established")
    )
    envelope = to_jsonrpc_notification(notification)
    assert envelope.method == "notifications/message"
    assert envelope.params == {"level": "info", "data": "SSE Connection established"}
