"""Message envelopes and MCP protocol models."""

from data_steward.types.base import (
    LATEST_PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
    EmptyResult,
    MCPModel,
    NotificationParams,
    RequestParams,
    Result,
)
from data_steward.types.common import ClientCapabilities, Implementation, ServerCapabilities
from data_steward.types.content import ContentBlock, TextContent
from data_steward.types.initialize import (
    InitializeRequest,
    InitializeRequestParams,
    InitializeResult,
)
from data_steward.types.json_rpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    JSONRPC_VERSION,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    SERVER_ERROR,
    ErrorData,
    JSONRPCErrorResponse,
    JSONRPCMessage,
    JSONRPCMessageAdapter,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    JSONRPCResultResponse,
    RequestId,
)
from data_steward.types.notifications import (
    LoggingLevel,
    LoggingMessageNotification,
    LoggingMessageNotificationParams,
    ProgressNotification,
    ProgressNotificationParams,
    ToolListChangedNotification,
)
from data_steward.types.tools import (
    CallToolRequestParams,
    CallToolResult,
    JsonSchema,
    ListToolsResult,
    PropertySchema,
    Tool,
    ToolAnnotations,
)

__all__ = [
    "CallToolRequestParams",
    "CallToolResult",
    "ClientCapabilities",
    "ContentBlock",
    "EmptyResult",
    "ErrorData",
    "INTERNAL_ERROR",
    "INVALID_PARAMS",
    "INVALID_REQUEST",
    "Implementation",
    "InitializeRequest",
    "InitializeRequestParams",
    "InitializeResult",
    "JSONRPCErrorResponse",
    "JSONRPCMessage",
    "JSONRPCMessageAdapter",
    "JSONRPCNotification",
    "JSONRPCRequest",
    "JSONRPCResponse",
    "JSONRPCResultResponse",
    "JSONRPC_VERSION",
    "JsonSchema",
    "LATEST_PROTOCOL_VERSION",
    "ListToolsResult",
    "LoggingLevel",
    "LoggingMessageNotification",
    "LoggingMessageNotificationParams",
    "MCPModel",
    "METHOD_NOT_FOUND",
    "NotificationParams",
    "PARSE_ERROR",
    "ProgressNotification",
    "ProgressNotificationParams",
    "PropertySchema",
    "RequestId",
    "RequestParams",
    "Result",
    "SERVER_ERROR",
    "SUPPORTED_PROTOCOL_VERSIONS",
    "ServerCapabilities",
    "TextContent",
    "Tool",
    "ToolAnnotations",
    "ToolListChangedNotification",
]
