from crypto_sentiment.protocol.jsonrpc import (
  JSONRPCErrorCode,
  JSONRPCErrorData,
  JSONRPCNotification,
  JSONRPCRequest,
  JSONRPCResponse,
  create_error_response,
  create_notification,
  create_response,
  decode_message,
  error_from_exception,
  http_status_for,
)
from crypto_sentiment.protocol.tool import TOOL_NAME, ToolDispatcher, input_schema, output_schema, server_info, tool_definition

__all__ = [
  "JSONRPCErrorCode",
  "JSONRPCErrorData",
  "JSONRPCNotification",
  "JSONRPCRequest",
  "JSONRPCResponse",
  "TOOL_NAME",
  "ToolDispatcher",
  "create_error_response",
  "create_notification",
  "create_response",
  "decode_message",
  "error_from_exception",
  "http_status_for",
  "input_schema",
  "output_schema",
  "server_info",
  "tool_definition",
]
