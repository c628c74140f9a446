"""JSON-RPC 2.0 message types and helpers shared by every transport."""

import json
from enum import Enum
from typing import Any, Dict, Literal, NamedTuple, Optional, Union

from pydantic import BaseModel

from crypto_sentiment.errors import GatewayError, ProtocolError, ValidationError

RequestId = Optional[Union[str, int]]


# =============================================================================
# Message types
# =============================================================================


class JSONRPCRequest(BaseModel):
  """A call that expects a response."""

  jsonrpc: Literal["2.0"] = "2.0"
  method: str
  params: Optional[Dict[str, Any]] = None
  id: RequestId = None


class JSONRPCNotification(BaseModel):
  """A one-way message: no id, never answered."""

  jsonrpc: Literal["2.0"] = "2.0"
  method: str
  params: Optional[Dict[str, Any]] = None


class JSONRPCErrorData(BaseModel):
  code: int
  message: str
  data: Optional[Any] = None


class JSONRPCResponse(BaseModel):
  """Reply to a request: a result or an error, never both."""

  jsonrpc: Literal["2.0"] = "2.0"
  id: RequestId = None
  result: Optional[Any] = None
  error: Optional[JSONRPCErrorData] = None

  def to_wire(self) -> Dict[str, Any]:
    """Dict form with ``id`` always present and exactly one of result/error."""
    wire: Dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
    if self.error is not None:
      wire["error"] = self.error.model_dump(exclude_none=True)
    else:
      wire["result"] = self.result
    return wire


class JSONRPCErrorCode(int, Enum):
  """Standard JSON-RPC 2.0 error codes."""

  PARSE_ERROR = -32700
  INVALID_REQUEST = -32600
  METHOD_NOT_FOUND = -32601
  INVALID_PARAMS = -32602
  INTERNAL_ERROR = -32603


_HTTP_STATUS = {
  JSONRPCErrorCode.PARSE_ERROR: 400,
  JSONRPCErrorCode.INVALID_REQUEST: 400,
  JSONRPCErrorCode.INVALID_PARAMS: 400,
  JSONRPCErrorCode.METHOD_NOT_FOUND: 404,
  JSONRPCErrorCode.INTERNAL_ERROR: 500,
}


def http_status_for(code: int) -> int:
  try:
    return _HTTP_STATUS[JSONRPCErrorCode(code)]
  except ValueError:
    return 500


# =============================================================================
# Decoding
# =============================================================================


class ParsedMessage(NamedTuple):
  method: str
  params: Optional[Dict[str, Any]]
  id: RequestId
  is_notification: bool


def loads(data: Union[str, bytes]) -> Any:
  """Parse raw JSON text.

  Raises:
      ProtocolError: With the parse-error code if the text is not UTF-8 JSON.
  """
  try:
    if isinstance(data, bytes):
      data = data.decode("utf-8")
    return json.loads(data)
  except (UnicodeDecodeError, json.JSONDecodeError) as e:
    raise ProtocolError(f"Parse error: {e}", parse_error=True)


def extract_id(data: Any) -> RequestId:
  """Best-effort id of a message that failed validation."""
  if isinstance(data, dict):
    value = data.get("id")
    if isinstance(value, (str, int)) and not isinstance(value, bool):
      return value
  return None


def decode_message(data: Union[str, bytes, Dict[str, Any]]) -> ParsedMessage:
  """Validate one JSON-RPC message.

  Args:
      data: Raw text or an already-parsed object.

  Returns:
      The method, params, id, and whether it is a notification.

  Raises:
      ProtocolError: If the message is not valid JSON-RPC 2.0.
  """
  if isinstance(data, (str, bytes)):
    data = loads(data)

  if not isinstance(data, dict):
    raise ProtocolError("Invalid Request: message must be an object")

  if data.get("jsonrpc") != "2.0":
    raise ProtocolError("Invalid Request: jsonrpc must be exactly \"2.0\"")

  method = data.get("method")
  if not method or not isinstance(method, str):
    raise ProtocolError("Invalid Request: missing method")

  request_id = data.get("id")
  if request_id is not None and (not isinstance(request_id, (str, int)) or isinstance(request_id, bool)):
    raise ProtocolError("Invalid Request: id must be a string, number or null")

  params = data.get("params")
  if params is not None and not isinstance(params, dict):
    raise ValidationError("Invalid params: params must be an object")

  return ParsedMessage(method, params, request_id, "id" not in data)


# =============================================================================
# Encoding
# =============================================================================


def create_response(result: Any, request_id: RequestId = None) -> JSONRPCResponse:
  return JSONRPCResponse(id=request_id, result=result)


def create_error_response(
  error_code: int,
  error_message: str,
  request_id: RequestId = None,
  error_data: Optional[Any] = None,
) -> JSONRPCResponse:
  """Error reply echoing ``request_id``; ``error_data`` goes in ``error.data``."""
  return JSONRPCResponse(
    id=request_id,
    error=JSONRPCErrorData(code=int(error_code), message=error_message, data=error_data),
  )


def error_from_exception(exc: BaseException, request_id: RequestId = None) -> JSONRPCResponse:
  """Map any exception onto a structured JSON-RPC error."""
  if isinstance(exc, GatewayError):
    return create_error_response(exc.jsonrpc_code, exc.message, request_id, exc.data)
  return create_error_response(JSONRPCErrorCode.INTERNAL_ERROR, f"Internal error: {exc}", request_id)


def create_notification(method: str, params: Optional[Dict[str, Any]] = None) -> JSONRPCNotification:
  return JSONRPCNotification(method=method, params=params)
