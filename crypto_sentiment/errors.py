"""Gateway exceptions.

Every error carries an HTTP status and a JSON-RPC code so each adapter can
render it in its own framing.
"""

from typing import Any, Dict, List, Optional


class GatewayError(Exception):
  """Base exception for gateway errors."""

  jsonrpc_code: int = -32603

  def __init__(
    self,
    message: str,
    status_code: int = 500,
    data: Optional[Dict[str, Any]] = None,
  ):
    super().__init__(message)
    self.message = message
    self.status_code = status_code
    self.data = data
    self.type = "gateway_error"
    self.error_id = "gateway_error"

  def __str__(self) -> str:
    return self.message


class ValidationError(GatewayError):
  """Raised when tool arguments cannot be turned into an Invocation."""

  jsonrpc_code = -32602

  def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
    super().__init__(message, status_code=400, data={"errors": errors} if errors else None)
    self.errors = errors or []
    self.type = "validation_error"
    self.error_id = "invalid_params"


class ToolNotFoundError(GatewayError):
  """Raised when a tool name is not registered."""

  jsonrpc_code = -32601

  def __init__(self, tool_name: str, available_tools: Optional[List[str]] = None):
    super().__init__(
      f"Tool '{tool_name}' not found",
      status_code=404,
      data={"available_tools": available_tools or []},
    )
    self.tool_name = tool_name
    self.available_tools = available_tools or []
    self.type = "tool_not_found"
    self.error_id = "tool_not_found"


class MethodNotFoundError(GatewayError):
  jsonrpc_code = -32601

  def __init__(self, method: str):
    super().__init__(f"Method not found: {method}", status_code=404)
    self.method = method
    self.type = "method_not_found"
    self.error_id = "method_not_found"


class ProtocolError(GatewayError):
  """Raised for malformed JSON-RPC framing.

  ``parse_error`` distinguishes unparsable JSON (-32700) from a structurally
  invalid request (-32600).
  """

  def __init__(self, message: str, parse_error: bool = False):
    super().__init__(message, status_code=400)
    self.jsonrpc_code = -32700 if parse_error else -32600
    self.type = "protocol_error"
    self.error_id = "parse_error" if parse_error else "invalid_request"


class UpstreamError(GatewayError):
  """Base for failures of external data sources or providers."""

  def __init__(self, message: str, source: Optional[str] = None, status_code: int = 502):
    super().__init__(message, status_code=status_code)
    self.source = source
    self.type = "upstream_error"
    self.error_id = "upstream_error"


class UpstreamTimeoutError(UpstreamError):
  def __init__(self, message: str, source: Optional[str] = None, timeout_seconds: Optional[float] = None):
    super().__init__(message, source=source, status_code=504)
    self.timeout_seconds = timeout_seconds
    self.type = "upstream_timeout"
    self.error_id = "upstream_timeout"


class UpstreamFailureError(UpstreamError):
  def __init__(self, message: str, source: Optional[str] = None, original_error: Optional[Exception] = None):
    super().__init__(message, source=source)
    self.original_error = original_error
    self.type = "upstream_failure"
    self.error_id = "upstream_failure"


class TerminalFetchFailure(GatewayError):
  """No news items remained after every source and fallback.

  Never crosses an adapter boundary; the orchestrator turns it into a
  degraded verdict.
  """

  def __init__(self, message: str = "No news data available for analysis"):
    super().__init__(message, status_code=200)
    self.type = "terminal_fetch_failure"
    self.error_id = "no_news"


class RateLimitError(GatewayError):
  def __init__(self, message: str = "Rate limit exceeded", retry_after: Optional[float] = None):
    super().__init__(message, status_code=429, data={"retry_after": retry_after} if retry_after else None)
    self.retry_after = retry_after
    self.type = "rate_limit"
    self.error_id = "rate_limit_exceeded"


class CacheBackendError(GatewayError):
  """Raised by the durable cache client; always caught by the cache tier."""

  def __init__(self, message: str, original_error: Optional[Exception] = None):
    super().__init__(message, status_code=503)
    self.original_error = original_error
    self.type = "cache_backend_error"
    self.error_id = "cache_unavailable"
