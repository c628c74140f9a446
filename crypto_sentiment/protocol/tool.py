"""The analysis tool and the JSON-RPC method dispatcher.

Every transport funnels its messages through ``ToolDispatcher.handle`` so
``initialize``, ``tools/list`` and ``tools/call`` behave identically
everywhere.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from crypto_sentiment import __version__
from crypto_sentiment.errors import GatewayError, MethodNotFoundError, ToolNotFoundError, ValidationError
from crypto_sentiment.orchestrator.events import ProgressEmitter
from crypto_sentiment.protocol.jsonrpc import (
  RequestId,
  create_response,
  decode_message,
  error_from_exception,
  extract_id,
  loads,
)
from crypto_sentiment.types import Invocation, Verdict
from crypto_sentiment.utils.log import log_debug, log_error

TOOL_NAME = "analyze_crypto_sentiment"
TOOL_DESCRIPTION = "Advanced AI-driven cryptocurrency sentiment analysis with market intelligence and price context"
PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "crypto-sentiment-intelligence-mcp-server"

MethodHandler = Callable[[Optional[Dict[str, Any]], RequestId], Awaitable[Any]]
EmitterFactory = Callable[[RequestId], ProgressEmitter]


class ToolInputSchema(BaseModel):
  type: str = "object"
  properties: Dict[str, Any] = Field(default_factory=dict)
  required: Optional[List[str]] = None


class ToolDefinition(BaseModel):
  name: str
  description: Optional[str] = None
  inputSchema: ToolInputSchema


def input_schema(streaming: bool = False) -> ToolInputSchema:
  properties: Dict[str, Any] = {
    "query": {
      "type": "string",
      "description": "What to analyse, e.g. 'bitcoin ETF' or 'latest'",
      "minLength": 1,
    },
    "analysis_depth": {
      "type": "string",
      "enum": ["quick", "standard", "deep"],
      "default": "standard",
      "description": "How many headlines the stages examine",
    },
    "max_news_items": {
      "type": "integer",
      "minimum": 5,
      "maximum": 50,
      "default": 15,
    },
    "time_range": {
      "type": "string",
      "enum": ["1h", "6h", "12h", "24h"],
      "default": "6h",
    },
    "include_prices": {
      "type": "boolean",
      "default": True,
    },
    "focus_coins": {
      "type": "array",
      "items": {"type": "string"},
      "description": "Ticker symbols to focus on, e.g. ['BTC', 'ETH']",
    },
  }
  if streaming:
    properties["stream_updates"] = {
      "type": "boolean",
      "default": False,
      "description": "Send progress notifications before the result",
    }
  return ToolInputSchema(properties=properties, required=["query"])


def tool_definition(streaming: bool = False) -> ToolDefinition:
  return ToolDefinition(name=TOOL_NAME, description=TOOL_DESCRIPTION, inputSchema=input_schema(streaming))


def output_schema() -> Dict[str, Any]:
  return Verdict.model_json_schema()


def server_info(streaming: bool = False) -> Dict[str, Any]:
  capabilities: Dict[str, Any] = {"tools": {}}
  if streaming:
    capabilities["streaming"] = {"progress": True}
  return {
    "protocolVersion": PROTOCOL_VERSION,
    "capabilities": capabilities,
    "serverInfo": {"name": SERVER_NAME, "version": __version__},
  }


def tool_result(verdict: Verdict) -> Dict[str, Any]:
  return {"content": [{"type": "text", "text": verdict.to_json()}]}


class ToolDispatcher:
  """Routes JSON-RPC methods to the orchestrator.

  Args:
    orchestrator: Object with ``async execute(invocation, emitter, request_id)``.
    metrics: Optional ``Metrics`` for request accounting.
  """

  def __init__(self, orchestrator: Any, metrics: Any = None) -> None:
    self.orchestrator = orchestrator
    self.metrics = metrics

  @property
  def tool_names(self) -> List[str]:
    return [TOOL_NAME]

  # ---------- Operations ----------

  async def initialize(self, params: Optional[Dict[str, Any]] = None, streaming: bool = False) -> Dict[str, Any]:
    if params and params.get("clientInfo"):
      log_debug(f"Client initialized: {params['clientInfo']}")
    return server_info(streaming)

  def list_tools(self, streaming: bool = False) -> Dict[str, Any]:
    return {"tools": [tool_definition(streaming).model_dump(exclude_none=True)]}

  async def invoke(
    self,
    arguments: Optional[Dict[str, Any]],
    emitter_factory: Optional[EmitterFactory] = None,
    request_id: RequestId = None,
  ) -> Verdict:
    """Validate arguments and run the analysis.

    Raises:
        ValidationError: If the arguments are malformed. The orchestrator is
            not touched in that case.
    """
    invocation = Invocation.from_arguments(arguments)
    emitter = None
    if invocation.stream_updates and emitter_factory is not None:
      emitter = emitter_factory(request_id)
    return await self.orchestrator.execute(
      invocation,
      emitter=emitter,
      request_id=None if request_id is None else str(request_id),
    )

  async def call_tool(
    self,
    params: Optional[Dict[str, Any]],
    emitter_factory: Optional[EmitterFactory] = None,
    request_id: RequestId = None,
  ) -> Dict[str, Any]:
    params = params or {}
    name = params.get("name")
    if not name:
      raise ValidationError("Invalid params: missing tool name")
    if name != TOOL_NAME:
      raise ToolNotFoundError(name, self.tool_names)
    verdict = await self.invoke(params.get("arguments"), emitter_factory, request_id)
    return tool_result(verdict)

  # ---------- Message handling ----------

  async def handle(
    self,
    raw: Union[str, bytes, Dict[str, Any], Any],
    transport: str,
    extra_methods: Optional[Dict[str, MethodHandler]] = None,
    emitter_factory: Optional[EmitterFactory] = None,
    streaming: bool = False,
  ) -> Optional[Dict[str, Any]]:
    """Process one JSON-RPC message.

    Args:
        raw: Message text or parsed JSON.
        transport: Transport name, for metrics and logs.
        extra_methods: Transport-specific methods; may override the defaults.
        emitter_factory: Builds a progress emitter for streaming calls.
        streaming: Advertise streaming in ``initialize`` and the tool schema.

    Returns:
        The response in wire form, or None for a notification.
    """
    methods: Dict[str, MethodHandler] = {
      "initialize": lambda params, _id: self.initialize(params, streaming),
      "tools/list": lambda params, _id: _resolved(self.list_tools(streaming)),
      "tools/call": lambda params, request_id: self.call_tool(params, emitter_factory, request_id),
    }
    methods.update(extra_methods or {})

    started = time.perf_counter()
    request_id: RequestId = None
    is_notification = False
    failed = False
    try:
      if isinstance(raw, (str, bytes)):
        raw = loads(raw)
      message = decode_message(raw)
      request_id, is_notification = message.id, message.is_notification
      handler = methods.get(message.method)
      if handler is None:
        raise MethodNotFoundError(message.method)
      log_debug(f"RPC [{transport}] {message.method} id={request_id}", log_level=2)
      response = create_response(await handler(message.params, request_id), request_id)
    except asyncio.CancelledError:
      raise
    except GatewayError as e:
      failed = True
      response = error_from_exception(e, request_id if request_id is not None else extract_id(raw))
    except Exception as e:
      failed = True
      log_error(f"RPC [{transport}] unhandled error: {type(e).__name__}: {e}")
      response = error_from_exception(e, request_id if request_id is not None else extract_id(raw))
    finally:
      if self.metrics is not None:
        self.metrics.record_request(transport, (time.perf_counter() - started) * 1000, error=failed)

    if is_notification:
      return None
    return response.to_wire()


async def _resolved(value: Any) -> Any:
  return value
