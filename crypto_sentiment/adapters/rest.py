"""REST surface for the tool, with a uniform response envelope."""

import json
import time
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from crypto_sentiment.errors import GatewayError, ValidationError
from crypto_sentiment.protocol.tool import TOOL_NAME, ToolDispatcher, output_schema, tool_definition
from crypto_sentiment.types import utcnow
from crypto_sentiment.utils.log import log_error


def envelope(
  request_id: str,
  started: float,
  data: Optional[Any] = None,
  error: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
  body: Dict[str, Any] = {"success": error is None}
  if error is None:
    body["data"] = data
  else:
    body["error"] = error
  body["request_id"] = request_id
  body["processing_time_ms"] = int((time.perf_counter() - started) * 1000)
  body["timestamp"] = utcnow().isoformat()
  return body


def _error_body(exc: GatewayError) -> Dict[str, Any]:
  body: Dict[str, Any] = {"type": exc.type, "code": exc.error_id, "message": exc.message}
  if exc.data:
    body["details"] = exc.data
  return body


def _arguments(body: Any) -> Any:
  """Accept ``{"arguments": {...}}`` or the bare arguments object."""
  if isinstance(body, dict) and isinstance(body.get("arguments"), dict):
    return body["arguments"]
  return body


def register_rest_routes(app: FastAPI, dispatcher: ToolDispatcher) -> None:
  @app.get("/tools")
  async def list_tools():
    tools = dispatcher.list_tools()["tools"]
    return {"tools": tools, "count": len(tools)}

  @app.get("/tools/{name}/schema")
  async def tool_schema(name: str):
    if name not in dispatcher.tool_names:
      return JSONResponse(
        status_code=404,
        content={"error": f"Tool '{name}' not found", "available_tools": dispatcher.tool_names},
      )
    definition = tool_definition().model_dump(exclude_none=True)
    return {**definition, "outputSchema": output_schema()}

  @app.post(f"/tools/{TOOL_NAME}")
  async def analyze(request: Request):
    started = time.perf_counter()
    request_id = request.headers.get("x-request-id") or uuid4().hex
    metrics = dispatcher.metrics
    failed = True
    try:
      try:
        body = json.loads(await request.body() or b"{}")
      except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError(f"Request body is not valid JSON: {e}")

      verdict = await dispatcher.invoke(_arguments(body), request_id=request_id)
      failed = False
      return JSONResponse(content=envelope(request_id, started, data=verdict.model_dump(mode="json", exclude_none=True)))
    except GatewayError as e:
      status = 400 if isinstance(e, ValidationError) else e.status_code
      return JSONResponse(status_code=status, content=envelope(request_id, started, error=_error_body(e)))
    except Exception as e:
      log_error(f"REST [{request_id}] unhandled error: {type(e).__name__}: {e}")
      error = {"type": "internal_error", "code": "internal_error", "message": str(e)}
      return JSONResponse(status_code=500, content=envelope(request_id, started, error=error))
    finally:
      if metrics is not None:
        metrics.record_request("rest", (time.perf_counter() - started) * 1000, error=failed)

  @app.post("/tools/{name}")
  async def call_tool(name: str):
    normalized = name.strip().lower().replace("-", "_")
    if normalized in dispatcher.tool_names:
      return RedirectResponse(url=f"/tools/{normalized}", status_code=307)
    started = time.perf_counter()
    error = {
      "type": "tool_not_found",
      "code": "tool_not_found",
      "message": f"Tool '{name}' not found",
      "details": {"available_tools": dispatcher.tool_names},
    }
    return JSONResponse(status_code=404, content=envelope(uuid4().hex, started, error=error))
