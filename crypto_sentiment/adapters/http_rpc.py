"""JSON-RPC over HTTP: ``POST /mcp`` and ``POST /mcp/batch``."""

import asyncio
from typing import Any, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from crypto_sentiment.errors import ProtocolError
from crypto_sentiment.protocol.jsonrpc import JSONRPCErrorCode, create_error_response, error_from_exception, http_status_for, loads
from crypto_sentiment.protocol.tool import ToolDispatcher
from crypto_sentiment.utils.log import log_debug

MAX_BATCH_SIZE = 50


def _status(payload: dict) -> int:
  error = payload.get("error")
  return http_status_for(error["code"]) if error else 200


def register_rpc_routes(app: FastAPI, dispatcher: ToolDispatcher) -> None:
  @app.post("/mcp")
  async def rpc(request: Request):
    body = await request.body()
    payload = await dispatcher.handle(body, "http")
    if payload is None:
      return Response(status_code=204)
    return JSONResponse(content=payload, status_code=_status(payload))

  @app.post("/mcp/batch")
  async def rpc_batch(request: Request):
    try:
      items = loads(await request.body())
    except ProtocolError as e:
      error = error_from_exception(e).to_wire()
      return JSONResponse(content=error, status_code=400)

    if not isinstance(items, list) or not items:
      error = create_error_response(JSONRPCErrorCode.INVALID_REQUEST, "Invalid Request: batch must be a non-empty array")
      return JSONResponse(content=error.to_wire(), status_code=400)
    if len(items) > MAX_BATCH_SIZE:
      error = create_error_response(JSONRPCErrorCode.INVALID_REQUEST, f"Invalid Request: batch exceeds {MAX_BATCH_SIZE} items")
      return JSONResponse(content=error.to_wire(), status_code=400)

    log_debug(f"RPC [http-batch] {len(items)} items")
    results: List[Optional[Any]] = await asyncio.gather(*(dispatcher.handle(item, "http-batch") for item in items))
    # One entry per item, in order; notifications hold null.
    return JSONResponse(content=results, status_code=200)
