"""Gateway HTTP server: one FastAPI app hosting the HTTP-based transports."""

import contextlib
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException
from fastapi.responses import JSONResponse

from crypto_sentiment import __version__
from crypto_sentiment.adapters.http_rpc import register_rpc_routes
from crypto_sentiment.adapters.rest import register_rest_routes
from crypto_sentiment.adapters.websocket import register_websocket_route
from crypto_sentiment.gateway import Gateway
from crypto_sentiment.protocol.tool import SERVER_NAME, TOOL_NAME
from crypto_sentiment.types import utcnow
from crypto_sentiment.utils.log import log_error, log_info

ENDPOINTS = {
  "GET /": "Service information",
  "GET /health": "Health check",
  "GET /status": "Detailed status",
  "GET /metrics": "Request and cache counters",
  "GET /docs": "Interactive API documentation",
  "GET /tools": "List tools",
  "GET /tools/{name}/schema": "Tool input and output schema",
  f"POST /tools/{TOOL_NAME}": "Run the analysis (REST)",
  "POST /mcp": "JSON-RPC 2.0",
  "POST /mcp/batch": "JSON-RPC 2.0 batch",
  "WS /mcp/ws": "JSON-RPC 2.0 over WebSocket with progress streaming",
}


class GatewayServer:
  """Creates the FastAPI application for a gateway.

  Provides the HTTP JSON-RPC, REST and WebSocket transports plus the
  operational endpoints (``/``, ``/health``, ``/status``, ``/metrics``).

  Args:
    gateway: The wired gateway components.
    manage_lifecycle: Connect the cache and run the heartbeat from the app
      lifespan. Disable when an outer runtime owns the lifecycle.
  """

  def __init__(self, gateway: Gateway, *, manage_lifecycle: bool = True) -> None:
    self.gateway = gateway
    self.manage_lifecycle = manage_lifecycle
    self._app: Optional[Any] = None

  def create_app(self) -> FastAPI:
    """Build the FastAPI application with routes and handlers."""
    gateway = self.gateway

    @contextlib.asynccontextmanager
    async def lifespan(_app: FastAPI):
      if self.manage_lifecycle:
        await gateway.start()
      gateway.websocket.start_heartbeat()
      log_info("HTTP transports ready")
      try:
        yield
      finally:
        await gateway.websocket.stop_heartbeat()
        if self.manage_lifecycle:
          await gateway.close()

    app = FastAPI(
      title="Crypto Sentiment Gateway",
      version=__version__,
      docs_url="/docs",
      redoc_url=None,
      lifespan=lifespan,
    )

    # --- Error handlers ---
    @app.exception_handler(404)
    async def not_found(request: Request, exc: HTTPException):
      return JSONResponse(
        status_code=404,
        content={
          "error": "Not found",
          "message": f"Route {request.method} {request.url.path} does not exist",
          "available_endpoints": ENDPOINTS,
        },
      )

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception):
      log_error(f"Unhandled error on {request.method} {request.url.path}: {type(exc).__name__}: {exc}")
      return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "message": str(exc), "timestamp": utcnow().isoformat()},
      )

    # --- Operational endpoints ---
    @app.get("/")
    async def root():
      return {
        "name": SERVER_NAME,
        "version": __version__,
        "transports": ["stdio", "http", "rest", "websocket"],
        "tools": gateway.dispatcher.tool_names,
        "endpoints": ENDPOINTS,
      }

    @app.get("/health")
    async def health():
      return {
        "status": "ok",
        "timestamp": utcnow().isoformat(),
        "version": __version__,
        "cache": gateway.cache.stats(),
        "connections": len(gateway.websocket.registry),
      }

    @app.get("/status")
    async def status():
      return {
        "status": "ok",
        "version": __version__,
        "uptime_seconds": round(gateway.metrics.uptime_seconds, 1),
        "transports": {
          "http": True,
          "rest": True,
          "websocket": {"connections": len(gateway.websocket.registry)},
        },
        "tools": len(gateway.dispatcher.tool_names),
        "ai_model": gateway.orchestrator.model_name,
        "cache": gateway.cache.stats(),
        "metrics": gateway.metrics.snapshot(),
        "timestamp": utcnow().isoformat(),
      }

    @app.get("/metrics")
    async def metrics():
      return gateway.metrics.snapshot()

    # --- Transports ---
    register_rpc_routes(app, gateway.dispatcher)
    register_rest_routes(app, gateway.dispatcher)
    register_websocket_route(app, gateway.websocket)

    self._app = app
    return app
