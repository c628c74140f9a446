"""Gateway runtime: runs the stdio transport and the HTTP server in one event loop."""

import asyncio
import contextlib
import signal
from typing import List, Sequence

from crypto_sentiment.adapters.stdio import StdioAdapter
from crypto_sentiment.gateway import Gateway
from crypto_sentiment.utils.log import log_info

TRANSPORTS = ("stdio", "http")


class GatewayRuntime:
  """Runs the selected transports until shutdown.

  Handles SIGINT/SIGTERM for graceful shutdown. When the stdio transport
  reaches end of input the runtime stops as well.

  Args:
    gateway: The wired gateway components.
    transports: Any of ``"stdio"`` and ``"http"``.
  """

  def __init__(self, gateway: Gateway, transports: Sequence[str] = ("http",)) -> None:
    unknown = [t for t in transports if t not in TRANSPORTS]
    if unknown:
      raise ValueError(f"Unknown transport(s): {', '.join(unknown)}")
    if not transports:
      raise ValueError("At least one transport is required")
    self.gateway = gateway
    self.transports = list(transports)
    self._shutdown_event = asyncio.Event()

  async def start(self) -> None:
    """Start the runtime and block until shutdown."""
    self._install_signal_handlers()
    await self.gateway.start()

    tasks: List[asyncio.Task] = []
    if "http" in self.transports:
      tasks.append(asyncio.create_task(self._run_server()))
    if "stdio" in self.transports:
      tasks.append(asyncio.create_task(self._run_stdio()))

    shutdown_task = asyncio.create_task(self._shutdown_event.wait())
    tasks.append(shutdown_task)

    try:
      done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)

      for task in pending:
        task.cancel()
      await asyncio.gather(*pending, return_exceptions=True)

      # Re-raise exceptions from completed tasks (except shutdown)
      for task in done:
        if task is not shutdown_task and not task.cancelled():
          exc = task.exception()
          if exc is not None:
            raise exc
    finally:
      await self.gateway.close()
      log_info("Runtime stopped")

  def shutdown(self) -> None:
    self._shutdown_event.set()

  async def _run_server(self) -> None:
    import uvicorn

    from crypto_sentiment.server import GatewayServer

    settings = self.gateway.settings.server
    app = GatewayServer(self.gateway, manage_lifecycle=False).create_app()
    config = uvicorn.Config(
      app,
      host=settings.host,
      port=settings.port,
      log_level=settings.log_level.lower(),
      # Liveness is handled by the application-level heartbeat.
      ws_ping_interval=None,
    )
    uv_server = uvicorn.Server(config)
    uv_server.handle_exit = lambda *_: self._shutdown_event.set()  # type: ignore[assignment]

    log_info(f"HTTP server on http://{settings.host}:{settings.port} (WebSocket at /mcp/ws)")
    serve = asyncio.create_task(uv_server.serve())
    try:
      await asyncio.shield(serve)
    except asyncio.CancelledError:
      uv_server.should_exit = True
      await serve
      raise

  async def _run_stdio(self) -> None:
    await StdioAdapter(self.gateway.dispatcher).serve()
    log_info("Stdio input closed, shutting down")

  def _install_signal_handlers(self) -> None:
    """Install SIGINT/SIGTERM handlers for graceful shutdown."""
    loop = asyncio.get_running_loop()

    def _handle_signal() -> None:
      log_info("Shutdown signal received")
      self._shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
      with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(sig, _handle_signal)
