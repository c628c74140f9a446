"""Newline-delimited JSON-RPC over stdin/stdout."""

import asyncio
import json
import sys
from typing import Any, Dict, Optional, Set, TextIO

from crypto_sentiment.errors import ProtocolError
from crypto_sentiment.protocol.jsonrpc import error_from_exception
from crypto_sentiment.protocol.tool import ToolDispatcher
from crypto_sentiment.utils.log import log_debug, log_error, log_info, log_warning

# Longest accepted input line, in bytes.
DEFAULT_LINE_LIMIT = 4 * 1024 * 1024


class StdioAdapter:
  """Serves the dispatcher over a line-oriented stream.

  Each input line is one JSON-RPC message, handled in its own task so a
  long analysis does not block later lines. Each response is written as a
  single line. Logging never touches the output stream. A line longer than
  the reader's limit is skipped and answered with an invalid-request error.

  Args:
    dispatcher: Shared tool dispatcher.
    reader: Input stream. Defaults to stdin.
    output: Output text stream. Defaults to stdout.
    line_limit: Buffer limit for the stdin reader.
  """

  transport = "stdio"

  def __init__(
    self,
    dispatcher: ToolDispatcher,
    reader: Optional[asyncio.StreamReader] = None,
    output: Optional[TextIO] = None,
    line_limit: int = DEFAULT_LINE_LIMIT,
  ) -> None:
    self.dispatcher = dispatcher
    self.line_limit = line_limit
    self._reader = reader
    self._output = output
    self._write_lock = asyncio.Lock()
    self._tasks: Set[asyncio.Task] = set()

  # ---------- Lifecycle ----------

  async def serve(self) -> None:
    """Read until end of input, then wait for in-flight messages."""
    reader = self._reader or await self._stdin_reader()
    log_info("Stdio transport ready")

    try:
      while True:
        try:
          line = await self._next_line(reader)
        except ProtocolError as e:
          log_warning(f"Stdio {e.message}")
          await self.write(error_from_exception(e).to_wire())
          continue
        if line is None:
          log_debug("Stdio input closed")
          break
        text = line.decode("utf-8", errors="replace").strip()
        if not text:
          continue
        task = asyncio.create_task(self._handle_line(text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
    finally:
      if self._tasks:
        await asyncio.gather(*self._tasks, return_exceptions=True)

  async def _stdin_reader(self) -> asyncio.StreamReader:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=self.line_limit)
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    return reader

  # ---------- Framing ----------

  async def _next_line(self, reader: asyncio.StreamReader) -> Optional[bytes]:
    """Next line, or None at end of input.

    Raises:
        ProtocolError: If the line exceeds the reader's limit. The whole
            line is consumed so reading resumes at the next one.
    """
    try:
      return await reader.readuntil(b"\n")
    except asyncio.IncompleteReadError as e:
      return e.partial or None
    except asyncio.LimitOverrunError as e:
      await reader.readexactly(e.consumed)
      await self._discard_rest_of_line(reader)
      raise ProtocolError("Invalid Request: line exceeds the input limit")

  async def _discard_rest_of_line(self, reader: asyncio.StreamReader) -> None:
    while True:
      try:
        await reader.readuntil(b"\n")
        return
      except asyncio.LimitOverrunError as e:
        await reader.readexactly(e.consumed)
      except asyncio.IncompleteReadError:
        return

  # ---------- Messages ----------

  async def _handle_line(self, line: str) -> None:
    try:
      response = await self.dispatcher.handle(line, self.transport)
    except Exception as e:
      log_error(f"Stdio handler failed: {e}")
      return
    if response is not None:
      await self.write(response)

  async def write(self, payload: Dict[str, Any]) -> None:
    output = self._output or sys.stdout
    data = json.dumps(payload, separators=(",", ":")) + "\n"
    async with self._write_lock:
      output.write(data)
      output.flush()
