"""JSON-RPC over WebSocket with subscriptions, progress streaming and heartbeat."""

import asyncio
import contextlib
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Union
from uuid import uuid4

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from crypto_sentiment.errors import ValidationError
from crypto_sentiment.orchestrator.events import ProgressEmitter, ProgressEvent
from crypto_sentiment.protocol.jsonrpc import RequestId, create_notification
from crypto_sentiment.protocol.tool import MethodHandler, ToolDispatcher
from crypto_sentiment.types import utcnow
from crypto_sentiment.utils.log import log_debug, log_info, log_warning

KNOWN_TOPICS = frozenset({"market_updates", "sentiment_alerts", "price_alerts", "news"})

# WebSocket close code for "going away".
_CLOSE_GOING_AWAY = 1001


class ConnectionState(str, Enum):
  CONNECTED = "CONNECTED"
  INITIALIZED = "INITIALIZED"
  CLOSED = "CLOSED"


@dataclass
class Connection:
  id: str
  websocket: Any
  last_pong_at: float
  subscriptions: Set[str] = field(default_factory=set)
  state: ConnectionState = ConnectionState.CONNECTED


class ConnectionRegistry:
  """Index of live connections by id. Owned by the WebSocket adapter only."""

  def __init__(self) -> None:
    self._connections: Dict[str, Connection] = {}

  def add(self, websocket: Any, now: float) -> Connection:
    conn = Connection(id=uuid4().hex, websocket=websocket, last_pong_at=now)
    self._connections[conn.id] = conn
    return conn

  def get(self, conn_id: str) -> Optional[Connection]:
    return self._connections.get(conn_id)

  def remove(self, conn_id: str) -> Optional[Connection]:
    conn = self._connections.pop(conn_id, None)
    if conn is not None:
      conn.state = ConnectionState.CLOSED
    return conn

  def touch(self, conn_id: str, now: float) -> None:
    conn = self._connections.get(conn_id)
    if conn is not None:
      conn.last_pong_at = now

  def stale(self, now: float, threshold: float) -> List[Connection]:
    return [c for c in self._connections.values() if now - c.last_pong_at > threshold]

  def __contains__(self, conn_id: object) -> bool:
    return conn_id in self._connections

  def __iter__(self) -> Iterator[Connection]:
    return iter(list(self._connections.values()))

  def __len__(self) -> int:
    return len(self._connections)


class WebSocketAdapter:
  """Serves the dispatcher over WebSocket connections.

  Per connection: ``CONNECTED -> INITIALIZED -> CLOSED``. Every inbound
  message counts as proof of life. A heartbeat task pings all connections
  every ``heartbeat_interval`` seconds and terminates any connection silent
  for longer than ``stale_after``.

  Args:
    dispatcher: Shared tool dispatcher.
    heartbeat_interval: Seconds between heartbeat rounds.
    stale_after: Silence, in seconds, after which a connection is dropped.
    clock: Monotonic time source.
  """

  transport = "websocket"

  def __init__(
    self,
    dispatcher: ToolDispatcher,
    heartbeat_interval: float = 30.0,
    stale_after: float = 60.0,
    clock: Callable[[], float] = time.monotonic,
  ) -> None:
    self.dispatcher = dispatcher
    self.heartbeat_interval = heartbeat_interval
    self.stale_after = stale_after
    self.registry = ConnectionRegistry()
    self._clock = clock
    self._heartbeat_task: Optional[asyncio.Task] = None

  # ---------- Connection lifecycle ----------

  async def handle_connection(self, websocket: WebSocket) -> None:
    await websocket.accept()
    conn = self.registry.add(websocket, self._clock())
    log_info(f"WS [{conn.id}] connected ({len(self.registry)} active)")

    await self.send(
      conn,
      create_notification(
        "connection_established",
        {
          "connectionId": conn.id,
          "capabilities": {"tools": {}, "streaming": {"progress": True}, "topics": sorted(KNOWN_TOPICS)},
          "timestamp": utcnow().isoformat(),
        },
      ).model_dump(),
    )

    tasks: Set[asyncio.Task] = set()
    try:
      while conn.id in self.registry:
        try:
          frame = await self._receive(websocket)
        except WebSocketDisconnect:
          break
        except RuntimeError as e:
          # Socket already closed by a heartbeat sweep.
          log_debug(f"WS [{conn.id}] receive stopped: {e}", log_level=2)
          break
        self.registry.touch(conn.id, self._clock())
        task = asyncio.create_task(self._handle_message(conn, frame))
        tasks.add(task)
        task.add_done_callback(tasks.discard)
    finally:
      for task in tasks:
        task.cancel()
      if self.registry.remove(conn.id) is not None:
        log_info(f"WS [{conn.id}] disconnected ({len(self.registry)} active)")

  async def _receive(self, websocket: WebSocket) -> Union[str, bytes]:
    """Next frame as text or raw bytes. Binary frames are passed on undecoded."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
      raise WebSocketDisconnect(message.get("code", 1000))
    if message.get("text") is not None:
      return message["text"]
    return message.get("bytes") or b""

  async def _handle_message(self, conn: Connection, frame: Union[str, bytes]) -> None:
    response = await self.dispatcher.handle(
      frame,
      self.transport,
      extra_methods=self._methods(conn),
      emitter_factory=lambda request_id: self._progress_emitter(conn, request_id),
      streaming=True,
    )
    if response is not None:
      await self.send(conn, response)

  # ---------- Methods ----------

  def _methods(self, conn: Connection) -> Dict[str, MethodHandler]:
    async def initialize(params: Optional[Dict[str, Any]], _id: RequestId) -> Any:
      conn.state = ConnectionState.INITIALIZED
      return await self.dispatcher.initialize(params, streaming=True)

    async def subscribe(params: Optional[Dict[str, Any]], _id: RequestId) -> Any:
      topics = _topics(params)
      accepted = [t for t in topics if t in KNOWN_TOPICS]
      conn.subscriptions.update(accepted)
      return {"subscribed": accepted, "ignored": [t for t in topics if t not in KNOWN_TOPICS], "subscriptions": sorted(conn.subscriptions)}

    async def unsubscribe(params: Optional[Dict[str, Any]], _id: RequestId) -> Any:
      topics = _topics(params)
      conn.subscriptions.difference_update(topics)
      return {"unsubscribed": topics, "subscriptions": sorted(conn.subscriptions)}

    async def ping(params: Optional[Dict[str, Any]], _id: RequestId) -> Any:
      return {"pong": True, "timestamp": utcnow().isoformat()}

    async def pong(params: Optional[Dict[str, Any]], _id: RequestId) -> Any:
      return {"ok": True}

    return {"initialize": initialize, "subscribe": subscribe, "unsubscribe": unsubscribe, "ping": ping, "pong": pong}

  def _progress_emitter(self, conn: Connection, request_id: RequestId) -> ProgressEmitter:
    emitter = ProgressEmitter(None if request_id is None else str(request_id))

    async def forward(event: ProgressEvent) -> None:
      params = {"type": "progress_update", "request_id": request_id, **event.model_dump(exclude={"request_id"})}
      await self.send(conn, create_notification("notifications/progress", params).model_dump())

    emitter.subscribe(forward)
    return emitter

  # ---------- Delivery ----------

  async def send(self, conn: Connection, payload: Dict[str, Any]) -> bool:
    """Deliver to a live connection. Returns False once it has been removed."""
    if conn.id not in self.registry:
      return False
    try:
      await conn.websocket.send_json(payload)
    except Exception as e:
      log_warning(f"WS [{conn.id}] send failed, dropping connection: {e}")
      self.registry.remove(conn.id)
      return False
    return True

  async def broadcast(self, topic: str, payload: Dict[str, Any]) -> int:
    """Notify every connection subscribed to ``topic``. Returns deliveries."""
    message = create_notification("notifications/broadcast", {"topic": topic, "data": payload}).model_dump()
    delivered = 0
    for conn in self.registry:
      if topic in conn.subscriptions and await self.send(conn, message):
        delivered += 1
    return delivered

  # ---------- Heartbeat ----------

  async def sweep(self, now: Optional[float] = None) -> List[str]:
    """Terminate and remove every connection silent past ``stale_after``."""
    now = self._clock() if now is None else now
    removed: List[str] = []
    for conn in self.registry.stale(now, self.stale_after):
      self.registry.remove(conn.id)
      removed.append(conn.id)
      log_warning(f"WS [{conn.id}] stale for {now - conn.last_pong_at:.0f}s, terminating")
      with contextlib.suppress(Exception):
        await conn.websocket.close(code=_CLOSE_GOING_AWAY)
    return removed

  async def heartbeat_once(self, now: Optional[float] = None) -> List[str]:
    removed = await self.sweep(now)
    ping = create_notification("ping", {"timestamp": utcnow().isoformat()}).model_dump()
    for conn in self.registry:
      await self.send(conn, ping)
    return removed

  async def run_heartbeat(self) -> None:
    while True:
      await asyncio.sleep(self.heartbeat_interval)
      await self.heartbeat_once()

  def start_heartbeat(self) -> None:
    if self._heartbeat_task is None or self._heartbeat_task.done():
      self._heartbeat_task = asyncio.create_task(self.run_heartbeat())

  async def stop_heartbeat(self) -> None:
    if self._heartbeat_task is not None:
      self._heartbeat_task.cancel()
      with contextlib.suppress(asyncio.CancelledError):
        await self._heartbeat_task
      self._heartbeat_task = None

  async def close_all(self) -> None:
    for conn in self.registry:
      self.registry.remove(conn.id)
      with contextlib.suppress(Exception):
        await conn.websocket.close(code=_CLOSE_GOING_AWAY)


def _topics(params: Optional[Dict[str, Any]]) -> List[str]:
  topics = (params or {}).get("topics")
  if not isinstance(topics, list) or not all(isinstance(t, str) for t in topics):
    raise ValidationError("Invalid params: 'topics' must be an array of strings")
  return topics


def register_websocket_route(app: FastAPI, adapter: WebSocketAdapter, path: str = "/mcp/ws") -> None:
  @app.websocket(path)
  async def websocket_endpoint(websocket: WebSocket):
    await adapter.handle_connection(websocket)
