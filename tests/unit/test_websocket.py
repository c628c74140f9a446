"""Unit tests for the WebSocket adapter.

Tests cover the connection registry, heartbeat sweeps, subscriptions,
broadcast and progress streaming. Most tests drive the adapter with a
recording fake socket; one goes through the FastAPI TestClient.
No network calls.
"""

import json
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from crypto_sentiment.adapters.websocket import ConnectionRegistry, ConnectionState, WebSocketAdapter
from crypto_sentiment.protocol.tool import TOOL_NAME, ToolDispatcher
from crypto_sentiment.server import GatewayServer


class RecordingWebSocket:
  def __init__(self, fail_sends: bool = False) -> None:
    self.sent: List[Dict[str, Any]] = []
    self.closed_with: Optional[int] = None
    self.fail_sends = fail_sends

  async def send_json(self, payload: Dict[str, Any]) -> None:
    if self.fail_sends:
      raise RuntimeError("socket gone")
    self.sent.append(json.loads(json.dumps(payload)))

  async def close(self, code: int = 1000) -> None:
    self.closed_with = code


class FakeClock:
  def __init__(self) -> None:
    self.now = 0.0

  def __call__(self) -> float:
    return self.now


@pytest.fixture
def clock() -> FakeClock:
  return FakeClock()


@pytest.fixture
def adapter(make_orchestrator, clock) -> WebSocketAdapter:
  return WebSocketAdapter(ToolDispatcher(make_orchestrator()), heartbeat_interval=30, stale_after=60, clock=clock)


def message(method: str, request_id=1, params=None) -> str:
  body: Dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
  if params is not None:
    body["params"] = params
  return json.dumps(body)


@pytest.mark.unit
class TestConnectionRegistry:
  """Tests for ConnectionRegistry."""

  def test_add_and_remove(self):
    registry = ConnectionRegistry()
    conn = registry.add(RecordingWebSocket(), now=0.0)
    assert conn.id in registry
    assert len(registry) == 1
    assert registry.remove(conn.id) is conn
    assert conn.state == ConnectionState.CLOSED
    assert conn.id not in registry
    assert registry.remove(conn.id) is None

  def test_stale(self):
    registry = ConnectionRegistry()
    old = registry.add(RecordingWebSocket(), now=0.0)
    fresh = registry.add(RecordingWebSocket(), now=50.0)
    assert registry.stale(now=70.0, threshold=60.0) == [old]
    registry.touch(old.id, 65.0)
    assert registry.stale(now=70.0, threshold=60.0) == []
    assert fresh.last_pong_at == 50.0


@pytest.mark.unit
class TestHeartbeat:
  """Tests for sweep() and heartbeat_once()."""

  @pytest.mark.asyncio
  async def test_stale_connection_terminated(self, adapter, clock):
    """A connection silent past the threshold is removed and never written to again."""
    socket = RecordingWebSocket()
    conn = adapter.registry.add(socket, clock())
    clock.now = 61.0
    assert await adapter.sweep() == [conn.id]
    assert conn.id not in adapter.registry
    assert socket.closed_with == 1001
    assert await adapter.send(conn, {"hello": "world"}) is False
    assert socket.sent == []

  @pytest.mark.asyncio
  async def test_live_connection_pinged(self, adapter, clock):
    socket = RecordingWebSocket()
    adapter.registry.add(socket, clock())
    clock.now = 30.0
    assert await adapter.heartbeat_once() == []
    assert socket.sent[-1]["method"] == "ping"

  @pytest.mark.asyncio
  async def test_failed_send_drops_connection(self, adapter, clock):
    conn = adapter.registry.add(RecordingWebSocket(fail_sends=True), clock())
    assert await adapter.send(conn, {"x": 1}) is False
    assert len(adapter.registry) == 0


@pytest.mark.unit
class TestMessages:
  """Tests for per-connection methods."""

  @pytest.mark.asyncio
  async def test_subscribe_and_unsubscribe(self, adapter, clock):
    socket = RecordingWebSocket()
    conn = adapter.registry.add(socket, clock())
    await adapter._handle_message(conn, message("subscribe", params={"topics": ["market_updates", "weather"]}))
    result = socket.sent[-1]["result"]
    assert result["subscribed"] == ["market_updates"]
    assert result["ignored"] == ["weather"]
    assert conn.subscriptions == {"market_updates"}

    await adapter._handle_message(conn, message("unsubscribe", 2, params={"topics": ["market_updates"]}))
    assert conn.subscriptions == set()

  @pytest.mark.asyncio
  async def test_subscribe_requires_topics(self, adapter, clock):
    socket = RecordingWebSocket()
    conn = adapter.registry.add(socket, clock())
    await adapter._handle_message(conn, message("subscribe", params={"topics": "news"}))
    assert socket.sent[-1]["error"]["code"] == -32602

  @pytest.mark.asyncio
  async def test_initialize_marks_connection(self, adapter, clock):
    socket = RecordingWebSocket()
    conn = adapter.registry.add(socket, clock())
    await adapter._handle_message(conn, message("initialize"))
    assert conn.state == ConnectionState.INITIALIZED
    assert socket.sent[-1]["result"]["capabilities"]["streaming"] == {"progress": True}

  @pytest.mark.asyncio
  async def test_broadcast_only_to_subscribers(self, adapter, clock):
    subscribed, other = RecordingWebSocket(), RecordingWebSocket()
    conn = adapter.registry.add(subscribed, clock())
    adapter.registry.add(other, clock())
    conn.subscriptions.add("sentiment_alerts")
    assert await adapter.broadcast("sentiment_alerts", {"overall_sentiment": "BULLISH"}) == 1
    assert subscribed.sent[-1]["params"] == {"topic": "sentiment_alerts", "data": {"overall_sentiment": "BULLISH"}}
    assert other.sent == []

  @pytest.mark.asyncio
  async def test_streaming_call_sends_progress(self, adapter, clock):
    """Progress notifications precede the result and never go backwards."""
    socket = RecordingWebSocket()
    conn = adapter.registry.add(socket, clock())
    params = {"name": TOOL_NAME, "arguments": {"query": "bitcoin", "stream_updates": True}}
    await adapter._handle_message(conn, message("tools/call", "call-1", params=params))

    progress = [m for m in socket.sent if m.get("method") == "notifications/progress"]
    assert progress
    assert all(m["params"]["type"] == "progress_update" for m in progress)
    assert all(m["params"]["request_id"] == "call-1" for m in progress)
    values = [m["params"]["progress"] for m in progress]
    assert values == sorted(values)
    assert values[-1] == 100
    assert socket.sent[-1]["id"] == "call-1"
    assert "result" in socket.sent[-1]

  @pytest.mark.asyncio
  async def test_non_streaming_call_sends_only_result(self, adapter, clock):
    socket = RecordingWebSocket()
    conn = adapter.registry.add(socket, clock())
    params = {"name": TOOL_NAME, "arguments": {"query": "bitcoin"}}
    await adapter._handle_message(conn, message("tools/call", params=params))
    assert len(socket.sent) == 1


@pytest.mark.unit
class TestWebSocketEndpoint:
  """End-to-end through /mcp/ws."""

  def test_welcome_and_ping(self, gateway):
    with TestClient(GatewayServer(gateway).create_app()) as client:
      with client.websocket_connect("/mcp/ws") as ws:
        welcome = ws.receive_json()
        assert welcome["method"] == "connection_established"
        assert "market_updates" in welcome["params"]["capabilities"]["topics"]
        assert len(gateway.websocket.registry) == 1

        ws.send_text(message("ping", 5))
        reply = ws.receive_json()
        assert reply["id"] == 5
        assert reply["result"]["pong"] is True

        ws.send_text("{not json")
        assert ws.receive_json()["error"]["code"] == -32700

  def test_binary_frames(self, gateway):
    """Binary frames are handled like text; undecodable ones get a parse error."""
    with TestClient(GatewayServer(gateway).create_app()) as client:
      with client.websocket_connect("/mcp/ws") as ws:
        ws.receive_json()

        ws.send_bytes(message("ping", 7).encode("utf-8"))
        reply = ws.receive_json()
        assert reply["id"] == 7
        assert reply["result"]["pong"] is True

        ws.send_bytes(b"\xff\xfe{bad")
        reply = ws.receive_json()
        assert reply["id"] is None
        assert reply["error"]["code"] == -32700

        ws.send_text(message("ping", 8))
        assert ws.receive_json()["id"] == 8
