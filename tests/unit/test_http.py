"""Unit tests for the HTTP transports: JSON-RPC, batch, REST and operational routes.

Uses the FastAPI TestClient against a gateway wired with stub sources.
No network calls.
"""

import pytest
from fastapi.testclient import TestClient

from crypto_sentiment.adapters.http_rpc import MAX_BATCH_SIZE
from crypto_sentiment.protocol.tool import TOOL_NAME
from crypto_sentiment.server import GatewayServer


def rpc(method: str, request_id=1, params=None) -> dict:
  message = {"jsonrpc": "2.0", "id": request_id, "method": method}
  if params is not None:
    message["params"] = params
  return message


@pytest.fixture
def client(gateway):
  with TestClient(GatewayServer(gateway).create_app()) as test_client:
    yield test_client


@pytest.mark.unit
class TestRpcEndpoint:
  """Tests for POST /mcp."""

  def test_tools_list(self, client):
    response = client.post("/mcp", json=rpc("tools/list"))
    assert response.status_code == 200
    assert response.json()["result"]["tools"][0]["name"] == TOOL_NAME

  def test_tools_call(self, client):
    params = {"name": TOOL_NAME, "arguments": {"query": "bitcoin"}}
    response = client.post("/mcp", json=rpc("tools/call", params=params))
    assert response.status_code == 200
    assert response.json()["result"]["content"][0]["type"] == "text"

  def test_unknown_method_is_404(self, client):
    response = client.post("/mcp", json=rpc("nope"))
    assert response.status_code == 404
    assert response.json()["error"]["code"] == -32601

  def test_invalid_params_is_400(self, client):
    params = {"name": TOOL_NAME, "arguments": {"query": "q", "analysis_depth": "extreme"}}
    response = client.post("/mcp", json=rpc("tools/call", params=params))
    assert response.status_code == 400
    assert response.json()["error"]["code"] == -32602

  def test_parse_error_is_400(self, client):
    response = client.post("/mcp", content=b"{broken", headers={"content-type": "application/json"})
    assert response.status_code == 400
    assert response.json() == {"jsonrpc": "2.0", "id": None, "error": response.json()["error"]}
    assert response.json()["error"]["code"] == -32700

  def test_invalid_utf8_is_parse_error(self, client):
    response = client.post("/mcp", content=b"\xff\xfe{bad", headers={"content-type": "application/json"})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == -32700

  def test_notification_is_204(self, client):
    response = client.post("/mcp", json={"jsonrpc": "2.0", "method": "tools/list"})
    assert response.status_code == 204
    assert response.content == b""


@pytest.mark.unit
class TestBatchEndpoint:
  """Tests for POST /mcp/batch."""

  def test_one_malformed_item(self, client):
    """Each item gets its own response, in order."""
    batch = [rpc("tools/list", 1), {"jsonrpc": "2.0", "id": 2}, rpc("initialize", 3)]
    response = client.post("/mcp/batch", json=batch)
    assert response.status_code == 200
    body = response.json()
    assert len(body) == 3
    assert "result" in body[0]
    assert body[1]["id"] == 2
    assert body[1]["error"]["code"] == -32600
    assert body[2]["id"] == 3
    assert "result" in body[2]

  def test_notification_slot_is_null(self, client):
    batch = [rpc("tools/list", 1), {"jsonrpc": "2.0", "method": "tools/list"}]
    assert client.post("/mcp/batch", json=batch).json()[1] is None

  @pytest.mark.parametrize("body", [[], {"jsonrpc": "2.0", "id": 1, "method": "tools/list"}])
  def test_not_a_batch(self, client, body):
    response = client.post("/mcp/batch", json=body)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == -32600

  def test_too_large(self, client):
    batch = [rpc("tools/list", i) for i in range(MAX_BATCH_SIZE + 1)]
    assert client.post("/mcp/batch", json=batch).status_code == 400

  def test_unparsable(self, client):
    response = client.post("/mcp/batch", content=b"[{", headers={"content-type": "application/json"})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == -32700

  def test_invalid_utf8(self, client):
    response = client.post("/mcp/batch", content=b"\xff[]", headers={"content-type": "application/json"})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == -32700


@pytest.mark.unit
class TestRestEndpoints:
  """Tests for the REST surface."""

  def test_list_tools(self, client):
    body = client.get("/tools").json()
    assert body["count"] == 1
    assert body["tools"][0]["name"] == TOOL_NAME

  def test_schema(self, client):
    body = client.get(f"/tools/{TOOL_NAME}/schema").json()
    assert body["inputSchema"]["required"] == ["query"]
    assert "overall_sentiment" in body["outputSchema"]["properties"]

  def test_schema_unknown_tool(self, client):
    response = client.get("/tools/nope/schema")
    assert response.status_code == 404
    assert response.json()["available_tools"] == [TOOL_NAME]

  def test_analyze(self, client):
    response = client.post(f"/tools/{TOOL_NAME}", json={"query": "bitcoin"}, headers={"x-request-id": "req-42"})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["request_id"] == "req-42"
    assert body["data"]["total_stages"] == 5
    assert isinstance(body["processing_time_ms"], int)
    assert "timestamp" in body

  def test_analyze_wrapped_arguments(self, client):
    response = client.post(f"/tools/{TOOL_NAME}", json={"arguments": {"query": "ethereum"}})
    assert response.json()["success"] is True

  def test_analyze_validation_error(self, client):
    response = client.post(f"/tools/{TOOL_NAME}", json={"query": "q", "max_news_items": 500})
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]["type"] == "validation_error"
    assert "data" not in body

  def test_analyze_invalid_json(self, client):
    response = client.post(f"/tools/{TOOL_NAME}", content=b"{nope", headers={"content-type": "application/json"})
    assert response.status_code == 400

  def test_alias_redirects(self, client):
    response = client.post("/tools/Analyze-Crypto-Sentiment", json={"query": "q"}, follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == f"/tools/{TOOL_NAME}"

  def test_unknown_tool(self, client):
    response = client.post("/tools/nope", json={})
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error"]["details"]["available_tools"] == [TOOL_NAME]


@pytest.mark.unit
class TestOperationalEndpoints:
  """Tests for /, /health, /status, /metrics and unknown routes."""

  def test_root(self, client):
    body = client.get("/").json()
    assert body["tools"] == [TOOL_NAME]
    assert "POST /mcp" in body["endpoints"]

  def test_health(self, client):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["cache"]["redis"] is False
    assert body["connections"] == 0

  def test_status_and_metrics(self, client):
    client.post("/mcp", json=rpc("tools/list"))
    status = client.get("/status").json()
    assert status["ai_model"] == "heuristic"
    assert status["metrics"]["requests_by_transport"]["http"] == 1
    assert client.get("/metrics").json()["requests_total"] == 1

  def test_unknown_route(self, client):
    response = client.get("/does-not-exist")
    assert response.status_code == 404
    body = response.json()
    assert body["error"] == "Not found"
    assert "GET /health" in body["available_endpoints"]
