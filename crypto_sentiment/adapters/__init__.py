from crypto_sentiment.adapters.http_rpc import register_rpc_routes
from crypto_sentiment.adapters.rest import register_rest_routes
from crypto_sentiment.adapters.stdio import StdioAdapter
from crypto_sentiment.adapters.websocket import Connection, ConnectionRegistry, WebSocketAdapter, register_websocket_route

__all__ = [
  "Connection",
  "ConnectionRegistry",
  "StdioAdapter",
  "WebSocketAdapter",
  "register_rest_routes",
  "register_rpc_routes",
  "register_websocket_route",
]
