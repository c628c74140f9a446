"""Crypto sentiment gateway.

One ``analyze_crypto_sentiment`` tool served over stdio JSON-RPC, HTTP
JSON-RPC, REST and WebSocket.
"""

__version__ = "1.0.0"
