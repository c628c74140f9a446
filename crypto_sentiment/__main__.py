"""Command-line entry point.

Usage:
    crypto-sentiment-gateway --transport all
    python -m crypto_sentiment --transport stdio
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from crypto_sentiment import __version__
from crypto_sentiment.config import Settings
from crypto_sentiment.utils.log import configure_logging, log_error, log_info


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    prog="crypto-sentiment-gateway",
    description="Crypto sentiment analysis over stdio, HTTP JSON-RPC, REST and WebSocket.",
  )
  parser.add_argument(
    "--transport",
    choices=["stdio", "http", "all"],
    default="http",
    help="Which transports to serve (default: http, which includes REST and WebSocket)",
  )
  parser.add_argument("--host", help="Override HOST")
  parser.add_argument("--port", type=int, help="Override PORT")
  parser.add_argument("--log-level", help="Override LOG_LEVEL")
  parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
  return parser


def transports_for(choice: str) -> List[str]:
  return ["stdio", "http"] if choice == "all" else [choice]


def load_settings(args: argparse.Namespace) -> Settings:
  settings = Settings.from_env()
  data = settings.to_dict()
  # to_dict masks secrets; carry the real ones over.
  data["ai"]["api_key"] = settings.ai.api_key
  data["prices"]["coingecko_api_key"] = settings.prices.coingecko_api_key
  if args.host:
    data["server"]["host"] = args.host
  if args.port:
    data["server"]["port"] = args.port
  if args.log_level:
    data["server"]["log_level"] = args.log_level
  return Settings.from_dict(data)


async def serve(settings: Settings, transports: List[str]) -> None:
  from crypto_sentiment.gateway import build_gateway
  from crypto_sentiment.runtime import GatewayRuntime

  gateway = build_gateway(settings)
  await GatewayRuntime(gateway, transports).start()


def main(argv: Optional[List[str]] = None) -> int:
  args = build_parser().parse_args(argv)
  try:
    settings = load_settings(args)
  except ValueError as e:
    configure_logging()
    log_error(f"Invalid configuration: {e}")
    return 2

  configure_logging(settings.server.log_level)
  transports = transports_for(args.transport)
  log_info(f"Starting crypto sentiment gateway {__version__} ({', '.join(transports)})")

  try:
    asyncio.run(serve(settings, transports))
  except KeyboardInterrupt:
    return 0
  except Exception as e:
    # Fatal at the process boundary; the supervisor restarts us.
    log_error(f"Fatal error: {type(e).__name__}: {e}")
    return 1
  return 0


if __name__ == "__main__":
  sys.exit(main())
