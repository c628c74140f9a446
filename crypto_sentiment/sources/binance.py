"""Binance 24h ticker price source (secondary)."""

import asyncio
from typing import Dict, Optional, Sequence

import httpx

from crypto_sentiment.errors import UpstreamFailureError
from crypto_sentiment.types import PriceQuote, utcnow
from crypto_sentiment.utils.log import log_debug


class BinanceSource:
  """USDT-pair tickers, one request per symbol."""

  name = "binance"

  def __init__(self, client: httpx.AsyncClient, base_url: str = "https://api.binance.com/api/v3", quote: str = "USDT"):
    self.client = client
    self.base_url = base_url.rstrip("/")
    self.quote = quote

  async def fetch(self, symbols: Sequence[str]) -> Dict[str, PriceQuote]:
    if not symbols:
      return {}
    results = await asyncio.gather(*(self._ticker(s) for s in symbols), return_exceptions=True)

    quotes: Dict[str, PriceQuote] = {}
    failures = 0
    for symbol, result in zip(symbols, results):
      if isinstance(result, BaseException):
        failures += 1
        log_debug(f"PriceSource [binance] {symbol} failed: {result}", log_level=2)
      elif result is not None:
        quotes[symbol] = result

    if failures == len(symbols):
      raise UpstreamFailureError("All Binance ticker requests failed", source=self.name)
    return quotes

  async def _ticker(self, symbol: str) -> Optional[PriceQuote]:
    response = await self.client.get(f"{self.base_url}/ticker/24hr", params={"symbol": f"{symbol}{self.quote}"})
    # Unknown pairs come back as 400; treat as "no quote" rather than failure.
    if response.status_code == 400:
      return None
    response.raise_for_status()
    row = response.json()
    return PriceQuote(
      symbol=symbol,
      current=float(row["lastPrice"]),
      change_24h=float(row.get("priceChangePercent") or 0.0),
      volume_24h=float(row["quoteVolume"]) if row.get("quoteVolume") else None,
      last_updated=utcnow(),
      source=self.name,
    )
