"""CoinGecko price source (primary)."""

from typing import Any, Dict, List, Optional, Sequence

import httpx

from crypto_sentiment.errors import UpstreamFailureError
from crypto_sentiment.types import PriceQuote, utcnow
from crypto_sentiment.utils.log import log_debug, log_warning

SYMBOL_MAPPING_KEY = "coingecko:symbol-mapping"
SYMBOL_MAPPING_TTL = 24 * 3600

# Major coins share tickers with many small tokens; these always win.
FALLBACK_IDS: Dict[str, str] = {
  "BTC": "bitcoin",
  "ETH": "ethereum",
  "ADA": "cardano",
  "SOL": "solana",
  "DOT": "polkadot",
  "MATIC": "matic-network",
  "AVAX": "avalanche-2",
  "LINK": "chainlink",
  "UNI": "uniswap",
  "ATOM": "cosmos",
}


class CoinGeckoSource:
  """``/simple/price`` lookups, with the symbol -> id map cached for a day.

  Args:
    client: Shared ``httpx.AsyncClient``.
    base_url: API root.
    api_key: Optional demo key, sent as ``X-CG-Demo-API-Key``.
    cache: Optional cache tier for the symbol mapping.
  """

  name = "coingecko"

  def __init__(self, client: httpx.AsyncClient, base_url: str = "https://api.coingecko.com/api/v3", api_key: Optional[str] = None, cache: Any = None):
    self.client = client
    self.base_url = base_url.rstrip("/")
    self.cache = cache
    self.headers = {"Accept": "application/json"}
    if api_key:
      self.headers["X-CG-Demo-API-Key"] = api_key

  async def fetch(self, symbols: Sequence[str]) -> Dict[str, PriceQuote]:
    mapping = await self._symbol_ids(symbols)
    ids = {mapping[s]: s for s in symbols if s in mapping}
    if not ids:
      return {}

    try:
      response = await self.client.get(
        f"{self.base_url}/simple/price",
        params={
          "ids": ",".join(ids),
          "vs_currencies": "usd",
          "include_24hr_change": "true",
          "include_market_cap": "true",
          "include_24hr_vol": "true",
        },
        headers=self.headers,
      )
      response.raise_for_status()
      data = response.json()
    except (httpx.HTTPError, ValueError) as e:
      raise UpstreamFailureError(f"CoinGecko price request failed: {e}", source=self.name, original_error=e) from e

    now = utcnow()
    quotes: Dict[str, PriceQuote] = {}
    for coin_id, symbol in ids.items():
      row = data.get(coin_id)
      if not row or row.get("usd") is None:
        continue
      quotes[symbol] = PriceQuote(
        symbol=symbol,
        current=float(row["usd"]),
        change_24h=float(row.get("usd_24h_change") or 0.0),
        market_cap=row.get("usd_market_cap"),
        volume_24h=row.get("usd_24h_vol"),
        last_updated=now,
        source=self.name,
      )
    return quotes

  async def _symbol_ids(self, symbols: Sequence[str]) -> Dict[str, str]:
    if all(s in FALLBACK_IDS for s in symbols):
      return dict(FALLBACK_IDS)

    mapping: Optional[Dict[str, str]] = None
    if self.cache is not None:
      mapping = await self.cache.get(SYMBOL_MAPPING_KEY)
    if mapping is None:
      mapping = await self._load_symbol_mapping()
      if mapping and self.cache is not None:
        await self.cache.set(SYMBOL_MAPPING_KEY, mapping, SYMBOL_MAPPING_TTL)
    return {**(mapping or {}), **FALLBACK_IDS}

  async def _load_symbol_mapping(self) -> Dict[str, str]:
    try:
      response = await self.client.get(f"{self.base_url}/coins/list", headers=self.headers)
      response.raise_for_status()
      coins: List[Dict[str, str]] = response.json()
    except (httpx.HTTPError, ValueError) as e:
      log_warning(f"PriceSource [coingecko] symbol list unavailable, using fallback ids: {e}")
      return {}

    mapping: Dict[str, str] = {}
    for coin in coins:
      symbol = (coin.get("symbol") or "").upper()
      # First listing wins; later duplicates are usually forks or wrappers.
      if symbol and symbol not in mapping:
        mapping[symbol] = coin["id"]
    log_debug(f"PriceSource [coingecko] loaded {len(mapping)} symbol ids", log_level=2)
    return mapping
