"""Resilient price fetcher: primary, then secondary, then synthetic."""

import asyncio
import random
from typing import Dict, Iterable, List, Optional

from crypto_sentiment.cache.tier import CacheTier, prices_key
from crypto_sentiment.fetchers.synthetic import synthetic_quote
from crypto_sentiment.sources.base import PriceSource
from crypto_sentiment.types import PriceQuote
from crypto_sentiment.utils.log import log_debug, log_warning
from crypto_sentiment.utils.symbols import normalize_symbol


def normalize_symbols(symbols: Iterable[str]) -> List[str]:
  """Upper-case, resolve names to tickers, and de-duplicate preserving order."""
  normalized: List[str] = []
  for raw in symbols:
    if not raw or not raw.strip():
      continue
    symbol, confidence = normalize_symbol(raw)
    if confidence <= 0.1:
      symbol = raw.strip().upper()
    if symbol not in normalized:
      normalized.append(symbol)
  return normalized


class PriceFetcher:
  """Quotes for a set of symbols, always one per requested symbol.

  Primary and secondary sources are queried concurrently under one timeout.
  The primary's quotes win; the secondary only fills symbols the primary
  did not return. Anything still missing (including everything, on timeout)
  gets a synthetic quote.

  Args:
    primary: Preferred source.
    secondary: Gap-filling source.
    cache: Cache tier for fully real results.
    timeout: Bound on the whole fan-out, in seconds.
    cache_ttl: Seconds a real result stays cached.
    rng: Random source for synthetic quotes.
  """

  def __init__(
    self,
    primary: PriceSource,
    secondary: Optional[PriceSource],
    cache: CacheTier,
    timeout: float = 5.0,
    cache_ttl: int = 300,
    rng: Optional[random.Random] = None,
  ) -> None:
    self.primary = primary
    self.secondary = secondary
    self.cache = cache
    self.timeout = timeout
    self.cache_ttl = cache_ttl
    self._rng = rng or random.Random()

  async def fetch(self, symbols: Iterable[str]) -> Dict[str, PriceQuote]:
    wanted = normalize_symbols(symbols)
    if not wanted:
      return {}

    key = prices_key(wanted)
    cached = await self.cache.get(key)
    if cached is not None:
      log_debug(f"PriceFetcher cache hit: {key}", log_level=2)
      return {symbol: PriceQuote.model_validate(quote) for symbol, quote in cached.items()}

    try:
      quotes = await asyncio.wait_for(self._from_sources(wanted), timeout=self.timeout)
    except asyncio.TimeoutError:
      log_warning(f"PriceFetcher timed out after {self.timeout}s, using synthetic prices")
      quotes = {}

    missing = [s for s in wanted if s not in quotes]
    if missing:
      log_warning(f"PriceFetcher synthetic quotes for: {', '.join(missing)}")
      for symbol in missing:
        quotes[symbol] = synthetic_quote(symbol, self._rng)
    else:
      await self.cache.set(key, {s: q.model_dump(mode="json") for s, q in quotes.items()}, self.cache_ttl)

    return {s: quotes[s] for s in wanted}

  async def _from_sources(self, symbols: List[str]) -> Dict[str, PriceQuote]:
    sources = [self.primary] + ([self.secondary] if self.secondary is not None else [])
    results = await asyncio.gather(*(source.fetch(symbols) for source in sources), return_exceptions=True)

    merged: Dict[str, PriceQuote] = {}
    for source, result in zip(sources, results):
      if isinstance(result, BaseException):
        log_warning(f"PriceFetcher source '{source.name}' failed: {result}")
        continue
      for symbol, quote in result.items():
        if symbol in symbols:
          merged.setdefault(symbol, quote)
    return merged
