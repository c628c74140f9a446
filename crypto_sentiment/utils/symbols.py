"""Coin symbol normalisation and extraction from free text."""

import re
from typing import Dict, List, Tuple

# symbol -> names and aliases, all lower case
KNOWN_COINS: Dict[str, List[str]] = {
  "BTC": ["bitcoin", "btc", "xbt"],
  "ETH": ["ethereum", "eth", "ether"],
  "XRP": ["ripple", "xrp"],
  "BNB": ["binance coin", "bnb"],
  "DOT": ["polkadot", "dot"],
  "HBAR": ["hedera", "hedera hashgraph", "hbar"],
  "ADA": ["cardano", "ada"],
  "SOL": ["solana", "sol"],
  "LINK": ["chainlink", "link"],
  "UNI": ["uniswap", "uni"],
  "MATIC": ["polygon", "matic"],
  "AVAX": ["avalanche", "avax"],
  "LTC": ["litecoin", "ltc"],
  "BCH": ["bitcoin cash", "bch"],
  "DOGE": ["dogecoin", "doge"],
  "SHIB": ["shiba inu", "shiba", "shib"],
}

FALLBACK_SYMBOL = "BTC"

_QUOTE_SUFFIXES = ("USDT", "USDC", "USD", "BUSD", "EUR")
_PAIR_SEPARATORS = re.compile(r"[/\-_:]")
_TICKER = re.compile(r"^[A-Z]{2,5}$")

# Short aliases that are ordinary English words; only matched as $TICKER or upper case.
_AMBIGUOUS = {"dot", "link", "uni", "sol", "ada", "ether"}


def normalize_symbol(text: str) -> Tuple[str, float]:
  """Map a user-supplied coin reference to a ticker.

  Args:
      text: Symbol, name, or trading pair (``"bitcoin"``, ``"BTC/USDT"``).

  Returns:
      Tuple of (symbol, confidence). Unrecognisable input falls back to BTC
      with a confidence of 0.1.
  """
  raw = (text or "").strip()
  if not raw:
    return FALLBACK_SYMBOL, 0.1

  lowered = raw.lower().lstrip("$")
  upper = lowered.upper()

  if upper in KNOWN_COINS:
    return upper, 1.0
  for symbol, aliases in KNOWN_COINS.items():
    if lowered in aliases:
      return symbol, 1.0

  # Trading pairs: BTC/USDT, ETH-USD, SOLUSDT
  base = _PAIR_SEPARATORS.split(upper)[0]
  if base != upper and base in KNOWN_COINS:
    return base, 0.9
  for suffix in _QUOTE_SUFFIXES:
    if upper.endswith(suffix) and upper[: -len(suffix)] in KNOWN_COINS:
      return upper[: -len(suffix)], 0.9

  for symbol, aliases in KNOWN_COINS.items():
    for alias in aliases:
      if len(alias) > 3 and (alias in lowered or lowered in alias) and len(lowered) > 2:
        return symbol, 0.7

  if _TICKER.match(upper):
    return upper, 0.8

  return FALLBACK_SYMBOL, 0.1


def extract_symbols(text: str, limit: int = 5) -> List[Tuple[str, float]]:
  """Find coins mentioned in a piece of text, in order of first appearance."""
  if not text:
    return []

  found: Dict[str, Tuple[int, float]] = {}
  lowered = text.lower()

  for symbol, aliases in KNOWN_COINS.items():
    for alias in aliases:
      if alias in _AMBIGUOUS:
        pattern = rf"(?:\${re.escape(alias)}\b|\b{re.escape(alias.upper())}\b)"
        match = re.search(pattern, text) or re.search(rf"\${re.escape(alias)}\b", lowered)
      else:
        match = re.search(rf"\b{re.escape(alias)}\b", lowered)
      if match:
        confidence = 1.0 if len(alias) > 3 else 0.9
        prev = found.get(symbol)
        if prev is None:
          found[symbol] = (match.start(), confidence)
        else:
          found[symbol] = (min(prev[0], match.start()), max(prev[1], confidence))

  ordered = sorted(found.items(), key=lambda kv: kv[1][0])
  return [(symbol, conf) for symbol, (_, conf) in ordered[:limit]]


def mentioned_coins(text: str, min_confidence: float = 0.5) -> List[str]:
  return [symbol for symbol, conf in extract_symbols(text, limit=len(KNOWN_COINS)) if conf >= min_confidence]
