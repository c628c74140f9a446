"""Synthetic fallback data, flagged ``synthetic=True`` on every item."""

import random
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from crypto_sentiment.types import NewsItem, PriceQuote, utcnow

SYNTHETIC_SOURCE = "Mock News Source"

_NEWS_TEMPLATES = [
  {
    "title": "Bitcoin Shows Strong Institutional Demand Amid Market Volatility",
    "content": "Major institutional investors continue to accumulate Bitcoin despite recent price fluctuations, signaling long-term confidence in the digital asset.",
    "mentioned_coins": ["BTC"],
    "category": "market",
    "importance_score": 0.8,
  },
  {
    "title": "Ethereum Network Upgrade Promises Improved Scalability",
    "content": "The upcoming Ethereum upgrade is expected to significantly reduce transaction fees and increase network throughput.",
    "mentioned_coins": ["ETH"],
    "category": "technology",
    "importance_score": 0.7,
  },
  {
    "title": "Regulatory Clarity Brings Mixed Reactions from Crypto Community",
    "content": "New regulatory guidelines provide clearer framework for cryptocurrency operations while raising concerns about compliance costs.",
    "mentioned_coins": ["BTC", "ETH", "ADA"],
    "category": "regulatory",
    "importance_score": 0.6,
  },
  {
    "title": "Major Payment Processor Announces Crypto Integration",
    "content": "A leading global payment processor will enable merchants to accept cryptocurrency payments, expanding mainstream adoption.",
    "mentioned_coins": ["BTC", "ETH", "SOL"],
    "category": "adoption",
    "importance_score": 0.9,
  },
  {
    "title": "DeFi Protocols See Surge in Yield Farming Activity",
    "content": "Decentralized finance platforms report increased user activity as yield opportunities attract new liquidity providers.",
    "mentioned_coins": ["ETH", "UNI", "LINK"],
    "category": "technology",
    "importance_score": 0.5,
  },
]

REFERENCE_PRICES = {
  "BTC": 45000.0,
  "ETH": 2500.0,
  "ADA": 0.45,
  "SOL": 95.0,
  "DOT": 7.5,
  "MATIC": 0.85,
  "AVAX": 25.0,
  "LINK": 15.0,
  "UNI": 8.5,
  "ATOM": 12.0,
}
DEFAULT_REFERENCE_PRICE = 10.0

# Current price stays within +/- this fraction of the reference.
PRICE_BAND = 0.05


def synthetic_news(limit: Optional[int] = None, now: Optional[datetime] = None) -> List[NewsItem]:
  """Fixed template set, newest first, two hours apart."""
  now = now or utcnow()
  items = [
    NewsItem(
      url=f"https://mock-crypto-news.com/article-{i + 1}",
      source=SYNTHETIC_SOURCE,
      published_at=now - timedelta(hours=2 * i),
      synthetic=True,
      **template,
    )
    for i, template in enumerate(_NEWS_TEMPLATES)
  ]
  return items[:limit] if limit is not None else items


def plausible_range(symbol: str) -> Tuple[float, float]:
  base = REFERENCE_PRICES.get(symbol.upper(), DEFAULT_REFERENCE_PRICE)
  return base * (1 - PRICE_BAND), base * (1 + PRICE_BAND)


def synthetic_quote(symbol: str, rng: Optional[random.Random] = None) -> PriceQuote:
  rng = rng or random.Random()
  symbol = symbol.upper()
  base = REFERENCE_PRICES.get(symbol, DEFAULT_REFERENCE_PRICE)
  return PriceQuote(
    symbol=symbol,
    current=base * (1 + (rng.random() - 0.5) * 2 * PRICE_BAND),
    change_24h=(rng.random() - 0.4) * 25,
    last_updated=utcnow(),
    source="synthetic",
    synthetic=True,
  )
