"""Contracts for external news and price sources.

Sources are best-effort: they may raise or time out on their own, and the
fetchers above them decide how to recover.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Protocol, Sequence

from crypto_sentiment.types import PriceQuote


@dataclass
class RawArticle:
  title: str
  content: str
  url: str
  source: str
  published_at: datetime


class NewsSource(Protocol):
  name: str

  async def fetch(self) -> List[RawArticle]: ...


class PriceSource(Protocol):
  name: str

  async def fetch(self, symbols: Sequence[str]) -> Dict[str, PriceQuote]:
    """Return quotes keyed by upper-case symbol. Missing symbols are simply absent."""
    ...
