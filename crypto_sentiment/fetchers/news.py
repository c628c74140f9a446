"""Resilient news fetcher.

All sources are queried concurrently under a single timeout. The raw pool
for a time range is cached; query filtering, dedup and ranking happen per
request.
"""

import asyncio
import re
from datetime import datetime, timedelta
from typing import Callable, List, Sequence

from crypto_sentiment.cache.tier import CacheTier, news_key
from crypto_sentiment.fetchers.synthetic import synthetic_news
from crypto_sentiment.sources.base import NewsSource, RawArticle
from crypto_sentiment.types import TIME_RANGE_HOURS, NewsItem, utcnow
from crypto_sentiment.utils.log import log_debug, log_info, log_warning
from crypto_sentiment.utils.symbols import mentioned_coins

HIGH_IMPACT_TERMS = [
  "etf",
  "regulation",
  "ban",
  "hack",
  "approval",
  "lawsuit",
  "institutional",
  "adoption",
  "partnership",
  "upgrade",
  "halving",
  "bankruptcy",
]
PRICE_TERMS = ["surge", "crash", "rally", "plunge", "soar", "drop", "all-time high", "dump", "pump", "breakout"]
KEY_ENTITIES = ["sec", "fed", "blackrock", "tesla", "microstrategy"]

_CATEGORIES = [
  ("regulatory", ["sec", "regulat", "law", "compliance", "government", "ban", "legal", "court"]),
  ("market", ["price", "trading", "market", "rally", "surge", "crash", "bull", "bear", "etf"]),
  ("technology", ["upgrade", "protocol", "network", "blockchain", "defi", "layer", "fork", "smart contract"]),
  ("adoption", ["adoption", "partnership", "payment", "accept", "institutional", "integrat"]),
]

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


def _contains(text: str, term: str) -> bool:
  return re.search(rf"\b{re.escape(term)}", text) is not None


def score_importance(text: str) -> float:
  lowered = text.lower()
  score = 0.5
  score += 0.15 * sum(1 for t in HIGH_IMPACT_TERMS if _contains(lowered, t))
  score += 0.1 * sum(1 for t in PRICE_TERMS if _contains(lowered, t))
  score += 0.1 * sum(1 for t in KEY_ENTITIES if _contains(lowered, t))
  return min(score, 1.0)


def categorize(text: str) -> str:
  lowered = text.lower()
  for category, terms in _CATEGORIES:
    if any(_contains(lowered, t) for t in terms):
      return category
  return "general"


def enrich(article: RawArticle) -> NewsItem:
  text = f"{article.title} {article.content}"
  return NewsItem(
    title=article.title,
    content=article.content,
    url=article.url,
    source=article.source,
    published_at=article.published_at,
    mentioned_coins=mentioned_coins(text),
    category=categorize(text),
    importance_score=score_importance(text),
  )


def title_fingerprint(title: str) -> str:
  """First five words of the normalised title; near-duplicates share it."""
  return " ".join(_NON_ALNUM.sub("", title.lower()).split()[:5])


def matches_query(item: NewsItem, query: str) -> bool:
  query = query.strip().lower()
  if query == "latest":
    return True
  terms = [t for t in query.split() if len(t) > 2]
  if not terms:
    return True
  haystack = f"{item.title} {item.content}".lower()
  return any(t in haystack for t in terms)


def dedupe(items: Sequence[NewsItem]) -> List[NewsItem]:
  seen = set()
  unique: List[NewsItem] = []
  for item in items:
    key = title_fingerprint(item.title)
    if key in seen:
      continue
    seen.add(key)
    unique.append(item)
  return unique


def rank(items: Sequence[NewsItem], now: datetime, window_hours: float = 24.0) -> List[NewsItem]:
  """Order by ``0.7 * importance + 0.3 * recency``."""

  def score(item: NewsItem) -> float:
    age_hours = max((now - item.published_at).total_seconds() / 3600.0, 0.0)
    recency = max(0.0, 1.0 - age_hours / window_hours)
    return item.importance_score * 0.7 + recency * 0.3

  return sorted(items, key=score, reverse=True)


class NewsFetcher:
  """Aggregates news from every configured source.

  Args:
    sources: News sources, queried concurrently.
    cache: Cache tier used for the per-time-range pool.
    timeout: Bound on the whole fan-out, in seconds. Work still running at
      the deadline is cancelled.
    max_age_hours: TTL of the cached pool.
    synthetic_fallback: Serve the fixed synthetic set when no real item is
      available. Off by default, so an outage of every source yields the
      terminal degraded verdict (HIGH risk, no signals) rather than an
      analysis of template headlines presented as news.
    clock: Returns the current UTC time.
  """

  def __init__(
    self,
    sources: Sequence[NewsSource],
    cache: CacheTier,
    timeout: float = 8.0,
    max_age_hours: int = 24,
    synthetic_fallback: bool = False,
    clock: Callable[[], datetime] = utcnow,
  ) -> None:
    self.sources = list(sources)
    self.cache = cache
    self.timeout = timeout
    self.max_age_hours = max_age_hours
    self.synthetic_fallback = synthetic_fallback
    self._clock = clock

  async def fetch(self, query: str, time_range: str, max_items: int) -> List[NewsItem]:
    """Return up to ``max_items`` relevant, de-duplicated, ranked items.

    Never raises for upstream problems; an empty list means nothing usable
    was found.
    """
    now = self._clock()
    pool = await self._pool(time_range)

    if not pool:
      if self.synthetic_fallback:
        log_warning("NewsFetcher serving synthetic news")
        return rank(synthetic_news(now=now), now)[:max_items]
      return []

    cutoff = now - timedelta(hours=TIME_RANGE_HOURS.get(time_range, self.max_age_hours))
    recent = [item for item in pool if item.published_at >= cutoff]
    relevant = [item for item in recent if matches_query(item, query)]
    ranked = rank(dedupe(relevant), now, window_hours=float(self.max_age_hours))
    log_debug(f"NewsFetcher pool={len(pool)} recent={len(recent)} relevant={len(relevant)} returned={min(len(ranked), max_items)}")
    return ranked[:max_items]

  async def _pool(self, time_range: str) -> List[NewsItem]:
    key = news_key(time_range)
    cached = await self.cache.get(key)
    if cached is not None:
      log_debug(f"NewsFetcher cache hit: {key}", log_level=2)
      return [NewsItem.model_validate(item) for item in cached]

    try:
      items = await asyncio.wait_for(self._gather(), timeout=self.timeout)
    except asyncio.TimeoutError:
      log_warning(f"NewsFetcher timed out after {self.timeout}s, sources cancelled")
      return []

    if items:
      await self.cache.set(key, [item.model_dump(mode="json") for item in items], self.max_age_hours * 3600)
    return items

  async def _gather(self) -> List[NewsItem]:
    if not self.sources:
      return []
    results = await asyncio.gather(*(source.fetch() for source in self.sources), return_exceptions=True)

    items: List[NewsItem] = []
    failed = 0
    for source, result in zip(self.sources, results):
      if isinstance(result, BaseException):
        failed += 1
        log_warning(f"NewsFetcher source '{getattr(source, 'name', source)}' failed: {result}")
        continue
      items.extend(enrich(article) for article in result)

    log_info(f"NewsFetcher collected {len(items)} items from {len(self.sources) - failed}/{len(self.sources)} sources")
    return items

