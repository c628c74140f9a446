"""Composition root: builds every component once and wires them together."""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

import httpx

from crypto_sentiment.adapters.websocket import WebSocketAdapter
from crypto_sentiment.ai.provider import AIProvider, OpenRouterProvider
from crypto_sentiment.cache.memory import MemoryCache
from crypto_sentiment.cache.redis import RedisCacheClient
from crypto_sentiment.cache.tier import CacheTier
from crypto_sentiment.config import Settings
from crypto_sentiment.fetchers.news import NewsFetcher
from crypto_sentiment.fetchers.prices import PriceFetcher
from crypto_sentiment.metrics import Metrics
from crypto_sentiment.orchestrator.orchestrator import Orchestrator
from crypto_sentiment.protocol.tool import ToolDispatcher
from crypto_sentiment.sources.base import NewsSource, PriceSource
from crypto_sentiment.sources.binance import BinanceSource
from crypto_sentiment.sources.coingecko import CoinGeckoSource
from crypto_sentiment.sources.rss import RssSource
from crypto_sentiment.stages import Stage, default_stages
from crypto_sentiment.utils.log import log_debug, log_info

# Per-source bound; the fetchers race a tighter bound around the whole fan-out.
_SOURCE_TIMEOUT = 10.0


@dataclass
class Gateway:
  settings: Settings
  cache: CacheTier
  orchestrator: Orchestrator
  dispatcher: ToolDispatcher
  websocket: WebSocketAdapter
  metrics: Metrics
  provider: Optional[AIProvider] = None
  http_client: Optional[httpx.AsyncClient] = None
  _closeables: List[Any] = field(default_factory=list)

  async def start(self) -> None:
    await self.cache.connect()

  async def close(self) -> None:
    await self.websocket.stop_heartbeat()
    await self.websocket.close_all()
    await self.cache.close()
    for resource in self._closeables:
      await resource.close()
    if self.http_client is not None:
      await self.http_client.aclose()
    log_debug("Gateway closed", log_level=2)


def build_gateway(
  settings: Optional[Settings] = None,
  *,
  news_sources: Optional[Sequence[NewsSource]] = None,
  primary_prices: Optional[PriceSource] = None,
  secondary_prices: Optional[PriceSource] = None,
  stages: Optional[Sequence[Stage]] = None,
  cache: Optional[CacheTier] = None,
  provider: Optional[AIProvider] = None,
) -> Gateway:
  """Build a gateway from settings.

  Any collaborator may be passed in to replace the one built from settings.
  """
  settings = settings or Settings()
  metrics = Metrics()
  closeables: List[Any] = []

  if cache is None:
    durable = None
    if settings.cache.redis_enabled:
      durable = RedisCacheClient(settings.cache.redis_url, prefix=settings.cache.prefix, db=settings.cache.redis_db)
    cache = CacheTier(
      memory=MemoryCache(cleanup_every=settings.cache.cleanup_every),
      durable=durable,
      reconnect_interval=settings.cache.reconnect_interval,
    )

  http_client: Optional[httpx.AsyncClient] = None
  if news_sources is None or primary_prices is None:
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(_SOURCE_TIMEOUT), follow_redirects=True)

  if news_sources is None:
    feeds = settings.news.rss_feeds + settings.news.reddit_feeds
    news_sources = [RssSource(url, client=http_client, timeout=settings.news.timeout) for url in feeds]

  if primary_prices is None:
    primary_prices = CoinGeckoSource(
      http_client,  # type: ignore[arg-type]
      base_url=settings.prices.coingecko_url,
      api_key=settings.prices.coingecko_api_key,
      cache=cache,
    )
    if secondary_prices is None:
      secondary_prices = BinanceSource(http_client, base_url=settings.prices.binance_url)  # type: ignore[arg-type]

  if provider is None and settings.ai.enabled:
    openrouter = OpenRouterProvider(settings.ai)
    closeables.append(openrouter)
    provider = openrouter

  orchestrator = Orchestrator(
    news_fetcher=NewsFetcher(
      news_sources,
      cache,
      timeout=settings.news.timeout,
      max_age_hours=settings.news.max_age_hours,
      synthetic_fallback=settings.news.synthetic_fallback,
    ),
    price_fetcher=PriceFetcher(
      primary_prices,
      secondary_prices,
      cache,
      timeout=settings.prices.timeout,
      cache_ttl=settings.prices.cache_ttl,
    ),
    stages=list(stages) if stages is not None else default_stages(),
    cache=cache,
    provider=provider,
    analysis_ttl=settings.analysis.cache_ttl,
    metrics=metrics,
  )
  dispatcher = ToolDispatcher(orchestrator, metrics=metrics)
  websocket = WebSocketAdapter(
    dispatcher,
    heartbeat_interval=settings.server.heartbeat_interval,
    stale_after=settings.server.stale_after,
  )

  log_info(
    f"Gateway built: {len(news_sources)} news sources, stages={len(orchestrator.stages)}, "
    f"redis={'on' if cache.durable is not None else 'off'}, ai={orchestrator.model_name}"
  )
  return Gateway(
    settings=settings,
    cache=cache,
    orchestrator=orchestrator,
    dispatcher=dispatcher,
    websocket=websocket,
    metrics=metrics,
    provider=provider,
    http_client=http_client,
    _closeables=closeables,
  )
