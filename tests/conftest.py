"""
Root conftest: shared fixtures for the unit suite.

Every collaborator that would touch the network (news feeds, price APIs,
Redis, the AI provider) is replaced by a fake from ``fakes.py``.
"""

import pytest
from fakes import SAMPLE_ARTICLES, FakeDurableClient, StubNewsSource, StubPriceSource

from crypto_sentiment.cache.memory import MemoryCache
from crypto_sentiment.cache.tier import CacheTier
from crypto_sentiment.config import Settings
from crypto_sentiment.errors import UpstreamFailureError
from crypto_sentiment.fetchers.news import NewsFetcher
from crypto_sentiment.fetchers.prices import PriceFetcher
from crypto_sentiment.gateway import Gateway, build_gateway
from crypto_sentiment.orchestrator.orchestrator import Orchestrator
from crypto_sentiment.stages import default_stages

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cache() -> CacheTier:
  return CacheTier(memory=MemoryCache())


@pytest.fixture
def durable() -> FakeDurableClient:
  return FakeDurableClient()


@pytest.fixture
def news_source() -> StubNewsSource:
  return StubNewsSource(SAMPLE_ARTICLES)


@pytest.fixture
def price_source() -> StubPriceSource:
  return StubPriceSource({"BTC": 61000.0, "ETH": 3100.0, "SOL": 140.0})


@pytest.fixture
def make_orchestrator(cache):
  """Factory building an orchestrator over stub sources."""

  def _make(news_sources=None, primary=None, secondary=None, stages=None, provider=None, **kwargs) -> Orchestrator:
    news_sources = news_sources if news_sources is not None else [StubNewsSource(SAMPLE_ARTICLES)]
    primary = primary or StubPriceSource({"BTC": 61000.0, "ETH": 3100.0, "SOL": 140.0})
    return Orchestrator(
      news_fetcher=NewsFetcher(news_sources, cache, timeout=kwargs.pop("news_timeout", 1.0)),
      price_fetcher=PriceFetcher(primary, secondary, cache, timeout=kwargs.pop("price_timeout", 0.5)),
      stages=stages if stages is not None else default_stages(),
      cache=cache,
      provider=provider,
      **kwargs,
    )

  return _make


@pytest.fixture
def failing_news_source() -> StubNewsSource:
  return StubNewsSource(error=UpstreamFailureError("feed unreachable", source="stub-news"))


@pytest.fixture
def gateway(cache) -> Gateway:
  """Fully wired gateway over stub sources, with AI and redis off."""
  return build_gateway(
    Settings(),
    news_sources=[StubNewsSource(SAMPLE_ARTICLES)],
    primary_prices=StubPriceSource({"BTC": 61000.0, "ETH": 3100.0, "SOL": 140.0}),
    cache=cache,
  )
