"""Unit tests for the RSS, CoinGecko and Binance sources.

HTTP is served by ``httpx.MockTransport``; nothing leaves the process.
"""

import httpx
import pytest

from crypto_sentiment.cache import CacheTier, MemoryCache
from crypto_sentiment.errors import UpstreamFailureError
from crypto_sentiment.sources.binance import BinanceSource
from crypto_sentiment.sources.coingecko import SYMBOL_MAPPING_KEY, CoinGeckoSource
from crypto_sentiment.sources.rss import RssSource, source_name

RSS = """<?xml version="1.0"?>
<rss version="2.0"><channel><title>Feed</title>
<item>
  <title>Bitcoin &lt;b&gt;rallies&lt;/b&gt;</title>
  <link>https://news.test/1</link>
  <description>&lt;p&gt;Price up on ETF demand&lt;/p&gt;</description>
  <pubDate>Sat, 01 Jun 2024 10:00:00 GMT</pubDate>
</item>
<item>
  <title></title>
  <link>https://news.test/2</link>
</item>
</channel></rss>"""


def client_for(handler) -> httpx.AsyncClient:
  return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.unit
class TestRssSource:
  """Tests for RssSource."""

  def test_source_names(self):
    assert source_name("https://www.coindesk.com/arc/outboundfeeds/rss/") == "CoinDesk"
    assert source_name("https://www.reddit.com/r/Bitcoin/.rss") == "Reddit r/Bitcoin"
    assert source_name("https://feeds.example.org/rss") == "feeds.example.org"

  @pytest.mark.asyncio
  async def test_parses_entries(self):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
      seen["ua"] = request.headers["user-agent"]
      return httpx.Response(200, text=RSS)

    async with client_for(handler) as client:
      articles = await RssSource("https://www.coindesk.com/rss", client=client).fetch()

    assert len(articles) == 1
    article = articles[0]
    assert article.title == "Bitcoin rallies"
    assert article.content == "Price up on ETF demand"
    assert article.source == "CoinDesk"
    assert article.published_at.year == 2024
    assert article.published_at.tzinfo is not None
    assert seen["ua"].startswith("crypto-sentiment-gateway")

  @pytest.mark.asyncio
  async def test_http_error(self):
    async with client_for(lambda request: httpx.Response(503)) as client:
      with pytest.raises(UpstreamFailureError) as exc_info:
        await RssSource("https://decrypt.co/feed", client=client).fetch()
    assert exc_info.value.source == "Decrypt"

  @pytest.mark.asyncio
  async def test_garbage_feed(self):
    async with client_for(lambda request: httpx.Response(200, text="<<<not xml")) as client:
      with pytest.raises(UpstreamFailureError, match="Unparsable"):
        await RssSource("https://decrypt.co/feed", client=client).fetch()


@pytest.mark.unit
class TestCoinGeckoSource:
  """Tests for CoinGeckoSource."""

  @pytest.mark.asyncio
  async def test_simple_price(self):
    def handler(request: httpx.Request) -> httpx.Response:
      assert request.url.path.endswith("/simple/price")
      assert request.headers["x-cg-demo-api-key"] == "demo"
      return httpx.Response(
        200,
        json={
          "bitcoin": {"usd": 61000, "usd_24h_change": 2.5, "usd_market_cap": 1.2e12, "usd_24h_vol": 3e10},
          "ethereum": {"usd": None},
        },
      )

    async with client_for(handler) as client:
      quotes = await CoinGeckoSource(client, base_url="https://cg.test/api/v3", api_key="demo").fetch(["BTC", "ETH"])

    assert list(quotes) == ["BTC"]
    assert quotes["BTC"].current == 61000.0
    assert quotes["BTC"].change_24h == 2.5
    assert quotes["BTC"].source == "coingecko"

  @pytest.mark.asyncio
  async def test_symbol_mapping_cached(self):
    """Unknown tickers load /coins/list once and cache the mapping."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
      calls.append(request.url.path)
      if request.url.path.endswith("/coins/list"):
        return httpx.Response(200, json=[{"id": "pepe", "symbol": "pepe"}, {"id": "pepe-fork", "symbol": "pepe"}])
      return httpx.Response(200, json={"pepe": {"usd": 0.00001}})

    cache = CacheTier(memory=MemoryCache())
    async with client_for(handler) as client:
      source = CoinGeckoSource(client, base_url="https://cg.test", cache=cache)
      await source.fetch(["PEPE"])
      quotes = await source.fetch(["PEPE"])

    assert quotes["PEPE"].current == 0.00001
    assert calls.count("/coins/list") == 1
    assert (await cache.get(SYMBOL_MAPPING_KEY))["PEPE"] == "pepe"

  @pytest.mark.asyncio
  async def test_failure(self):
    async with client_for(lambda request: httpx.Response(429)) as client:
      with pytest.raises(UpstreamFailureError):
        await CoinGeckoSource(client, base_url="https://cg.test").fetch(["BTC"])


@pytest.mark.unit
class TestBinanceSource:
  """Tests for BinanceSource."""

  @pytest.mark.asyncio
  async def test_tickers(self):
    def handler(request: httpx.Request) -> httpx.Response:
      symbol = request.url.params["symbol"]
      if symbol == "BTCUSDT":
        return httpx.Response(200, json={"lastPrice": "60500.5", "priceChangePercent": "-1.2", "quoteVolume": "1000"})
      return httpx.Response(400, json={"code": -1121, "msg": "Invalid symbol."})

    async with client_for(handler) as client:
      quotes = await BinanceSource(client, base_url="https://bn.test/api/v3").fetch(["BTC", "NOPE"])

    assert list(quotes) == ["BTC"]
    assert quotes["BTC"].current == 60500.5
    assert quotes["BTC"].change_24h == -1.2
    assert quotes["BTC"].source == "binance"

  @pytest.mark.asyncio
  async def test_all_requests_fail(self):
    async with client_for(lambda request: httpx.Response(500)) as client:
      with pytest.raises(UpstreamFailureError):
        await BinanceSource(client, base_url="https://bn.test").fetch(["BTC", "ETH"])
