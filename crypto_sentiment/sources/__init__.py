from crypto_sentiment.sources.base import NewsSource, PriceSource, RawArticle
from crypto_sentiment.sources.binance import BinanceSource
from crypto_sentiment.sources.coingecko import CoinGeckoSource
from crypto_sentiment.sources.rss import RssSource

__all__ = ["BinanceSource", "CoinGeckoSource", "NewsSource", "PriceSource", "RawArticle", "RssSource"]
