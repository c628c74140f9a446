from crypto_sentiment.fetchers.news import NewsFetcher
from crypto_sentiment.fetchers.prices import PriceFetcher
from crypto_sentiment.fetchers.synthetic import synthetic_news, synthetic_quote

__all__ = ["NewsFetcher", "PriceFetcher", "synthetic_news", "synthetic_quote"]
