from crypto_sentiment.cache.memory import CacheEntry, MemoryCache
from crypto_sentiment.cache.redis import RedisCacheClient
from crypto_sentiment.cache.tier import CacheTier, DurableClient, analysis_key, news_key, prices_key

__all__ = [
  "CacheEntry",
  "CacheTier",
  "DurableClient",
  "MemoryCache",
  "RedisCacheClient",
  "analysis_key",
  "news_key",
  "prices_key",
]
