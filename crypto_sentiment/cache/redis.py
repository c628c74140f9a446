"""Redis client for the durable cache tier."""

from typing import Any, List, Optional

from crypto_sentiment.errors import CacheBackendError
from crypto_sentiment.utils.log import log_debug


class RedisCacheClient:
  """Async Redis client scoped to one key prefix.

  Exposes the small surface the cache tier needs (get/set/set_with_ttl/
  delete/keys/ping). Every Redis failure is re-raised as
  ``CacheBackendError``.
  """

  def __init__(self, redis_url: str = "redis://localhost:6379", prefix: str = "crypto-sentiment:", db: int = 0):
    self.redis_url = redis_url
    self.prefix = prefix.rstrip(":")
    self.db = db
    self._client: Any = None
    self._initialized = False

  # ---------- Lifecycle ----------

  async def initialize(self) -> None:
    if self._initialized:
      return

    import redis.asyncio as aioredis

    self._client = aioredis.from_url(self.redis_url, db=self.db, decode_responses=True)
    self._initialized = True
    log_debug("RedisCacheClient initialized", log_level=2)

  async def close(self) -> None:
    if self._client:
      await self._client.aclose()
      self._client = None
      self._initialized = False

  async def _ensure_initialized(self) -> None:
    if not self._initialized:
      await self.initialize()

  # ---------- Key helpers ----------

  def _key(self, *parts: str) -> str:
    return ":".join([self.prefix, *parts])

  def _strip(self, full_key: str) -> str:
    return full_key[len(self.prefix) + 1 :]

  # ---------- Operations ----------

  async def ping(self) -> bool:
    await self._ensure_initialized()
    try:
      return bool(await self._client.ping())
    except Exception as e:
      raise CacheBackendError(f"Redis ping failed: {e}", original_error=e) from e

  async def get(self, key: str) -> Optional[str]:
    await self._ensure_initialized()
    try:
      return await self._client.get(self._key(key))
    except Exception as e:
      raise CacheBackendError(f"Redis GET failed: {e}", original_error=e) from e

  async def set(self, key: str, value: str) -> None:
    await self._ensure_initialized()
    try:
      await self._client.set(self._key(key), value)
    except Exception as e:
      raise CacheBackendError(f"Redis SET failed: {e}", original_error=e) from e

  async def set_with_ttl(self, key: str, ttl: int, value: str) -> None:
    await self._ensure_initialized()
    try:
      await self._client.setex(self._key(key), ttl, value)
    except Exception as e:
      raise CacheBackendError(f"Redis SETEX failed: {e}", original_error=e) from e

  async def delete(self, *keys: str) -> int:
    if not keys:
      return 0
    await self._ensure_initialized()
    try:
      return int(await self._client.delete(*[self._key(k) for k in keys]))
    except Exception as e:
      raise CacheBackendError(f"Redis DEL failed: {e}", original_error=e) from e

  async def keys(self, pattern: str = "*") -> List[str]:
    """Return matching keys with the prefix removed."""
    await self._ensure_initialized()
    try:
      found = [k async for k in self._client.scan_iter(match=self._key(pattern))]
    except Exception as e:
      raise CacheBackendError(f"Redis SCAN failed: {e}", original_error=e) from e
    return [self._strip(k) for k in found]
