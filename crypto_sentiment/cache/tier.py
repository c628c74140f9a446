"""Two-tier cache with graceful degradation of the durable tier."""

import json
import time
from typing import Any, Callable, Dict, Iterable, Optional, Protocol

from crypto_sentiment.cache.memory import MemoryCache
from crypto_sentiment.utils.log import log_debug, log_info, log_warning


class DurableClient(Protocol):
  """Shared cache backend. Any method may raise."""

  async def get(self, key: str) -> Optional[str]: ...

  async def set(self, key: str, value: str) -> None: ...

  async def set_with_ttl(self, key: str, ttl: int, value: str) -> None: ...

  async def delete(self, *keys: str) -> int: ...

  async def keys(self, pattern: str = "*") -> list: ...


# ---------- Key namespaces ----------


def news_key(time_range: str) -> str:
  return f"news:{time_range}"


def prices_key(symbols: Iterable[str]) -> str:
  return "prices:" + ",".join(sorted(s.upper() for s in symbols))


def analysis_key(fingerprint: str) -> str:
  return f"analysis:{fingerprint}"


class CacheTier:
  """Read-through cache over a durable tier and an in-process tier.

  Operations go to the durable tier while it is healthy. The first durable
  error marks it unhealthy, and that operation plus every later one uses
  the in-process tier instead. While unhealthy, the next operation after
  ``reconnect_interval`` seconds probes the durable tier and restores it
  on success.

  Values must be JSON-serialisable.

  Args:
    memory: The in-process tier.
    durable: Optional shared backend (see ``RedisCacheClient``).
    reconnect_interval: Minimum seconds between reconnect probes.
    clock: Time source, in seconds.
  """

  def __init__(
    self,
    memory: Optional[MemoryCache] = None,
    durable: Optional[DurableClient] = None,
    reconnect_interval: float = 30.0,
    clock: Callable[[], float] = time.time,
  ) -> None:
    self.memory = memory or MemoryCache(clock=clock)
    self.durable = durable
    self.reconnect_interval = reconnect_interval
    self._clock = clock
    self._healthy = durable is not None
    self._last_probe = 0.0

  @property
  def durable_healthy(self) -> bool:
    return self.durable is not None and self._healthy

  # ---------- Lifecycle ----------

  async def connect(self) -> bool:
    """Probe the durable tier once at startup."""
    if self.durable is None:
      return False
    try:
      await self._probe()
      self._healthy = True
      log_info("Cache [redis] connected")
    except Exception as e:
      self._mark_unhealthy("connect", e)
    return self._healthy

  async def close(self) -> None:
    close = getattr(self.durable, "close", None)
    if close is not None:
      try:
        await close()
      except Exception as e:
        log_warning(f"Cache [redis] close failed: {e}")

  # ---------- Operations ----------

  async def get(self, key: str) -> Optional[Any]:
    if await self._durable_available():
      try:
        raw = await self.durable.get(key)  # type: ignore[union-attr]
      except Exception as e:
        self._mark_unhealthy("get", e)
      else:
        return await self._decode(key, raw)
    return self.memory.get(key)

  async def set(self, key: str, value: Any, ttl: int) -> None:
    if await self._durable_available():
      try:
        entry = json.dumps({"data": value, "timestamp": self._clock(), "ttl": ttl})
        await self.durable.set_with_ttl(key, ttl, entry)  # type: ignore[union-attr]
        return
      except Exception as e:
        self._mark_unhealthy("set", e)
    self.memory.set(key, value, ttl)

  async def delete(self, key: str) -> None:
    if await self._durable_available():
      try:
        await self.durable.delete(key)  # type: ignore[union-attr]
        return
      except Exception as e:
        self._mark_unhealthy("del", e)
    self.memory.delete(key)

  async def flush(self) -> None:
    """Drop every entry this gateway owns in both tiers."""
    if await self._durable_available():
      try:
        keys = await self.durable.keys("*")  # type: ignore[union-attr]
        if keys:
          await self.durable.delete(*keys)  # type: ignore[union-attr]
      except Exception as e:
        self._mark_unhealthy("flush", e)
    self.memory.flush()
    log_info("Cache flushed")

  def stats(self) -> Dict[str, Any]:
    return {
      "redis": self.durable is not None,
      "memory_keys": len(self.memory),
      "connected": self.durable_healthy,
    }

  # ---------- Internals ----------

  async def _decode(self, key: str, raw: Optional[str]) -> Optional[Any]:
    """Unwrap a durable entry. Unreadable entries are deleted and read as a miss."""
    if raw is None:
      return None
    try:
      entry = json.loads(raw)
      expired = self._clock() - float(entry["timestamp"]) > float(entry["ttl"])
      data = entry["data"]
    except (ValueError, TypeError, KeyError) as e:
      log_warning(f"Cache [redis] dropping unreadable entry {key}: {type(e).__name__}: {e}")
      try:
        await self.durable.delete(key)  # type: ignore[union-attr]
      except Exception as delete_error:
        self._mark_unhealthy("del", delete_error)
      return None
    if expired:
      log_debug(f"Cache [redis] entry expired: {key}", log_level=2)
      return None
    return data

  def _mark_unhealthy(self, op: str, error: Exception) -> None:
    if self._healthy:
      log_warning(f"Cache [redis] {op} failed, falling back to memory: {error}")
    else:
      log_debug(f"Cache [redis] still unavailable during {op}: {error}", log_level=2)
    self._healthy = False
    self._last_probe = self._clock()

  async def _durable_available(self) -> bool:
    if self.durable is None:
      return False
    if self._healthy:
      return True
    if self._clock() - self._last_probe < self.reconnect_interval:
      return False
    self._last_probe = self._clock()
    try:
      await self._probe()
    except Exception as e:
      log_debug(f"Cache [redis] reconnect probe failed: {e}", log_level=2)
      return False
    self._healthy = True
    log_info("Cache [redis] reconnected")
    return True

  async def _probe(self) -> None:
    ping = getattr(self.durable, "ping", None)
    if ping is not None:
      await ping()
    else:
      await self.durable.get("__ping__")  # type: ignore[union-attr]
