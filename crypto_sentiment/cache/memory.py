"""In-process cache tier backed by a plain dict."""

import time
from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from crypto_sentiment.utils.log import log_debug


@dataclass
class CacheEntry:
  data: Any
  timestamp: float
  ttl: int

  def expired(self, now: float) -> bool:
    return now - self.timestamp > self.ttl


class MemoryCache:
  """Fast tier. Always available, lost on exit.

  Expiry is checked on read. Every ``cleanup_every`` writes an opportunistic
  sweep drops whatever has expired in the meantime.
  """

  def __init__(self, cleanup_every: int = 100, clock: Callable[[], float] = time.time) -> None:
    self._entries: Dict[str, CacheEntry] = {}
    self._cleanup_every = cleanup_every
    self._clock = clock
    self._writes = 0

  def get(self, key: str) -> Optional[Any]:
    entry = self._entries.get(key)
    if entry is None:
      return None
    if entry.expired(self._clock()):
      del self._entries[key]
      return None
    return deepcopy(entry.data)

  def set(self, key: str, value: Any, ttl: int) -> None:
    self._entries[key] = CacheEntry(data=deepcopy(value), timestamp=self._clock(), ttl=ttl)
    self._writes += 1
    if self._writes % self._cleanup_every == 0:
      self.cleanup()

  def delete(self, key: str) -> bool:
    return self._entries.pop(key, None) is not None

  def flush(self) -> None:
    self._entries.clear()

  def cleanup(self) -> int:
    now = self._clock()
    expired = [k for k, entry in self._entries.items() if entry.expired(now)]
    for key in expired:
      del self._entries[key]
    if expired:
      log_debug(f"Cache [memory] cleaned up {len(expired)} expired entries", log_level=2)
    return len(expired)

  def keys(self) -> List[str]:
    return list(self._entries)

  def __len__(self) -> int:
    return len(self._entries)
