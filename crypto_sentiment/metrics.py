"""In-process request counters exposed on ``/metrics`` and ``/status``."""

import time
from collections import Counter
from typing import Any, Dict

from crypto_sentiment.utils.log import log_debug


class Metrics:
  def __init__(self) -> None:
    self.started_at = time.time()
    self.requests_total = 0
    self.errors_total = 0
    self.by_transport: Counter = Counter()
    self.cache_hits = 0
    self.cache_misses = 0
    self._latency_ms_total = 0.0

  def record_request(self, transport: str, duration_ms: float, error: bool = False) -> None:
    self.requests_total += 1
    self.by_transport[transport] += 1
    self._latency_ms_total += duration_ms
    if error:
      self.errors_total += 1
    log_debug(f"Metrics [{transport}] {duration_ms:.1f}ms error={error}", log_level=2)

  def record_cache(self, hit: bool) -> None:
    if hit:
      self.cache_hits += 1
    else:
      self.cache_misses += 1

  @property
  def uptime_seconds(self) -> float:
    return time.time() - self.started_at

  def snapshot(self) -> Dict[str, Any]:
    return {
      "requests_total": self.requests_total,
      "requests_by_transport": dict(self.by_transport),
      "errors_total": self.errors_total,
      "cache_hits": self.cache_hits,
      "cache_misses": self.cache_misses,
      "average_latency_ms": round(self._latency_ms_total / self.requests_total, 2) if self.requests_total else 0.0,
      "uptime_seconds": round(self.uptime_seconds, 1),
    }
