"""Stage runner contract.

A stage turns the fetched corpus into one typed result. ``analyze`` never
raises: failures inside ``_run`` produce the stage's neutral, degraded
result instead.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Type

from crypto_sentiment.ai.provider import AIProvider
from crypto_sentiment.types import Invocation, NewsItem, PriceQuote, StageResultBase
from crypto_sentiment.utils.log import log_debug, log_warning


@dataclass
class StageContext:
  """Everything a stage may read besides the news corpus."""

  invocation: Invocation
  coins: List[str] = field(default_factory=list)
  prices: Dict[str, PriceQuote] = field(default_factory=dict)
  provider: Optional[AIProvider] = None


def mean_importance(items: Sequence[NewsItem]) -> float:
  if not items:
    return 0.0
  return sum(item.importance_score for item in items) / len(items)


class Stage(ABC):
  """Base class for analysis stages."""

  name: str = "stage"
  result_type: Type[StageResultBase] = StageResultBase

  async def analyze(self, news: Sequence[NewsItem], context: StageContext) -> StageResultBase:
    try:
      result = await self._run(list(news), context)
    except asyncio.CancelledError:
      raise
    except Exception as e:
      log_warning(f"Stage [{self.name}] failed, returning neutral result: {e}")
      return self.neutral(f"{type(e).__name__}: {e}")
    log_debug(f"Stage [{self.name}] signal={result.signal.value} confidence={result.confidence:.2f}", log_level=2)
    return result

  def neutral(self, error: Optional[str] = None) -> StageResultBase:
    return self.result_type(confidence=0.1, source_importance=0.0, degraded=True, error=error)

  @abstractmethod
  async def _run(self, news: List[NewsItem], context: StageContext) -> StageResultBase:
    raise NotImplementedError
