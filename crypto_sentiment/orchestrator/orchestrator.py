"""Invocation orchestrator.

Drives one analysis through fetch, fan-out, fusion and cache write. All
collaborators are injected at construction so tests can swap any of them.
"""

import asyncio
import time
from collections import Counter
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from crypto_sentiment.ai.provider import AIProvider
from crypto_sentiment.cache.tier import CacheTier, analysis_key
from crypto_sentiment.errors import TerminalFetchFailure
from crypto_sentiment.fetchers.news import NewsFetcher
from crypto_sentiment.fetchers.prices import PriceFetcher
from crypto_sentiment.orchestrator.events import ProgressEmitter
from crypto_sentiment.orchestrator.fusion import build_verdict, fuse, terminal_verdict
from crypto_sentiment.stages.base import Stage, StageContext
from crypto_sentiment.types import Invocation, NewsItem, PriceQuote, StageResultBase, Verdict
from crypto_sentiment.utils.log import log_debug, log_error, log_info, log_warning

MAX_COINS = 10
DEFAULT_COINS = ["BTC"]

# Stage completions are spread over this progress window.
_FAN_OUT_START = 35
_FAN_OUT_END = 80


class Phase(str, Enum):
  INIT = "INIT"
  FETCH_NEWS = "FETCH_NEWS"
  FETCH_PRICES = "FETCH_PRICES"
  FAN_OUT_STAGES = "FAN_OUT_STAGES"
  AGGREGATE = "AGGREGATE"
  CACHE_WRITE = "CACHE_WRITE"
  DONE = "DONE"
  FAILED = "FAILED"


def resolve_coins(invocation: Invocation, news: Sequence[NewsItem]) -> List[str]:
  """Coins to price: the requested ones, else the most mentioned in the news."""
  if invocation.focus_coins:
    return list(invocation.focus_coins)
  counts = Counter(coin for item in news for coin in item.mentioned_coins)
  coins = [coin for coin, _ in counts.most_common(MAX_COINS)]
  return coins or list(DEFAULT_COINS)


class _Run:
  """Per-invocation bookkeeping."""

  def __init__(self, request_id: Optional[str]) -> None:
    self.request_id = request_id or "-"
    self.phase = Phase.INIT
    self.started = time.perf_counter()

  def enter(self, phase: Phase) -> None:
    log_debug(f"Orchestrator [{self.request_id}] {self.phase.value} -> {phase.value}", log_level=2)
    self.phase = phase

  @property
  def elapsed_ms(self) -> int:
    return int((time.perf_counter() - self.started) * 1000)


class Orchestrator:
  """Coordinates one invocation end to end.

  ``execute`` always resolves to a Verdict. Zero news items after every
  fallback is the single fatal condition; it, and any unexpected error,
  yield the terminal degraded verdict instead of an exception.

  Args:
    news_fetcher: Resilient news fetcher.
    price_fetcher: Resilient price fetcher.
    stages: Stage runners fanned out concurrently.
    cache: Cache tier for verdicts.
    provider: Optional AI provider handed to the stages.
    analysis_ttl: Seconds a verdict stays cached.
    metrics: Optional object with ``record_cache(hit: bool)``.
  """

  def __init__(
    self,
    news_fetcher: NewsFetcher,
    price_fetcher: PriceFetcher,
    stages: Sequence[Stage],
    cache: CacheTier,
    provider: Optional[AIProvider] = None,
    analysis_ttl: int = 900,
    metrics: Any = None,
  ) -> None:
    self.news_fetcher = news_fetcher
    self.price_fetcher = price_fetcher
    self.stages = list(stages)
    self.cache = cache
    self.provider = provider
    self.analysis_ttl = analysis_ttl
    self.metrics = metrics

  @property
  def model_name(self) -> str:
    return self.provider.model if self.provider is not None else "heuristic"

  async def execute(
    self,
    invocation: Invocation,
    emitter: Optional[ProgressEmitter] = None,
    request_id: Optional[str] = None,
  ) -> Verdict:
    """Run the analysis for a validated invocation.

    Args:
        invocation: The request.
        emitter: Receives progress checkpoints. Optional.
        request_id: Correlation id for logs and progress events.

    Returns:
        The cached or freshly produced verdict, or a terminal degraded one.
    """
    emitter = emitter or ProgressEmitter(request_id)
    run = _Run(request_id or emitter.request_id)
    try:
      return await self._execute(invocation, emitter, run)
    except TerminalFetchFailure as e:
      run.enter(Phase.FAILED)
      log_warning(f"Orchestrator [{run.request_id}] {e}")
      await emitter.emit("Analysis failed: no news available", 100)
      return terminal_verdict(str(e), run.elapsed_ms, total_stages=len(self.stages))
    except asyncio.CancelledError:
      raise
    except Exception as e:
      run.enter(Phase.FAILED)
      log_error(f"Orchestrator [{run.request_id}] unexpected failure in {type(e).__name__}: {e}")
      await emitter.emit("Analysis failed", 100)
      return terminal_verdict(str(e), run.elapsed_ms, total_stages=len(self.stages))

  async def _execute(self, invocation: Invocation, emitter: ProgressEmitter, run: _Run) -> Verdict:
    await emitter.emit("Initializing analysis", 5)
    key = analysis_key(invocation.fingerprint())

    cached = await self.cache.get(key)
    if self.metrics is not None:
      self.metrics.record_cache(cached is not None)
    if cached is not None:
      log_debug(f"Orchestrator [{run.request_id}] cache hit {key}")
      run.enter(Phase.DONE)
      await emitter.emit("Analysis complete (cached)", 100)
      return Verdict.model_validate(cached)

    # ---------- News ----------
    run.enter(Phase.FETCH_NEWS)
    await emitter.emit("Aggregating news", 10)
    news = await self.news_fetcher.fetch(invocation.query, invocation.time_range, invocation.max_items)
    if not news:
      raise TerminalFetchFailure()
    await emitter.emit(f"Collected {len(news)} news items", 20)

    coins = resolve_coins(invocation, news)

    # ---------- Prices ----------
    prices: Dict[str, PriceQuote] = {}
    if invocation.include_prices:
      run.enter(Phase.FETCH_PRICES)
      await emitter.emit("Fetching prices", 25)
      prices = await self.price_fetcher.fetch(coins)
      await emitter.emit(f"Fetched prices for {len(prices)} coins", 30)

    # ---------- Stages ----------
    run.enter(Phase.FAN_OUT_STAGES)
    await emitter.emit("Running analysis stages", _FAN_OUT_START)
    context = StageContext(invocation=invocation, coins=coins, prices=prices, provider=self.provider)
    results = await self._fan_out(news, context, emitter)

    # ---------- Fusion ----------
    run.enter(Phase.AGGREGATE)
    await emitter.emit("Aggregating results", 85)
    outcome = fuse(results)
    verdict = build_verdict(
      query=invocation.query,
      news=news,
      results=results,
      outcome=outcome,
      processing_time_ms=run.elapsed_ms,
      ai_model_used=self.model_name,
      prices=prices if invocation.include_prices else None,
    )

    # ---------- Cache ----------
    run.enter(Phase.CACHE_WRITE)
    await emitter.emit("Caching results", 95)
    await self.cache.set(key, verdict.model_dump(mode="json"), self.analysis_ttl)

    run.enter(Phase.DONE)
    await emitter.emit("Analysis complete", 100)
    log_info(
      f"Orchestrator [{run.request_id}] {verdict.overall_sentiment.value} "
      f"confidence={verdict.confidence_score} stages={outcome.successful}/{outcome.total} in {verdict.processing_time_ms}ms"
    )
    return verdict

  async def _fan_out(self, news: List[NewsItem], context: StageContext, emitter: ProgressEmitter) -> List[StageResultBase]:
    total = len(self.stages)
    completed = 0

    async def run_stage(stage: Stage) -> StageResultBase:
      nonlocal completed
      result = await stage.analyze(news, context)
      completed += 1
      progress = _FAN_OUT_START + round((_FAN_OUT_END - _FAN_OUT_START) * completed / total)
      await emitter.emit(f"{stage.name} analysis complete", progress)
      return result

    settled = await asyncio.gather(*(run_stage(stage) for stage in self.stages), return_exceptions=True)

    results: List[StageResultBase] = []
    for stage, outcome in zip(self.stages, settled):
      if isinstance(outcome, asyncio.CancelledError):
        raise outcome
      if isinstance(outcome, BaseException):
        log_warning(f"Stage [{stage.name}] escaped its contract: {outcome}")
        results.append(stage.neutral(f"{type(outcome).__name__}: {outcome}"))
      else:
        results.append(outcome)
    return results
