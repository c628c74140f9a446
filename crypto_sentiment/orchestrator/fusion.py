"""Fusion of stage results into a verdict.

Everything here is a pure function of its inputs.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from crypto_sentiment.stages import lexicon
from crypto_sentiment.types import (
  BehavioralInsights,
  BehavioralResult,
  HeadlineSignal,
  MarketSignal,
  NewsItem,
  PriceQuote,
  RiskAssessment,
  Sentiment,
  SentimentResult,
  StageResultBase,
  Verdict,
  utcnow,
)

MARKET_SIGNAL_COUNT = 5
INFERRED_SIGNAL_CONFIDENCE = 0.7


@dataclass(frozen=True)
class FusionOutcome:
  sentiment: Sentiment
  confidence: float
  successful: int
  total: int
  weights: Dict[Sentiment, float] = field(default_factory=dict)


def fuse(results: Sequence[StageResultBase]) -> FusionOutcome:
  """Weighted vote of stage signals.

  Each non-degraded result adds ``confidence * source_importance`` to the
  bucket of its signal. The heaviest bucket wins; a tie or an empty vote is
  NEUTRAL. Confidence is the winner's share scaled by the fraction of
  stages that succeeded.
  """
  total = len(results)
  ok = [r for r in results if not r.degraded]
  weights = {s: 0.0 for s in Sentiment}
  for result in ok:
    weights[result.signal] += result.confidence * result.source_importance

  total_weight = sum(weights.values())
  if not total or total_weight <= 0:
    return FusionOutcome(sentiment=Sentiment.NEUTRAL, confidence=0.0, successful=len(ok), total=total, weights=weights)

  top = max(weights.values())
  leaders = [s for s, w in weights.items() if w == top]
  winner = leaders[0] if len(leaders) == 1 else Sentiment.NEUTRAL

  share = weights[winner] / total_weight
  confidence = round(share * len(ok) / total, 2)
  return FusionOutcome(sentiment=winner, confidence=confidence, successful=len(ok), total=total, weights=weights)


# ---------- Verdict sections ----------


def _find(results: Sequence[StageResultBase], kind: type) -> Optional[StageResultBase]:
  for result in results:
    if isinstance(result, kind) and not result.degraded:
      return result
  return None


def build_market_signals(news: Sequence[NewsItem], sentiment: Optional[SentimentResult]) -> List[MarketSignal]:
  """Signals for the top headlines, matched to the sentiment stage by headline."""
  by_headline: Dict[str, HeadlineSignal] = {s.headline: s for s in sentiment.signals} if sentiment else {}

  signals: List[MarketSignal] = []
  for item in news[:MARKET_SIGNAL_COUNT]:
    match = by_headline.get(item.title)
    if match is not None:
      signals.append(
        MarketSignal(
          headline=item.title,
          sentiment=match.sentiment,
          confidence=match.confidence,
          magnitude=match.magnitude,
          direction=match.direction,
          analysis=match.analysis,
          recommendation=match.recommendation,
          source=item.source,
          timestamp=item.published_at.isoformat(),
        )
      )
      continue

    value, direction = lexicon.infer_title_sentiment(item.title)
    signals.append(
      MarketSignal(
        headline=item.title,
        sentiment=value,
        confidence=INFERRED_SIGNAL_CONFIDENCE,
        magnitude=lexicon.magnitude(item.importance_score),
        direction=direction,
        analysis=f"Inferred from headline wording ({item.category})",
        recommendation="Monitor for confirmation",
        source=item.source,
        timestamp=item.published_at.isoformat(),
      )
    )
  return signals


def build_behavioral_insights(behavioral: Optional[BehavioralResult]) -> BehavioralInsights:
  if behavioral is None:
    return BehavioralInsights()
  return BehavioralInsights(
    whale_activity=behavioral.whale_activity,
    social_sentiment=behavioral.social_sentiment,
    influencer_alignment=behavioral.influencer_alignment,
    volume_patterns=behavioral.volume_patterns,
    retail_sentiment=behavioral.retail_sentiment,
  )


def assess_risk(signals: Sequence[MarketSignal], degraded: bool = False) -> RiskAssessment:
  high = sum(1 for s in signals if s.magnitude == "HIGH")
  bullish = sum(1 for s in signals if s.sentiment in ("BULLISH", "VERY_BULLISH"))
  bearish = sum(1 for s in signals if s.sentiment in ("BEARISH", "VERY_BEARISH"))

  level = "HIGH" if high > 2 else "MEDIUM" if high > 0 else "LOW"
  factors: List[str] = []
  if bearish > bullish:
    factors.append("negative_sentiment_majority")
  factors.extend(["crypto_market_volatility", "regulatory_uncertainty"])
  if degraded:
    factors.append("degraded_analysis")

  if level == "HIGH":
    mitigation = "Reduce position sizes and use tight stop-losses until high-impact news settles"
  else:
    mitigation = "Diversify holdings and size positions for normal crypto volatility"

  return RiskAssessment(
    level=level,
    factors=factors,
    mitigation=mitigation,
    probability=0.6,
    severity="MAJOR" if level == "HIGH" else "MODERATE",
  )


def recommend(sentiment: Sentiment, risk: RiskAssessment, query: str) -> List[str]:
  if sentiment == Sentiment.BULLISH:
    recs = [
      "Consider gradual position building on confirmed strength",
      "Watch for follow-through volume before adding exposure",
    ]
  elif sentiment == Sentiment.BEARISH:
    recs = [
      "Consider reducing exposure or hedging existing positions",
      "Wait for sentiment stabilisation before new entries",
    ]
  else:
    recs = [
      "Maintain current positions and wait for a clearer signal",
      "Use range-bound strategies while direction is unclear",
    ]

  if risk.level == "HIGH":
    recs.append("High-impact news detected: tighten risk management and avoid leverage")

  lowered = query.lower()
  if "bitcoin" in lowered or "btc" in lowered:
    recs.append("Track Bitcoin dominance for rotation signals into or out of altcoins")
  return recs


def build_verdict(
  *,
  query: str,
  news: Sequence[NewsItem],
  results: Sequence[StageResultBase],
  outcome: FusionOutcome,
  processing_time_ms: int,
  ai_model_used: str,
  prices: Optional[Mapping[str, PriceQuote]] = None,
) -> Verdict:
  signals = build_market_signals(news, _find(results, SentimentResult))  # type: ignore[arg-type]
  degraded = outcome.successful < outcome.total or any(q.synthetic for q in (prices or {}).values())
  risk = assess_risk(signals, degraded=degraded)
  return Verdict(
    overall_sentiment=outcome.sentiment,
    confidence_score=outcome.confidence,
    processing_time_ms=processing_time_ms,
    analysis_timestamp=utcnow().isoformat(),
    market_signals=signals,
    behavioral_insights=build_behavioral_insights(_find(results, BehavioralResult)),  # type: ignore[arg-type]
    risk_assessment=risk,
    actionable_recommendations=recommend(outcome.sentiment, risk, query),
    data_sources_count=len(news),
    ai_model_used=ai_model_used,
    successful_stages=outcome.successful,
    total_stages=outcome.total,
    degraded=degraded,
    price_context=dict(prices) if prices else None,
  )


def terminal_verdict(reason: str, processing_time_ms: int = 0, total_stages: int = 0) -> Verdict:
  """The structured verdict returned when the analysis could not run."""
  return Verdict(
    overall_sentiment=Sentiment.NEUTRAL,
    confidence_score=0.0,
    processing_time_ms=processing_time_ms,
    analysis_timestamp=utcnow().isoformat(),
    market_signals=[],
    behavioral_insights=BehavioralInsights(),
    risk_assessment=RiskAssessment(
      level="HIGH",
      factors=["analysis_error"],
      mitigation="Retry analysis or contact support",
      probability=1.0,
      severity="MAJOR",
    ),
    actionable_recommendations=[
      f"Analysis failed: {reason}",
      "Please try again with different parameters",
      "Contact support if the issue persists",
    ],
    data_sources_count=0,
    ai_model_used="error",
    successful_stages=0,
    total_stages=total_stages,
    degraded=True,
  )
