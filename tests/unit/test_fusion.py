"""Unit tests for fusion of stage results into a verdict. No network calls."""

import pytest

from crypto_sentiment.orchestrator.fusion import (
  assess_risk,
  build_market_signals,
  build_verdict,
  fuse,
  recommend,
  terminal_verdict,
)
from crypto_sentiment.types import (
  BehavioralResult,
  CorrelationResult,
  HeadlineSignal,
  MarketSignal,
  NewsItem,
  PredictiveResult,
  PriceQuote,
  RiskAssessment,
  Sentiment,
  SentimentResult,
)


def signal(sentiment: str = "NEUTRAL", magnitude: str = "LOW") -> MarketSignal:
  return MarketSignal(
    headline="h",
    sentiment=sentiment,
    confidence=0.7,
    magnitude=magnitude,
    direction="SIDEWAYS",
    analysis="",
    recommendation="",
    source="s",
    timestamp="2024-01-01T00:00:00+00:00",
  )


@pytest.mark.unit
class TestFuse:
  """Tests for fuse()."""

  def test_weighted_winner(self):
    results = [
      SentimentResult(signal=Sentiment.BULLISH, confidence=0.8, source_importance=1.0),
      BehavioralResult(signal=Sentiment.BEARISH, confidence=0.4, source_importance=1.0),
    ]
    outcome = fuse(results)
    assert outcome.sentiment == Sentiment.BULLISH
    assert outcome.confidence == round(0.8 / 1.2, 2)
    assert outcome.successful == 2

  def test_tie_is_neutral(self):
    results = [
      SentimentResult(signal=Sentiment.BULLISH, confidence=0.5, source_importance=1.0),
      BehavioralResult(signal=Sentiment.BEARISH, confidence=0.5, source_importance=1.0),
    ]
    assert fuse(results).sentiment == Sentiment.NEUTRAL

  def test_degraded_results_ignored(self):
    """Degraded results carry no weight but count towards the total."""
    results = [
      SentimentResult(signal=Sentiment.BEARISH, confidence=0.6, source_importance=0.5),
      PredictiveResult(signal=Sentiment.BULLISH, confidence=1.0, source_importance=1.0, degraded=True),
    ]
    outcome = fuse(results)
    assert outcome.sentiment == Sentiment.BEARISH
    assert outcome.successful == 1
    assert outcome.total == 2
    assert outcome.confidence == 0.5

  def test_all_degraded(self):
    results = [CorrelationResult(confidence=0.1, source_importance=0.0, degraded=True)]
    outcome = fuse(results)
    assert outcome.sentiment == Sentiment.NEUTRAL
    assert outcome.confidence == 0.0
    assert outcome.successful == 0

  def test_empty(self):
    assert fuse([]).sentiment == Sentiment.NEUTRAL


@pytest.mark.unit
class TestVerdictSections:
  """Tests for market signals, risk and recommendations."""

  def test_market_signals_matched_by_headline(self):
    news = [NewsItem(title="A"), NewsItem(title="Bitcoin crash deepens")]
    sentiment = SentimentResult(signals=[HeadlineSignal(headline="A", sentiment="VERY_BULLISH", confidence=0.9)])
    signals = build_market_signals(news, sentiment)
    assert signals[0].sentiment == "VERY_BULLISH"
    assert signals[0].confidence == 0.9
    assert signals[1].sentiment == "BEARISH"
    assert signals[1].confidence == 0.7

  def test_market_signals_capped(self):
    news = [NewsItem(title=f"Headline {i}") for i in range(8)]
    assert len(build_market_signals(news, None)) == 5

  def test_risk_levels(self):
    assert assess_risk([signal()]).level == "LOW"
    assert assess_risk([signal(magnitude="HIGH")]).level == "MEDIUM"
    assert assess_risk([signal(magnitude="HIGH")] * 3).level == "HIGH"

  def test_risk_factors(self):
    risk = assess_risk([signal("BEARISH")], degraded=True)
    assert "negative_sentiment_majority" in risk.factors
    assert "degraded_analysis" in risk.factors

  def test_recommendations(self):
    low = RiskAssessment(level="LOW")
    high = RiskAssessment(level="HIGH")
    assert len(recommend(Sentiment.NEUTRAL, low, "latest")) == 2
    assert any("High-impact" in r for r in recommend(Sentiment.BULLISH, high, "latest"))
    assert any("Bitcoin dominance" in r for r in recommend(Sentiment.BEARISH, low, "btc outlook"))


@pytest.mark.unit
class TestBuildVerdict:
  """Tests for build_verdict() and terminal_verdict()."""

  def test_counts_and_degradation(self):
    results = [
      SentimentResult(signal=Sentiment.BULLISH, confidence=0.8, source_importance=1.0),
      BehavioralResult(whale_activity="ACCUMULATING", confidence=0.5, source_importance=1.0),
      CorrelationResult(degraded=True, confidence=0.1, source_importance=0.0),
    ]
    news = [NewsItem(title="Bitcoin rally")]
    verdict = build_verdict(
      query="bitcoin",
      news=news,
      results=results,
      outcome=fuse(results),
      processing_time_ms=12,
      ai_model_used="heuristic",
    )
    assert verdict.successful_stages == 2
    assert verdict.total_stages == 3
    assert verdict.degraded is True
    assert verdict.data_sources_count == 1
    assert verdict.behavioral_insights.whale_activity == "ACCUMULATING"
    assert verdict.price_context is None

  def test_synthetic_prices_mark_degraded(self):
    results = [SentimentResult(signal=Sentiment.BULLISH, confidence=0.8, source_importance=1.0)]
    prices = {"BTC": PriceQuote(symbol="BTC", current=45000, synthetic=True)}
    verdict = build_verdict(
      query="q",
      news=[NewsItem(title="x")],
      results=results,
      outcome=fuse(results),
      processing_time_ms=1,
      ai_model_used="heuristic",
      prices=prices,
    )
    assert verdict.degraded is True
    assert verdict.price_context["BTC"].synthetic is True

  def test_terminal_verdict(self):
    verdict = terminal_verdict("No news data available for analysis", 5, total_stages=5)
    assert verdict.overall_sentiment == Sentiment.NEUTRAL
    assert verdict.confidence_score == 0.0
    assert verdict.market_signals == []
    assert verdict.risk_assessment.level == "HIGH"
    assert verdict.risk_assessment.mitigation == "Retry analysis or contact support"
    assert verdict.actionable_recommendations[0] == "Analysis failed: No news data available for analysis"
    assert verdict.degraded is True
    assert verdict.ai_model_used == "error"

  def test_wire_shape(self):
    """Serialized verdicts use snake_case and omit absent price context."""
    payload = terminal_verdict("x").model_dump(mode="json", exclude_none=True)
    assert "overall_sentiment" in payload
    assert "price_context" not in payload
