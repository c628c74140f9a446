"""Cross-asset correlation and systemic risk stage."""

from typing import List

from crypto_sentiment.stages import lexicon
from crypto_sentiment.stages.base import Stage, StageContext, mean_importance
from crypto_sentiment.types import CorrelationResult, NewsItem, Sentiment


class CorrelationStage(Stage):
  name = "correlation"
  result_type = CorrelationResult

  async def _run(self, news: List[NewsItem], context: StageContext) -> CorrelationResult:
    if not news:
      return CorrelationResult(confidence=0.1, source_importance=0.0)

    high_impact = [item for item in news if item.importance_score >= 0.7]
    bearish_high = [item for item in high_impact if lexicon.polarity(f"{item.title} {item.content}") < 0]
    regulatory_share = sum(1 for item in news if item.category == "regulatory") / len(news)

    cascade_probability = len(bearish_high) / len(news)
    if cascade_probability > 0.3 or regulatory_share > 0.5:
      systemic_risk = "HIGH"
    elif cascade_probability > 0.1 or regulatory_share > 0.25:
      systemic_risk = "MEDIUM"
    else:
      systemic_risk = "LOW"

    changes = [q.change_24h for q in context.prices.values()]
    breadth = sum(1 for c in changes if c > 0) / len(changes) if changes else 0.5
    avg_change = sum(changes) / len(changes) if changes else 0.0
    if avg_change > 5:
      cycle_position = "EXPANSION"
    elif avg_change < -5:
      cycle_position = "CONTRACTION"
    elif breadth >= 0.5:
      cycle_position = "ACCUMULATION"
    else:
      cycle_position = "DISTRIBUTION"

    if systemic_risk == "HIGH":
      signal = Sentiment.BEARISH
    elif breadth > 0.6:
      signal = Sentiment.BULLISH
    elif breadth < 0.4:
      signal = Sentiment.BEARISH
    else:
      signal = Sentiment.NEUTRAL

    mentioned = {coin for item in news for coin in item.mentioned_coins}
    return CorrelationResult(
      signal=signal,
      confidence=round(min(0.3 + 0.05 * len(mentioned) + (0.15 if changes else 0.0), 0.7), 3),
      source_importance=mean_importance(news),
      systemic_risk=systemic_risk,
      cascade_probability=round(cascade_probability, 3),
      cycle_position=cycle_position,
    )
