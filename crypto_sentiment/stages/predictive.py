"""Short-horizon market movement forecast."""

from typing import List

from crypto_sentiment.stages import lexicon
from crypto_sentiment.stages.base import Stage, StageContext, mean_importance
from crypto_sentiment.types import NewsItem, PredictiveResult, Sentiment


class PredictiveStage(Stage):
  name = "predictive"
  result_type = PredictiveResult

  async def _run(self, news: List[NewsItem], context: StageContext) -> PredictiveResult:
    if not news:
      return PredictiveResult(confidence=0.1, source_importance=0.0)

    weighted = sum(lexicon.polarity(f"{i.title} {i.content}") * i.importance_score for i in news)
    news_score = weighted / len(news)

    changes = [q.change_24h for q in context.prices.values()]
    momentum = sum(changes) / len(changes) / 10.0 if changes else 0.0
    combined = news_score + momentum

    direction = "UP" if combined > 0.3 else "DOWN" if combined < -0.3 else "SIDEWAYS"
    signal = {"UP": Sentiment.BULLISH, "DOWN": Sentiment.BEARISH}.get(direction, Sentiment.NEUTRAL)

    spread = max((abs(c) for c in changes), default=0.0)
    volatility = "HIGH" if spread > 8 else "MEDIUM" if spread > 3 else "LOW"

    catalysts = [f"{item.category}: {item.title}" for item in news if item.importance_score >= 0.7][:3]

    return PredictiveResult(
      signal=signal,
      confidence=round(min(0.35 + 0.1 * len(catalysts) + (0.1 if changes else 0.0), 0.75), 3),
      source_importance=mean_importance(news),
      direction=direction,
      probability=round(0.5 + min(abs(combined), 0.4), 3),
      volatility=volatility,
      catalysts=catalysts,
    )
