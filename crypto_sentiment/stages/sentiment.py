"""Headline sentiment stage."""

from typing import List

from crypto_sentiment.ai.provider import analyze_json
from crypto_sentiment.stages import lexicon
from crypto_sentiment.stages.base import Stage, StageContext, mean_importance
from crypto_sentiment.types import HeadlineSignal, NewsItem, SentimentResult, scale_to_sentiment

# Headlines analysed per depth.
DEPTH_LIMITS = {"quick": 5, "standard": 12, "deep": 20}

_RECOMMENDATIONS = {
  "VERY_BULLISH": "Strong positive catalyst; consider scaling into exposure",
  "BULLISH": "Positive signal; monitor for confirmation",
  "NEUTRAL": "No clear directional signal",
  "BEARISH": "Negative signal; review risk exposure",
  "VERY_BEARISH": "Strong negative catalyst; consider reducing exposure",
}

_SCORES = {"VERY_BULLISH": 2, "BULLISH": 1, "NEUTRAL": 0, "BEARISH": -1, "VERY_BEARISH": -2}


class SentimentStage(Stage):
  name = "sentiment"
  result_type = SentimentResult

  async def _run(self, news: List[NewsItem], context: StageContext) -> SentimentResult:
    items = news[: DEPTH_LIMITS.get(context.invocation.depth, 12)]
    if not items:
      return SentimentResult(confidence=0.1, source_importance=0.0)

    signals = [self._headline(item) for item in items]

    weighted = sum(_SCORES[s.sentiment] * item.importance_score for s, item in zip(signals, items))
    total_weight = sum(item.importance_score for item in items) or 1.0
    overall = lexicon.scale(round(weighted / total_weight * 2) / 2)
    confidence = sum(s.confidence for s in signals) / len(signals)

    if context.provider is not None:
      answer = await analyze_json(
        context.provider,
        _prompt(context.invocation.query, items),
        default={"overall_sentiment": overall, "confidence": confidence},
      )
      if answer.get("overall_sentiment") in _SCORES:
        overall = answer["overall_sentiment"]
      try:
        confidence = min(max(float(answer.get("confidence", confidence)), 0.0), 1.0)
      except (TypeError, ValueError):
        pass

    return SentimentResult(
      signal=scale_to_sentiment(overall),
      confidence=round(confidence, 3),
      source_importance=mean_importance(items),
      overall_sentiment=overall,
      signals=signals,
    )

  def _headline(self, item: NewsItem) -> HeadlineSignal:
    score = lexicon.polarity(f"{item.title} {item.content}")
    value = lexicon.scale(score)
    direction = "UP" if score > 0 else "DOWN" if score < 0 else "SIDEWAYS"
    return HeadlineSignal(
      headline=item.title,
      sentiment=value,
      magnitude=lexicon.magnitude(item.importance_score),
      direction=direction,
      analysis=f"{item.category.capitalize()} news from {item.source} with {value.lower().replace('_', ' ')} tone",
      recommendation=_RECOMMENDATIONS[value],
      confidence=min(0.5 + 0.1 * abs(score), 0.9),
    )


def _prompt(query: str, items: List[NewsItem]) -> str:
  headlines = "\n".join(f"- {item.title}" for item in items)
  return (
    f"Assess overall crypto market sentiment for the query '{query}' from these headlines:\n"
    f"{headlines}\n\n"
    'Answer with JSON only: {"overall_sentiment": "VERY_BULLISH|BULLISH|NEUTRAL|BEARISH|VERY_BEARISH", "confidence": 0.0-1.0}'
  )
