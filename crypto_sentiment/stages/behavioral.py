"""Market-participant behaviour stage."""

import re
from typing import List

from crypto_sentiment.stages import lexicon
from crypto_sentiment.stages.base import Stage, StageContext, mean_importance
from crypto_sentiment.types import BehavioralResult, NewsItem

_WHALE_BUY = ["whale", "accumulat", "large purchase", "buys", "inflow"]
_WHALE_SELL = ["outflow", "dump", "sell-off", "selloff", "moved to exchange", "unload"]
_INFLUENCERS = ["musk", "saylor", "cathie wood", "vitalik", "cz ", "sbf", "buterin"]
_GREED = ["fomo", "moon", "all-time high", "record", "euphoria", "frenzy"]
_FEAR = ["panic", "fear", "capitulat", "liquidat", "crash"]


def _hits(text: str, words: List[str]) -> int:
  return sum(1 for w in words if re.search(rf"\b{re.escape(w)}", text))


class BehavioralStage(Stage):
  name = "behavioral"
  result_type = BehavioralResult

  async def _run(self, news: List[NewsItem], context: StageContext) -> BehavioralResult:
    if not news:
      return BehavioralResult(confidence=0.1, source_importance=0.0)

    texts = [f"{item.title} {item.content}".lower() for item in news]
    corpus = " ".join(texts)

    whale_net = _hits(corpus, _WHALE_BUY) - _hits(corpus, _WHALE_SELL)
    whale_activity = "ACCUMULATING" if whale_net > 0 else "DISTRIBUTING" if whale_net < 0 else "NEUTRAL"

    social = [lexicon.polarity(t) for item, t in zip(news, texts) if "reddit" in item.source.lower()]
    social_score = sum(social) / len(social) if social else 0.0
    social_sentiment = lexicon.classify(social_score).value

    influencer_scores = [lexicon.polarity(t) for t in texts if _hits(t, _INFLUENCERS)]
    if influencer_scores:
      influencer_alignment = max(-1.0, min(1.0, sum(influencer_scores) / (2.0 * len(influencer_scores))))
    else:
      influencer_alignment = 0.0

    changes = [q.change_24h for q in context.prices.values()]
    avg_change = sum(changes) / len(changes) if changes else 0.0
    volume_patterns = "RISING" if avg_change > 3 else "FALLING" if avg_change < -3 else "SIDEWAYS"

    greed, fear = _hits(corpus, _GREED), _hits(corpus, _FEAR)
    retail_sentiment = "GREEDY" if greed > fear else "FEARFUL" if fear > greed else "MIXED"

    combined = (
      (1 if whale_net > 0 else -1 if whale_net < 0 else 0)
      + social_score
      + influencer_alignment
      + (1 if avg_change > 3 else -1 if avg_change < -3 else 0)
    )
    evidence = abs(whale_net) + len(social) + len(influencer_scores) + greed + fear + (1 if changes else 0)

    return BehavioralResult(
      signal=lexicon.classify(combined),
      confidence=round(min(0.3 + 0.05 * evidence, 0.8), 3),
      source_importance=mean_importance(news),
      whale_activity=whale_activity,
      social_sentiment=social_sentiment,
      influencer_alignment=round(influencer_alignment, 3),
      volume_patterns=volume_patterns,
      retail_sentiment=retail_sentiment,
    )
