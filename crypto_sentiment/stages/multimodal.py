"""Content-quality and tone stage."""

import re
from collections import Counter
from typing import List

from crypto_sentiment.stages import lexicon
from crypto_sentiment.stages.base import Stage, StageContext, mean_importance
from crypto_sentiment.types import MultimodalResult, NewsItem

_STOPWORDS = {
  "about",
  "after",
  "amid",
  "could",
  "their",
  "there",
  "these",
  "which",
  "while",
  "would",
  "where",
  "other",
  "being",
  "still",
  "market",
  "crypto",
  "cryptocurrency",
}
_URGENT = ["breaking", "urgent", "just in", "alert", "immediately", "emergency"]
_EMOTIONAL = ["shock", "panic", "soar", "plunge", "massive", "huge", "explode", "collapse"]
_WORD = re.compile(r"[a-z][a-z\-]{4,}")


class MultimodalStage(Stage):
  name = "multimodal"
  result_type = MultimodalResult

  async def _run(self, news: List[NewsItem], context: StageContext) -> MultimodalResult:
    if not news:
      return MultimodalResult(confidence=0.1, source_importance=0.0)

    texts = [f"{item.title} {item.content}".lower() for item in news]

    words = Counter(w for text in texts for w in _WORD.findall(text) if w not in _STOPWORDS)
    key_phrases = [w for w, _ in words.most_common(5)]

    urgent = sum(1 for text in texts if any(u in text for u in _URGENT))
    urgency = "HIGH" if urgent >= 3 else "MEDIUM" if urgent >= 1 else "LOW"

    emotional = sum(1 for text in texts if any(e in text for e in _EMOTIONAL))
    net = sum(lexicon.polarity(t) for t in texts) / len(texts)
    if emotional / len(texts) > 0.5:
      tone = "EXCITED" if net >= 0 else "ANXIOUS"
    else:
      tone = "OPTIMISTIC" if net > 0.5 else "PESSIMISTIC" if net < -0.5 else "NEUTRAL"

    content_quality = sum(min(len(item.content) / 500.0, 1.0) for item in news) / len(news)
    reputable = [item for item in news if not item.synthetic and "reddit" not in item.source.lower()]
    credibility = len(reputable) / len(news)

    return MultimodalResult(
      signal=lexicon.classify(net),
      confidence=round(min(0.3 + 0.5 * credibility, 0.8), 3),
      source_importance=mean_importance(news),
      key_phrases=key_phrases,
      emotional_tone=tone,
      urgency=urgency,
      content_quality=round(content_quality, 3),
      credibility=round(credibility, 3),
    )
