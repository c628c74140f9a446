"""Word lists shared by the heuristic paths of the stages."""

import re
from typing import Tuple

from crypto_sentiment.types import Sentiment

BULLISH_WORDS = [
  "surge",
  "rally",
  "soar",
  "gain",
  "bull",
  "breakout",
  "record",
  "high",
  "adoption",
  "approval",
  "approve",
  "institutional",
  "accumulat",
  "partnership",
  "upgrade",
  "growth",
  "rise",
  "jump",
  "boost",
  "demand",
]

BEARISH_WORDS = [
  "crash",
  "plunge",
  "drop",
  "fall",
  "bear",
  "dump",
  "sell-off",
  "selloff",
  "hack",
  "exploit",
  "ban",
  "lawsuit",
  "fraud",
  "decline",
  "loss",
  "fear",
  "liquidat",
  "bankrupt",
  "concern",
  "warning",
]


def _count(text: str, words) -> int:
  return sum(1 for w in words if re.search(rf"\b{re.escape(w)}", text))


def polarity(text: str) -> int:
  """Bullish minus bearish term hits."""
  lowered = (text or "").lower()
  return _count(lowered, BULLISH_WORDS) - _count(lowered, BEARISH_WORDS)


def scale(score: float) -> str:
  if score >= 2:
    return "VERY_BULLISH"
  if score >= 1:
    return "BULLISH"
  if score <= -2:
    return "VERY_BEARISH"
  if score <= -1:
    return "BEARISH"
  return "NEUTRAL"


def classify(score: float, threshold: float = 0.5) -> Sentiment:
  if score > threshold:
    return Sentiment.BULLISH
  if score < -threshold:
    return Sentiment.BEARISH
  return Sentiment.NEUTRAL


def infer_title_sentiment(title: str) -> Tuple[str, str]:
  """Five-point sentiment and direction for a headline."""
  value = scale(polarity(title))
  if value in ("BULLISH", "VERY_BULLISH"):
    return value, "UP"
  if value in ("BEARISH", "VERY_BEARISH"):
    return value, "DOWN"
  return value, "SIDEWAYS"


def magnitude(importance: float) -> str:
  if importance >= 0.8:
    return "HIGH"
  if importance >= 0.6:
    return "MEDIUM"
  return "LOW"
