"""Domain type definitions.

Pydantic models for the analysis request, the data fetched for it, the
per-stage results and the final verdict.
"""

import hashlib
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from crypto_sentiment.errors import ValidationError

Depth = Literal["quick", "standard", "deep"]
TimeRange = Literal["1h", "6h", "12h", "24h"]

TIME_RANGE_HOURS: Dict[str, int] = {"1h": 1, "6h": 6, "12h": 12, "24h": 24}


def utcnow() -> datetime:
  return datetime.now(timezone.utc)


# =============================================================================
# Request
# =============================================================================


class Invocation(BaseModel):
  """One validated, transport-independent analysis request.

  Built from the tool's wire arguments (``analysis_depth``, ``max_news_items``...)
  with defaults applied. Immutable once constructed.
  """

  model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

  query: str
  depth: Depth = Field("standard", alias="analysis_depth")
  max_items: int = Field(15, ge=5, le=50, alias="max_news_items")
  time_range: TimeRange = "6h"
  include_prices: bool = True
  focus_coins: Optional[Tuple[str, ...]] = None
  stream_updates: bool = False

  @field_validator("query")
  @classmethod
  def _query_not_blank(cls, v: str) -> str:
    v = v.strip()
    if not v:
      raise ValueError("query must not be empty")
    return v

  @field_validator("focus_coins", mode="before")
  @classmethod
  def _normalize_coins(cls, v: Any) -> Any:
    if v is None:
      return None
    if isinstance(v, str) or not isinstance(v, (list, tuple)):
      raise ValueError("focus_coins must be an array of strings")
    coins: List[str] = []
    for coin in v:
      if not isinstance(coin, str):
        raise ValueError("focus_coins must be an array of strings")
      symbol = coin.strip().upper()
      if symbol and symbol not in coins:
        coins.append(symbol)
    return tuple(coins) or None

  @classmethod
  def from_arguments(cls, arguments: Optional[Dict[str, Any]]) -> "Invocation":
    """Validate raw tool arguments.

    Args:
        arguments: The ``arguments`` object of a tool call.

    Returns:
        A frozen Invocation.

    Raises:
        ValidationError: If the arguments are missing or malformed.
    """
    if arguments is None:
      arguments = {}
    if not isinstance(arguments, dict):
      raise ValidationError("Tool arguments must be an object")
    try:
      return cls.model_validate(arguments)
    except PydanticValidationError as e:
      errors = [{"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]} for err in e.errors()]
      summary = "; ".join(f"{err['field']}: {err['message']}" for err in errors)
      raise ValidationError(f"Invalid arguments: {summary}", errors=errors)

  @property
  def time_range_hours(self) -> int:
    return TIME_RANGE_HOURS[self.time_range]

  def fingerprint(self) -> str:
    """Deterministic hash of the fields that shape the analysis.

    ``stream_updates`` is excluded: it changes delivery, not the verdict.
    """
    normalized = {
      "query": self.query.lower(),
      "depth": self.depth,
      "timeRange": self.time_range,
      "maxItems": self.max_items,
      "includePrices": self.include_prices,
      "focusCoins": sorted(self.focus_coins) if self.focus_coins else None,
    }
    payload = json.dumps(normalized, sort_keys=True, separators=(",", ":"))
    return hashlib.md5(payload.encode("utf-8")).hexdigest()


# =============================================================================
# Fetched data
# =============================================================================


class NewsItem(BaseModel):
  title: str
  content: str = ""
  url: str = ""
  source: str = "Unknown"
  published_at: datetime = Field(default_factory=utcnow)
  mentioned_coins: List[str] = Field(default_factory=list)
  category: str = "general"
  importance_score: float = Field(0.5, ge=0.0, le=1.0)
  synthetic: bool = False


class PriceQuote(BaseModel):
  symbol: str
  current: float
  change_24h: float = 0.0
  market_cap: Optional[float] = None
  volume_24h: Optional[float] = None
  last_updated: datetime = Field(default_factory=utcnow)
  source: str = "unknown"
  synthetic: bool = False


# =============================================================================
# Stage results
# =============================================================================


class Sentiment(str, Enum):
  BULLISH = "BULLISH"
  BEARISH = "BEARISH"
  NEUTRAL = "NEUTRAL"


# Five-point scale used for per-headline signals.
SignalScale = Literal["VERY_BULLISH", "BULLISH", "NEUTRAL", "BEARISH", "VERY_BEARISH"]
Magnitude = Literal["LOW", "MEDIUM", "HIGH"]
Level = Literal["LOW", "MEDIUM", "HIGH"]


def scale_to_sentiment(value: str) -> Sentiment:
  if value in ("VERY_BULLISH", "BULLISH"):
    return Sentiment.BULLISH
  if value in ("VERY_BEARISH", "BEARISH"):
    return Sentiment.BEARISH
  return Sentiment.NEUTRAL


class StageResultBase(BaseModel):
  """Fields every stage result carries.

  A degraded result is the neutral default a stage returns when its own
  work failed; fusion ignores it.
  """

  signal: Sentiment = Sentiment.NEUTRAL
  confidence: float = Field(0.1, ge=0.0, le=1.0)
  source_importance: float = Field(0.5, ge=0.0, le=1.0)
  degraded: bool = False
  error: Optional[str] = None


class HeadlineSignal(BaseModel):
  headline: str
  sentiment: SignalScale = "NEUTRAL"
  magnitude: Magnitude = "LOW"
  direction: str = "SIDEWAYS"
  analysis: str = ""
  recommendation: str = ""
  confidence: float = Field(0.5, ge=0.0, le=1.0)


class SentimentResult(StageResultBase):
  kind: Literal["sentiment"] = "sentiment"
  overall_sentiment: SignalScale = "NEUTRAL"
  signals: List[HeadlineSignal] = Field(default_factory=list)


class BehavioralResult(StageResultBase):
  kind: Literal["behavioral"] = "behavioral"
  whale_activity: str = "NEUTRAL"
  social_sentiment: str = "NEUTRAL"
  influencer_alignment: float = 0.0
  volume_patterns: str = "SIDEWAYS"
  retail_sentiment: str = "MIXED"


class MultimodalResult(StageResultBase):
  kind: Literal["multimodal"] = "multimodal"
  key_phrases: List[str] = Field(default_factory=list)
  emotional_tone: str = "NEUTRAL"
  urgency: Level = "LOW"
  content_quality: float = 0.5
  credibility: float = 0.5


class PredictiveResult(StageResultBase):
  kind: Literal["predictive"] = "predictive"
  direction: Literal["UP", "DOWN", "SIDEWAYS"] = "SIDEWAYS"
  probability: float = 0.5
  volatility: Level = "MEDIUM"
  catalysts: List[str] = Field(default_factory=list)


class CorrelationResult(StageResultBase):
  kind: Literal["correlation"] = "correlation"
  systemic_risk: Level = "MEDIUM"
  cascade_probability: float = 0.0
  cycle_position: str = "UNKNOWN"


StageResult = Annotated[
  Union[SentimentResult, BehavioralResult, MultimodalResult, PredictiveResult, CorrelationResult],
  Field(discriminator="kind"),
]


# =============================================================================
# Verdict
# =============================================================================


class MarketSignal(BaseModel):
  headline: str
  sentiment: SignalScale
  confidence: float
  magnitude: Magnitude
  direction: str
  analysis: str
  recommendation: str
  source: str
  timestamp: str


class BehavioralInsights(BaseModel):
  whale_activity: str = "NEUTRAL"
  social_sentiment: str = "NEUTRAL"
  influencer_alignment: float = 0.0
  volume_patterns: str = "SIDEWAYS"
  retail_sentiment: str = "MIXED"


class RiskAssessment(BaseModel):
  level: Level
  factors: List[str] = Field(default_factory=list)
  mitigation: str = ""
  probability: float = 0.0
  severity: Literal["MINOR", "MODERATE", "MAJOR"] = "MODERATE"


class Verdict(BaseModel):
  """The reconciled outcome of one invocation. Safe to cache and replay."""

  model_config = ConfigDict(frozen=True)

  overall_sentiment: Sentiment
  confidence_score: float = Field(ge=0.0, le=1.0)
  processing_time_ms: int = 0
  analysis_timestamp: str
  market_signals: List[MarketSignal] = Field(default_factory=list)
  behavioral_insights: BehavioralInsights = Field(default_factory=BehavioralInsights)
  risk_assessment: RiskAssessment
  actionable_recommendations: List[str] = Field(default_factory=list)
  data_sources_count: int = 0
  ai_model_used: str = "heuristic"
  successful_stages: int = 0
  total_stages: int = 0
  degraded: bool = False
  price_context: Optional[Dict[str, PriceQuote]] = None

  def to_json(self) -> str:
    return self.model_dump_json(exclude_none=True)
