from typing import List

from crypto_sentiment.stages.base import Stage, StageContext
from crypto_sentiment.stages.behavioral import BehavioralStage
from crypto_sentiment.stages.correlation import CorrelationStage
from crypto_sentiment.stages.multimodal import MultimodalStage
from crypto_sentiment.stages.predictive import PredictiveStage
from crypto_sentiment.stages.sentiment import SentimentStage


def default_stages() -> List[Stage]:
  return [SentimentStage(), BehavioralStage(), MultimodalStage(), PredictiveStage(), CorrelationStage()]


__all__ = [
  "BehavioralStage",
  "CorrelationStage",
  "MultimodalStage",
  "PredictiveStage",
  "SentimentStage",
  "Stage",
  "StageContext",
  "default_stages",
]
