from crypto_sentiment.orchestrator.events import ProgressEmitter, ProgressEvent
from crypto_sentiment.orchestrator.fusion import FusionOutcome, fuse
from crypto_sentiment.orchestrator.orchestrator import Orchestrator, Phase

__all__ = ["FusionOutcome", "Orchestrator", "Phase", "ProgressEmitter", "ProgressEvent", "fuse"]
