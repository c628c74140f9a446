"""Progress events emitted while an invocation runs."""

import inspect
from typing import Awaitable, Callable, List, Optional, Union

from pydantic import BaseModel

from crypto_sentiment.types import utcnow
from crypto_sentiment.utils.log import log_warning


class ProgressEvent(BaseModel):
  request_id: Optional[str] = None
  step: str
  progress: int
  timestamp: str


ProgressListener = Callable[[ProgressEvent], Union[None, Awaitable[None]]]


class ProgressEmitter:
  """Fans progress events out to any number of listeners.

  Percentages never go backwards within one emitter. A failing listener is
  logged and skipped; it never affects the invocation or other listeners.
  """

  def __init__(self, request_id: Optional[str] = None) -> None:
    self.request_id = request_id
    self._listeners: List[ProgressListener] = []
    self._last = 0

  @property
  def last_progress(self) -> int:
    return self._last

  def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
    """Register a sync or async listener. Returns an unsubscribe callable."""
    self._listeners.append(listener)

    def unsubscribe() -> None:
      if listener in self._listeners:
        self._listeners.remove(listener)

    return unsubscribe

  async def emit(self, step: str, progress: int) -> ProgressEvent:
    progress = max(self._last, min(int(progress), 100))
    self._last = progress
    event = ProgressEvent(request_id=self.request_id, step=step, progress=progress, timestamp=utcnow().isoformat())

    for listener in list(self._listeners):
      try:
        result = listener(event)
        if inspect.isawaitable(result):
          await result
      except Exception as e:
        log_warning(f"Progress listener failed at {progress}%: {e}")
    return event
