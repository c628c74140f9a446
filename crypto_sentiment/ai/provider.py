"""AI completion provider used by the analysis stages."""

import json
import re
from typing import Any, Dict, Optional, Protocol

from crypto_sentiment.config import AIConfig
from crypto_sentiment.errors import UpstreamFailureError
from crypto_sentiment.utils.log import log_debug, log_warning

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class AIProvider(Protocol):
  model: str

  async def analyze(self, prompt: str) -> str: ...


class OpenRouterProvider:
  """OpenAI-compatible chat completions, with one retry on a backup model.

  Args:
    config: Provider settings (base URL, key, models, limits).
    client: Optional pre-built ``openai.AsyncOpenAI``.
  """

  def __init__(self, config: AIConfig, client: Any = None) -> None:
    self.config = config
    self.model = config.model
    self._client = client

  def _get_client(self) -> Any:
    if self._client is None:
      from openai import AsyncOpenAI

      self._client = AsyncOpenAI(
        base_url=self.config.base_url,
        api_key=self.config.api_key,
        timeout=self.config.timeout,
      )
    return self._client

  async def analyze(self, prompt: str) -> str:
    """Return the completion text for ``prompt``.

    Raises:
        UpstreamFailureError: If both the default and the backup model fail.
    """
    models = [self.config.model]
    if self.config.backup_model and self.config.backup_model != self.config.model:
      models.append(self.config.backup_model)

    last_error: Optional[Exception] = None
    for model in models:
      try:
        response = await self._get_client().chat.completions.create(
          model=model,
          messages=[{"role": "user", "content": prompt}],
          temperature=self.config.temperature,
          max_tokens=self.config.max_tokens,
        )
        content = response.choices[0].message.content or ""
        log_debug(f"AIProvider [{model}] returned {len(content)} chars", log_level=2)
        return content
      except Exception as e:
        log_warning(f"AIProvider [{model}] failed: {e}")
        last_error = e

    raise UpstreamFailureError(f"AI completion failed: {last_error}", source="openrouter", original_error=last_error)

  async def close(self) -> None:
    if self._client is not None:
      await self._client.close()
      self._client = None


def extract_json(text: str) -> Optional[Dict[str, Any]]:
  """First JSON object embedded in ``text``, or None."""
  match = _JSON_OBJECT.search(text or "")
  if not match:
    return None
  try:
    value = json.loads(match.group(0))
  except json.JSONDecodeError:
    return None
  return value if isinstance(value, dict) else None


async def analyze_json(provider: AIProvider, prompt: str, default: Dict[str, Any]) -> Dict[str, Any]:
  """Ask for a JSON answer; fall back to ``default`` on any failure."""
  try:
    text = await provider.analyze(prompt)
  except Exception as e:
    log_debug(f"AIProvider JSON request failed: {e}")
    return dict(default)
  parsed = extract_json(text)
  if parsed is None:
    log_debug("AIProvider response carried no JSON object")
    return dict(default)
  return {**default, **parsed}
