"""Process logging.

Every message goes to stderr so that stdout stays reserved for protocol
frames when the stdio transport is active.
"""

import logging
import os
import sys
from typing import Optional

LOGGER_NAME = "crypto_sentiment"

logger = logging.getLogger(LOGGER_NAME)

_configured = False


def _debug_level() -> int:
  try:
    return int(os.getenv("CRYPTO_SENTIMENT_DEBUG_LEVEL", "1"))
  except ValueError:
    return 1


def configure_logging(level: Optional[str] = None) -> logging.Logger:
  """Attach the stderr handler once and set the level.

  Args:
      level: Level name such as ``"INFO"`` or ``"DEBUG"``. Defaults to ``LOG_LEVEL`` or INFO.

  Returns:
      The package logger.
  """
  global _configured

  level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
  logger.setLevel(getattr(logging, level_name, logging.INFO))

  if not _configured:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
    _configured = True

  return logger


def log_debug(msg: str, log_level: int = 1) -> None:
  # Higher tiers are chatty and only shown when explicitly requested.
  if log_level > _debug_level():
    return
  logger.debug(msg)


def log_info(msg: str) -> None:
  logger.info(msg)


def log_warning(msg: str) -> None:
  logger.warning(msg)


def log_error(msg: str) -> None:
  logger.error(msg)


def log_exception(msg: str) -> None:
  logger.exception(msg)
