"""Gateway configuration dataclasses.

Settings are built once at startup (usually via ``Settings.from_env``) and
passed explicitly to every component that needs them.
"""

import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional

DEFAULT_RSS_FEEDS = [
  "https://cointelegraph.com/rss",
  "https://www.coindesk.com/arc/outboundfeeds/rss/",
  "https://cryptonews.com/news/feed/",
  "https://decrypt.co/feed",
]

DEFAULT_REDDIT_FEEDS = [
  "https://www.reddit.com/r/CryptoCurrency/.rss",
  "https://www.reddit.com/r/Bitcoin/.rss",
  "https://www.reddit.com/r/ethereum/.rss",
]

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
  """Network and process settings shared by all transports."""

  host: str = "0.0.0.0"
  port: int = 4004
  log_level: str = "INFO"

  # WebSocket liveness
  heartbeat_interval: float = 30.0
  stale_after: float = 60.0

  def __post_init__(self) -> None:
    if not 0 < self.port < 65536:
      raise ValueError(f"ServerConfig: port must be in 1..65535, got {self.port}")
    self.log_level = self.log_level.upper()
    if self.log_level not in _LOG_LEVELS:
      raise ValueError(f"ServerConfig: unknown log level '{self.log_level}'")
    if self.heartbeat_interval <= 0:
      raise ValueError("ServerConfig: heartbeat_interval must be positive")
    if self.stale_after < self.heartbeat_interval:
      raise ValueError("ServerConfig: stale_after must be >= heartbeat_interval")


@dataclass
class CacheConfig:
  """Two-tier cache settings."""

  redis_enabled: bool = False
  redis_url: str = "redis://localhost:6379"
  redis_db: int = 0
  prefix: str = "crypto-sentiment:"

  # Seconds between reconnect probes while the durable tier is down
  reconnect_interval: float = 30.0

  # Opportunistic expiry sweep of the in-process tier every N writes
  cleanup_every: int = 100

  def __post_init__(self) -> None:
    if self.redis_enabled and not self.redis_url:
      raise ValueError("CacheConfig: redis_enabled requires 'redis_url'")
    if self.cleanup_every < 1:
      raise ValueError("CacheConfig: cleanup_every must be >= 1")
    if self.reconnect_interval < 0:
      raise ValueError("CacheConfig: reconnect_interval must be >= 0")


@dataclass
class NewsConfig:
  timeout: float = 8.0
  max_age_hours: int = 24
  rss_feeds: List[str] = field(default_factory=lambda: list(DEFAULT_RSS_FEEDS))
  reddit_feeds: List[str] = field(default_factory=lambda: list(DEFAULT_REDDIT_FEEDS))
  synthetic_fallback: bool = False

  def __post_init__(self) -> None:
    if self.timeout <= 0:
      raise ValueError("NewsConfig: timeout must be positive")
    if self.max_age_hours <= 0:
      raise ValueError("NewsConfig: max_age_hours must be positive")


@dataclass
class PriceConfig:
  timeout: float = 5.0
  cache_ttl: int = 300
  coingecko_url: str = "https://api.coingecko.com/api/v3"
  coingecko_api_key: Optional[str] = None
  binance_url: str = "https://api.binance.com/api/v3"

  def __post_init__(self) -> None:
    if self.timeout <= 0:
      raise ValueError("PriceConfig: timeout must be positive")
    if self.cache_ttl <= 0:
      raise ValueError("PriceConfig: cache_ttl must be positive")


@dataclass
class AIConfig:
  """OpenAI-compatible completion provider (OpenRouter by default)."""

  base_url: str = "https://openrouter.ai/api/v1"
  api_key: Optional[str] = None
  model: str = "deepseek/deepseek-chat"
  backup_model: Optional[str] = "meta-llama/llama-3.1-8b-instruct:free"
  timeout: float = 30.0
  max_tokens: int = 4000
  temperature: float = 0.7

  def __post_init__(self) -> None:
    if self.timeout <= 0:
      raise ValueError("AIConfig: timeout must be positive")
    if self.max_tokens <= 0:
      raise ValueError("AIConfig: max_tokens must be positive")

  @property
  def enabled(self) -> bool:
    return bool(self.api_key)


@dataclass
class AnalysisConfig:
  cache_ttl: int = 900
  confidence_threshold: float = 0.6

  def __post_init__(self) -> None:
    if self.cache_ttl <= 0:
      raise ValueError("AnalysisConfig: cache_ttl must be positive")
    if not 0.0 <= self.confidence_threshold <= 1.0:
      raise ValueError("AnalysisConfig: confidence_threshold must be in [0, 1]")


@dataclass
class Settings:
  """Aggregate of every configuration group.

  Example:
      settings = Settings.from_env()
      settings = Settings(server=ServerConfig(port=8080))
  """

  server: ServerConfig = field(default_factory=ServerConfig)
  cache: CacheConfig = field(default_factory=CacheConfig)
  news: NewsConfig = field(default_factory=NewsConfig)
  prices: PriceConfig = field(default_factory=PriceConfig)
  ai: AIConfig = field(default_factory=AIConfig)
  analysis: AnalysisConfig = field(default_factory=AnalysisConfig)

  def __post_init__(self) -> None:
    if self.news.timeout < self.prices.timeout:
      raise ValueError("Settings: news timeout must not be shorter than price timeout")

  def to_dict(self) -> Dict[str, Any]:
    """Convert to dictionary representation, with secrets masked."""
    result = asdict(self)
    if result["ai"]["api_key"]:
      result["ai"]["api_key"] = "***"
    if result["prices"]["coingecko_api_key"]:
      result["prices"]["coingecko_api_key"] = "***"
    return result

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> "Settings":
    """Create from dictionary representation. Missing groups use defaults."""
    return cls(
      server=ServerConfig(**data.get("server", {})),
      cache=CacheConfig(**data.get("cache", {})),
      news=NewsConfig(**data.get("news", {})),
      prices=PriceConfig(**data.get("prices", {})),
      ai=AIConfig(**data.get("ai", {})),
      analysis=AnalysisConfig(**data.get("analysis", {})),
    )

  @classmethod
  def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
    """Build settings from environment variables.

    Args:
        environ: Mapping to read from. Defaults to ``os.environ``.

    Raises:
        ValueError: If a variable cannot be parsed or fails validation.
    """
    env = os.environ if environ is None else environ
    return cls(
      server=ServerConfig(
        host=env.get("HOST", "0.0.0.0"),
        port=_int(env, "PORT", 4004),
        log_level=env.get("LOG_LEVEL", "INFO"),
        heartbeat_interval=_float(env, "WS_HEARTBEAT_INTERVAL", 30.0),
        stale_after=_float(env, "WS_STALE_AFTER", 60.0),
      ),
      cache=CacheConfig(
        redis_enabled=_bool(env, "REDIS_ENABLED", False),
        redis_url=env.get("REDIS_URL", "redis://localhost:6379"),
        redis_db=_int(env, "REDIS_DB", 0),
        prefix=env.get("CACHE_PREFIX", "crypto-sentiment:"),
        reconnect_interval=_float(env, "REDIS_RECONNECT_INTERVAL", 30.0),
        cleanup_every=_int(env, "MEMORY_CLEANUP_EVERY", 100),
      ),
      news=NewsConfig(
        timeout=_float(env, "NEWS_TIMEOUT", 8.0),
        max_age_hours=_int(env, "NEWS_MAX_AGE_HOURS", 24),
        rss_feeds=_list(env, "NEWS_RSS_FEEDS", DEFAULT_RSS_FEEDS),
        reddit_feeds=_list(env, "NEWS_REDDIT_FEEDS", DEFAULT_REDDIT_FEEDS),
        synthetic_fallback=_bool(env, "NEWS_SYNTHETIC_FALLBACK", False),
      ),
      prices=PriceConfig(
        timeout=_float(env, "PRICE_TIMEOUT", 5.0),
        cache_ttl=_int(env, "PRICE_CACHE_TTL", 300),
        coingecko_url=env.get("COINGECKO_API_URL", "https://api.coingecko.com/api/v3"),
        coingecko_api_key=env.get("COINGECKO_API_KEY") or None,
        binance_url=env.get("BINANCE_API_URL", "https://api.binance.com/api/v3"),
      ),
      ai=AIConfig(
        base_url=env.get("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"),
        api_key=env.get("OPENROUTER_API_KEY") or None,
        model=env.get("DEFAULT_MODEL", "deepseek/deepseek-chat"),
        backup_model=env.get("BACKUP_MODEL", "meta-llama/llama-3.1-8b-instruct:free") or None,
        timeout=_float(env, "AI_TIMEOUT", 30.0),
        max_tokens=_int(env, "MAX_TOKENS", 4000),
      ),
      analysis=AnalysisConfig(
        cache_ttl=_int(env, "ANALYSIS_CACHE_TTL", 900),
        confidence_threshold=_float(env, "CONFIDENCE_THRESHOLD", 0.6),
      ),
    )


def _int(env: Mapping[str, str], name: str, default: int) -> int:
  raw = env.get(name)
  if raw is None or raw == "":
    return default
  try:
    return int(raw)
  except ValueError:
    raise ValueError(f"{name} must be an integer, got '{raw}'")


def _float(env: Mapping[str, str], name: str, default: float) -> float:
  raw = env.get(name)
  if raw is None or raw == "":
    return default
  try:
    return float(raw)
  except ValueError:
    raise ValueError(f"{name} must be a number, got '{raw}'")


def _bool(env: Mapping[str, str], name: str, default: bool) -> bool:
  raw = env.get(name)
  if raw is None or raw == "":
    return default
  return raw.strip().lower() in ("1", "true", "yes", "on")


def _list(env: Mapping[str, str], name: str, default: List[str]) -> List[str]:
  raw = env.get(name)
  if raw is None:
    return list(default)
  return [item.strip() for item in raw.split(",") if item.strip()]
