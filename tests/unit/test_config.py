"""Unit tests for Settings and the per-area config dataclasses.

Tests cover defaults, environment parsing, validation and
serialization. No network calls.
"""

import pytest

from crypto_sentiment.config import (
  DEFAULT_RSS_FEEDS,
  AIConfig,
  CacheConfig,
  NewsConfig,
  PriceConfig,
  ServerConfig,
  Settings,
)


@pytest.mark.unit
class TestDefaults:
  """Tests for default values."""

  def test_server_defaults(self):
    """Server listens on 0.0.0.0:4004 at INFO."""
    cfg = ServerConfig()
    assert cfg.host == "0.0.0.0"
    assert cfg.port == 4004
    assert cfg.log_level == "INFO"
    assert cfg.heartbeat_interval == 30.0
    assert cfg.stale_after == 60.0

  def test_timeouts(self):
    """News races 8s and prices 5s."""
    settings = Settings()
    assert settings.news.timeout == 8.0
    assert settings.prices.timeout == 5.0

  def test_cache_ttls(self):
    """Analyses live 15 minutes, prices 5 minutes."""
    settings = Settings()
    assert settings.analysis.cache_ttl == 900
    assert settings.prices.cache_ttl == 300

  def test_redis_off_by_default(self):
    """The durable tier is opt-in."""
    assert CacheConfig().redis_enabled is False

  def test_synthetic_news_off_by_default(self):
    """Synthetic news is opt-in."""
    assert NewsConfig().synthetic_fallback is False

  def test_ai_disabled_without_key(self):
    """No API key means the heuristic path."""
    assert AIConfig().enabled is False
    assert AIConfig(api_key="sk-test").enabled is True

  def test_feed_lists_are_copies(self):
    """Mutating one config's feeds does not leak into the defaults."""
    cfg = NewsConfig()
    cfg.rss_feeds.append("https://example.com/rss")
    assert "https://example.com/rss" not in DEFAULT_RSS_FEEDS


@pytest.mark.unit
class TestValidation:
  """Tests for __post_init__ validation."""

  def test_port_out_of_range(self):
    """Port 0 is rejected."""
    with pytest.raises(ValueError, match="port"):
      ServerConfig(port=0)

  def test_unknown_log_level(self):
    """Unknown level names are rejected."""
    with pytest.raises(ValueError, match="log level"):
      ServerConfig(log_level="chatty")

  def test_log_level_upper_cased(self):
    """Lower-case level names are accepted."""
    assert ServerConfig(log_level="debug").log_level == "DEBUG"

  def test_stale_after_shorter_than_heartbeat(self):
    """A connection cannot go stale before the first heartbeat."""
    with pytest.raises(ValueError, match="stale_after"):
      ServerConfig(heartbeat_interval=30, stale_after=10)

  def test_negative_timeout(self):
    """Timeouts must be positive."""
    with pytest.raises(ValueError, match="timeout"):
      PriceConfig(timeout=0)

  def test_news_timeout_not_shorter_than_price(self):
    """News must be given at least as long as prices."""
    with pytest.raises(ValueError, match="news timeout"):
      Settings(news=NewsConfig(timeout=2.0), prices=PriceConfig(timeout=5.0))

  def test_cleanup_every_positive(self):
    """The sweep period must be at least one write."""
    with pytest.raises(ValueError, match="cleanup_every"):
      CacheConfig(cleanup_every=0)


@pytest.mark.unit
class TestFromEnv:
  """Tests for Settings.from_env()."""

  def test_empty_environment(self):
    """An empty environment gives the defaults."""
    settings = Settings.from_env({})
    assert settings.server.port == 4004
    assert settings.news.rss_feeds == DEFAULT_RSS_FEEDS

  def test_reads_values(self):
    """Variables override the defaults."""
    settings = Settings.from_env({
      "PORT": "8080",
      "LOG_LEVEL": "warning",
      "REDIS_ENABLED": "true",
      "REDIS_URL": "redis://cache:6379",
      "NEWS_TIMEOUT": "10",
      "NEWS_SYNTHETIC_FALLBACK": "yes",
      "OPENROUTER_API_KEY": "sk-test",
      "ANALYSIS_CACHE_TTL": "60",
    })
    assert settings.server.port == 8080
    assert settings.server.log_level == "WARNING"
    assert settings.cache.redis_enabled is True
    assert settings.cache.redis_url == "redis://cache:6379"
    assert settings.news.timeout == 10.0
    assert settings.news.synthetic_fallback is True
    assert settings.ai.enabled is True
    assert settings.analysis.cache_ttl == 60

  def test_comma_separated_feeds(self):
    """Feed lists are comma separated and trimmed."""
    settings = Settings.from_env({"NEWS_RSS_FEEDS": " https://a.test/rss , https://b.test/rss,"})
    assert settings.news.rss_feeds == ["https://a.test/rss", "https://b.test/rss"]

  def test_empty_feed_list(self):
    """An empty variable disables the feed group."""
    assert Settings.from_env({"NEWS_REDDIT_FEEDS": ""}).news.reddit_feeds == []

  def test_bad_integer(self):
    """Unparsable numbers name the variable."""
    with pytest.raises(ValueError, match="PORT must be an integer"):
      Settings.from_env({"PORT": "eighty"})

  def test_empty_backup_model(self):
    """An empty BACKUP_MODEL disables the retry."""
    assert Settings.from_env({"BACKUP_MODEL": ""}).ai.backup_model is None


@pytest.mark.unit
class TestSerialization:
  """Tests for to_dict() and from_dict()."""

  def test_secrets_masked(self):
    """API keys never appear in to_dict output."""
    settings = Settings(ai=AIConfig(api_key="sk-secret"), prices=PriceConfig(coingecko_api_key="cg-secret"))
    data = settings.to_dict()
    assert data["ai"]["api_key"] == "***"
    assert data["prices"]["coingecko_api_key"] == "***"

  def test_round_trip(self):
    """from_dict(to_dict()) preserves non-secret values."""
    settings = Settings(server=ServerConfig(port=9000))
    restored = Settings.from_dict(settings.to_dict())
    assert restored.server.port == 9000
    assert restored.news.rss_feeds == settings.news.rss_feeds

  def test_missing_groups_use_defaults(self):
    """from_dict tolerates partial input."""
    assert Settings.from_dict({"server": {"port": 5000}}).cache.prefix == "crypto-sentiment:"
