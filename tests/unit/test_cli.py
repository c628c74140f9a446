"""Unit tests for the command line, runtime validation and gateway wiring. No network calls."""

import pytest

from crypto_sentiment.__main__ import build_parser, load_settings, main, transports_for
from crypto_sentiment.cache.redis import RedisCacheClient
from crypto_sentiment.config import CacheConfig, Settings
from crypto_sentiment.gateway import build_gateway
from crypto_sentiment.runtime import GatewayRuntime


@pytest.mark.unit
class TestCommandLine:
  """Tests for argument parsing and settings overrides."""

  def test_defaults(self):
    args = build_parser().parse_args([])
    assert args.transport == "http"
    assert transports_for(args.transport) == ["http"]

  def test_all_transports(self):
    assert transports_for("all") == ["stdio", "http"]

  def test_overrides(self, monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-real")
    args = build_parser().parse_args(["--port", "9001", "--host", "127.0.0.1", "--log-level", "debug"])
    settings = load_settings(args)
    assert settings.server.port == 9001
    assert settings.server.host == "127.0.0.1"
    assert settings.server.log_level == "DEBUG"
    assert settings.ai.api_key == "sk-real"

  def test_invalid_configuration_exit_code(self, monkeypatch):
    monkeypatch.setenv("PORT", "not-a-port")
    assert main([]) == 2

  def test_unknown_transport_rejected(self):
    with pytest.raises(SystemExit):
      build_parser().parse_args(["--transport", "carrier-pigeon"])


@pytest.mark.unit
class TestRuntime:
  """Tests for GatewayRuntime construction."""

  def test_unknown_transport(self, gateway):
    with pytest.raises(ValueError, match="Unknown transport"):
      GatewayRuntime(gateway, ["smtp"])

  def test_requires_transport(self, gateway):
    with pytest.raises(ValueError, match="At least one"):
      GatewayRuntime(gateway, [])


@pytest.mark.unit
class TestBuildGateway:
  """Tests for build_gateway()."""

  @pytest.mark.asyncio
  async def test_builds_from_settings(self):
    settings = Settings(cache=CacheConfig(redis_enabled=True, redis_url="redis://cache.invalid:6379"))
    gateway = build_gateway(settings)
    try:
      assert isinstance(gateway.cache.durable, RedisCacheClient)
      assert len(gateway.orchestrator.news_fetcher.sources) == len(settings.news.rss_feeds) + len(settings.news.reddit_feeds)
      assert gateway.orchestrator.price_fetcher.secondary is not None
      assert gateway.provider is None
      assert gateway.dispatcher.tool_names == ["analyze_crypto_sentiment"]
    finally:
      await gateway.close()
