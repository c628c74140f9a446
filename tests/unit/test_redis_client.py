"""Unit tests for RedisCacheClient with the redis client mocked. No network calls."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from crypto_sentiment.cache.redis import RedisCacheClient
from crypto_sentiment.errors import CacheBackendError


def client_with(mock: MagicMock) -> RedisCacheClient:
  client = RedisCacheClient(prefix="cs:")
  client._client = mock
  client._initialized = True
  return client


@pytest.mark.unit
class TestRedisCacheClient:
  """Tests for key prefixing and error wrapping."""

  @pytest.mark.asyncio
  async def test_prefixed_keys(self):
    mock = MagicMock()
    mock.get = AsyncMock(return_value="v")
    mock.setex = AsyncMock()
    client = client_with(mock)
    assert await client.get("analysis:1") == "v"
    mock.get.assert_awaited_with("cs:analysis:1")
    await client.set_with_ttl("k", 60, "v")
    mock.setex.assert_awaited_with("cs:k", 60, "v")

  @pytest.mark.asyncio
  async def test_keys_strip_prefix(self):
    async def scan_iter(match):
      for key in ("cs:news:6h", "cs:prices:BTC"):
        yield key

    mock = MagicMock()
    mock.scan_iter = scan_iter
    assert await client_with(mock).keys() == ["news:6h", "prices:BTC"]

  @pytest.mark.asyncio
  async def test_errors_wrapped(self):
    mock = MagicMock()
    mock.get = AsyncMock(side_effect=ConnectionError("refused"))
    with pytest.raises(CacheBackendError) as exc_info:
      await client_with(mock).get("k")
    assert isinstance(exc_info.value.original_error, ConnectionError)

  @pytest.mark.asyncio
  async def test_delete_nothing(self):
    assert await RedisCacheClient().delete() == 0

  @pytest.mark.asyncio
  async def test_close(self):
    mock = MagicMock()
    mock.aclose = AsyncMock()
    client = client_with(mock)
    await client.close()
    mock.aclose.assert_awaited_once()
    assert client._client is None
