from unittest.mock import MagicMock, patch

import pytest

from registrar.config import settings
from registrar.infrastructure.cache import delete_cache_pattern, get_cache, set_cache


@pytest.fixture(autouse=True)
def cache_enabled(monkeypatch):
    monkeypatch.setattr(settings, "CACHE_ENABLED", True)


@patch("registrar.infrastructure.cache.get_redis")
def test_get_cache_hit(mock_redis):
    """Cached JSON comes back decoded"""
    mock_client = MagicMock()
    mock_client.get.return_value = '{"key": "value"}'
    mock_redis.return_value = mock_client

    assert get_cache("test_key") == {"key": "value"}
    mock_client.get.assert_called_once_with("test_key")


@patch("registrar.infrastructure.cache.get_redis")
def test_get_cache_miss(mock_redis):
    mock_client = MagicMock()
    mock_client.get.return_value = None
    mock_redis.return_value = mock_client

    assert get_cache("test_key") is None


@patch("registrar.infrastructure.cache.get_redis")
def test_get_cache_redis_down(mock_redis):
    """Redis failures read as a miss"""
    mock_redis.side_effect = ConnectionError("Redis error")
    assert get_cache("test_key") is None


@patch("registrar.infrastructure.cache.get_redis")
def test_set_cache(mock_redis):
    mock_client = MagicMock()
    mock_redis.return_value = mock_client

    assert set_cache("test_key", {"key": "value"}, ttl=60) is True
    mock_client.setex.assert_called_once_with("test_key", 60, '{"key": "value"}')


@patch("registrar.infrastructure.cache.get_redis")
def test_set_cache_redis_down(mock_redis):
    mock_redis.side_effect = ConnectionError("Redis error")
    assert set_cache("test_key", {"key": "value"}) is False


@patch("registrar.infrastructure.cache.get_redis")
def test_delete_cache_pattern(mock_redis):
    mock_client = MagicMock()
    mock_client.scan_iter.return_value = iter(["courses:list:1", "courses:list:2"])
    mock_client.delete.return_value = 2
    mock_redis.return_value = mock_client

    assert delete_cache_pattern("courses:list:*") == 2
    mock_client.scan_iter.assert_called_once_with(match="courses:list:*")
    mock_client.delete.assert_called_once_with("courses:list:1", "courses:list:2")


@patch("registrar.infrastructure.cache.get_redis")
def test_disabled_cache_skips_redis(mock_redis, monkeypatch):
    monkeypatch.setattr(settings, "CACHE_ENABLED", False)
    assert get_cache("k") is None
    assert set_cache("k", 1) is False
    assert delete_cache_pattern("k*") == 0
    mock_redis.assert_not_called()
