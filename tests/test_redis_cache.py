"""
Snapshot Store Tests - Live Signal Engine
tests/test_redis_cache.py

Tests for the Redis-backed analysis snapshot store: hits, misses, TTL,
unreadable payloads, and graceful degradation when Redis is unavailable.
"""
import pytest
from unittest.mock import patch, MagicMock

import redis

from signal_engine.models.analysis import empty_analysis
from signal_engine.services.redis_cache import RedisCache, analysis_key
from signal_engine.services.cache import get_cache, reset_cache


@pytest.fixture(autouse=True)
def _fresh_singleton():
    reset_cache()
    yield
    reset_cache()


@pytest.fixture
def mock_client():
    with patch("signal_engine.services.redis_cache.redis.from_url") as mock_from_url:
        client = MagicMock()
        mock_from_url.return_value = client
        yield client


class TestRedisCache:
    """Tests for the RedisCache class."""

    def test_init_uses_url(self):
        with patch("signal_engine.services.redis_cache.redis.from_url") as mock_from_url:
            cache = RedisCache("redis://cache:6379/2")
            assert mock_from_url.call_args.args[0] == "redis://cache:6379/2"
            assert mock_from_url.call_args.kwargs["decode_responses"] is True
            assert cache.client is mock_from_url.return_value

    def test_save_and_load(self, mock_client):
        cache = RedisCache()
        update = empty_analysis(session_id="call-1", sequence=3)

        cache.save("call-1", update, 120)
        mock_client.setex.assert_called_once_with("analysis:call-1", 120, update.model_dump_json())

        mock_client.get.return_value = update.model_dump_json()
        result = cache.load("call-1")
        mock_client.get.assert_called_with("analysis:call-1")
        assert result.session_id == "call-1"
        assert result.sequence == 3
        assert result.composite.score == 0.0

    def test_load_miss(self, mock_client):
        mock_client.get.return_value = None
        assert RedisCache().load("missing") is None

    def test_unreadable_snapshot_is_a_miss(self, mock_client):
        mock_client.get.return_value = '{"sequence": "not a number"}'
        assert RedisCache().load("call-1") is None

    def test_analysis_key(self):
        assert analysis_key("abc") == "analysis:abc"


class TestCacheSingleton:
    """Tests for get_cache / reset_cache."""

    def test_unavailable_returns_none(self):
        with patch("signal_engine.services.cache.RedisCache") as mock_cache_cls:
            mock_cache_cls.return_value.client.ping.side_effect = redis.ConnectionError("refused")
            assert get_cache() is None

    def test_retries_after_outage(self):
        with patch("signal_engine.services.cache.RedisCache") as mock_cache_cls:
            mock_cache_cls.return_value.client.ping.side_effect = [redis.ConnectionError("refused"), True]
            assert get_cache() is None
            assert get_cache() is mock_cache_cls.return_value

    def test_singleton_reused(self):
        with patch("signal_engine.services.cache.RedisCache") as mock_cache_cls:
            first = get_cache()
            second = get_cache()
            assert first is second
            mock_cache_cls.assert_called_once()

    def test_reset_reconnects(self):
        with patch("signal_engine.services.cache.RedisCache") as mock_cache_cls:
            get_cache()
            reset_cache()
            get_cache()
            assert mock_cache_cls.call_count == 2
