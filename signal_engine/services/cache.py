"""
Snapshot Store Singleton - Live Signal Engine
signal_engine/services/cache.py

One shared RedisCache per process. Live sessions never depend on it: when
Redis cannot be reached the provider returns None and the next call retries.
"""
import logging
from typing import Optional

import redis

from signal_engine.services.redis_cache import RedisCache

logger = logging.getLogger(__name__)

_cache: Optional[RedisCache] = None


def get_cache() -> Optional[RedisCache]:
    """Return the connected snapshot store, or None while Redis is unreachable."""
    global _cache
    if _cache is None:
        candidate = RedisCache()
        try:
            candidate.client.ping()
        except (redis.RedisError, ConnectionError) as e:
            logger.warning(f"Redis unavailable, snapshots disabled: {e}")
            return None
        _cache = candidate
    return _cache


def reset_cache() -> None:
    """Drop the shared store so the next get_cache() reconnects."""
    global _cache
    _cache = None
