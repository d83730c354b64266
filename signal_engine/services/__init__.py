"""
Services module for the Live Signal Engine.
"""

from signal_engine.services.cache import get_cache, reset_cache
from signal_engine.services.redis_cache import RedisCache

__all__ = [
    "get_cache",
    "reset_cache",
    "RedisCache",
]
