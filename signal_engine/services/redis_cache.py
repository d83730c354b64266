"""
Analysis Snapshot Store - Live Signal Engine
signal_engine/services/redis_cache.py

Keeps the latest AnalysisUpdate per session in Redis so a consumer in another
process, or one that joins late, can read it. Snapshots expire by TTL;
stopping a session leaves its last snapshot readable until then.
"""
from typing import Optional

import redis
import structlog
from pydantic import ValidationError

from signal_engine.config import settings
from signal_engine.models.analysis import AnalysisUpdate

logger = structlog.get_logger(__name__)

KEY_PREFIX = "analysis"


def analysis_key(session_id: str) -> str:
    return f"{KEY_PREFIX}:{session_id}"


class RedisCache:
    """Latest-analysis snapshots keyed by session id."""

    def __init__(self, url: Optional[str] = None):
        self.client = redis.from_url(
            url or settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
        )

    def load(self, session_id: str) -> Optional[AnalysisUpdate]:
        """Snapshot for a session, or None when absent or unreadable."""
        raw = self.client.get(analysis_key(session_id))
        if not raw:
            return None
        try:
            return AnalysisUpdate.model_validate_json(raw)
        except ValidationError as e:
            # Written by an older schema; treat as a miss until it expires
            logger.warning("snapshot_unreadable", session_id=session_id, errors=e.error_count())
            return None

    def save(self, session_id: str, update: AnalysisUpdate, ttl_seconds: int) -> None:
        self.client.setex(analysis_key(session_id), ttl_seconds, update.model_dump_json())
