"""
Health Check Router - Live Signal Engine
signal_engine/routers/health.py

Returns service health with real dependency checks (Redis, scoring provider
configuration) plus live session counts.
"""
import asyncio
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Dict
from datetime import datetime, timezone

import redis

from signal_engine.config import settings
from signal_engine.services.redis_cache import RedisCache
from signal_engine.core.dependencies import get_analysis_service
from signal_engine.services.analysis_service import LiveAnalysisService

router = APIRouter(tags=["Health"])


#  Schemas


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    dependencies: Dict[str, str]
    live_sessions: int = 0


#  Dependency Health Checks


async def check_redis() -> str:
    """Ping the snapshot store off the event loop."""
    try:
        store = RedisCache()
        await asyncio.to_thread(store.client.ping)
        store.client.close()
    except (redis.RedisError, OSError) as e:
        return f"unavailable: {str(e)[:100]}"
    return "healthy"


def check_scoring_provider() -> str:
    """The scoring provider is usable only with an API key configured."""
    if settings.OPENAI_API_KEY is None:
        return "unhealthy: OPENAI_API_KEY not configured"
    return f"healthy (model: {settings.SCORING_MODEL})"


#  Main Health Check Route


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={
        200: {"description": "Scoring provider configured"},
        503: {"description": "Scoring provider missing"},
    },
    summary="Health check",
    description="Check health of the scoring provider and the Redis snapshot cache.",
)
async def health_check(service: LiveAnalysisService = Depends(get_analysis_service)):
    """Redis is optional (snapshot cache); only the scoring provider is required."""
    dependencies = {
        "scoring_provider": check_scoring_provider(),
        "redis": await check_redis(),
    }

    healthy = dependencies["scoring_provider"].startswith("healthy")
    response = HealthResponse(
        status="healthy" if healthy else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=settings.APP_VERSION,
        dependencies=dependencies,
        live_sessions=len(service.store),
    )

    if healthy:
        return response
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response.model_dump(mode="json"),
    )
