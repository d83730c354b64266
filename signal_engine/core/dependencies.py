"""
Dependencies - Live Signal Engine
signal_engine/core/dependencies.py

FastAPI dependency injection for the live analysis service.
"""

from functools import lru_cache

from signal_engine.config import get_settings
from signal_engine.services.analysis_service import LiveAnalysisService
from signal_engine.services.publisher import ConnectionManager
from signal_engine.services.scoring_client import ChatCompletionScoringClient, ScoringTaskClient


@lru_cache()
def get_connection_manager() -> ConnectionManager:
    """Get cached WebSocket ConnectionManager instance."""
    return ConnectionManager()


@lru_cache()
def get_scoring_client() -> ScoringTaskClient:
    """Get cached scoring task client instance."""
    return ChatCompletionScoringClient(get_settings())


@lru_cache()
def get_analysis_service() -> LiveAnalysisService:
    """Get cached LiveAnalysisService instance."""
    return LiveAnalysisService(
        client=get_scoring_client(),
        publisher=get_connection_manager(),
        settings=get_settings(),
    )
