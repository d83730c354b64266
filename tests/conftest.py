# tests/conftest.py

"""
Pytest Fixtures - Shared settings, stub scoring client and services

SAMPLE INDICATOR REFERENCE (indicator id → pillar):
- P1 Perceived Spread: 1-4     - P5 Responsibility: 17-20
- P2 Urgency:          5-8     - P6 Price Sensitivity (reverse): 21-23
- P3 Decisiveness:     9-12    - P7 Trust: 24-27
- P4 Available Money:  13-16
"""

import asyncio
from typing import Any, Dict, Optional

import pytest
from fastapi.testclient import TestClient

from signal_engine.config import Settings
from signal_engine.core.dependencies import get_analysis_service, get_connection_manager
from signal_engine.main import app
from signal_engine.pipelines.tasks import ScoringTaskRequest
from signal_engine.services.analysis_service import LiveAnalysisService
from signal_engine.services.publisher import ConnectionManager, InMemoryPublisher
from signal_engine.services.scoring_client import ScoringTaskClient
from signal_engine.shutdown import clear_shutdown


# =============================================================================
# STUB SCORING CLIENT
# =============================================================================

class StubScoringClient(ScoringTaskClient):
    """
    Returns a canned dict per task name.

    responses: task → dict, or callable(request) → dict
    delays:    task → seconds to sleep before answering
    failures:  task → exception to raise
    """

    def __init__(
        self,
        responses: Optional[Dict[str, Any]] = None,
        delays: Optional[Dict[str, float]] = None,
        failures: Optional[Dict[str, Exception]] = None,
    ):
        self.responses = responses or {}
        self.delays = delays or {}
        self.failures = failures or {}
        self.requests = []
        self.closed = False

    async def run(self, request: ScoringTaskRequest) -> Dict[str, Any]:
        self.requests.append(request)
        delay = self.delays.get(request.task, self.delays.get("*", 0))
        if delay:
            await asyncio.sleep(delay)
        if request.task in self.failures:
            raise self.failures[request.task]
        response = self.responses.get(request.task, {})
        if callable(response):
            response = response(request)
        return response

    async def aclose(self) -> None:
        self.closed = True

    def tasks_called(self):
        return [r.task for r in self.requests]


# =============================================================================
# SAMPLE DATA
# =============================================================================

def _pillar_scores(**pillars: float) -> Dict[int, float]:
    """Indicator mapping with every indicator of the named pillars set, e.g. P1=8."""
    ranges = {
        "P1": range(1, 5), "P2": range(5, 9), "P3": range(9, 13), "P4": range(13, 17),
        "P5": range(17, 21), "P6": range(21, 24), "P7": range(24, 28),
    }
    scores: Dict[int, float] = {}
    for pillar, value in pillars.items():
        for ind_id in ranges[pillar]:
            scores[ind_id] = value
    return scores


@pytest.fixture
def sample_responses():
    """Well-formed output for every fan-out task."""
    return {
        "pillar_p1": {"indicators": {"1": 8, "2": 8, "3": 8, "4": 8}},
        "pillar_p2": {"indicators": {"5": 8, "6": 8, "7": 8, "8": 8}},
        "pillar_p3": {"indicators": {"9": 3, "10": 3, "11": 3, "12": 3}},
        "hot_buttons": {"hot_buttons": [
            {"id": 1, "quote": "we are three months behind on the mortgage", "score": 9,
             "prompt": "What happens if the bank schedules the auction?"},
        ]},
        "objections": {"objections": [
            {"objection_text": "I need to think about the price", "probability": 0.8},
        ]},
        "diagnostic_questions": {"asked": [0, 2]},
        "truth_index": {"hints": [], "coherence_signals": [], "overall_coherence": "medium"},
        "insights": {
            "summary": "Behind on payments and worried about the auction.",
            "key_motivators": ["save my credit"],
            "concerns": ["price"],
            "recommendation": "Build urgency around the auction date.",
            "closing_readiness": "almost",
        },
        "objection_fear": {"items": [{"index": 0, "fear": "Overpaying"}]},
        "objection_reframe": {"items": [{"index": 0, "whisper": "You keep control"}]},
        "objection_rebuttal": {"items": [{"index": 0, "rebuttal_script": "Let's compare numbers."}]},
    }


@pytest.fixture
def pillar_scores():
    return _pillar_scores


@pytest.fixture
def sample_transcript():
    return (
        "Honestly we are three months behind on the mortgage and I got a default notice. "
        "I want this done, but I need to think about the price before anything."
    )


# =============================================================================
# SETTINGS / SERVICE FIXTURES
# =============================================================================

@pytest.fixture(autouse=True)
def _reset_shutdown_flag():
    clear_shutdown()
    yield
    clear_shutdown()


@pytest.fixture
def test_settings():
    """Fast settings: no minimum interval, short timeouts."""
    return Settings(
        OPENAI_API_KEY=None,
        MIN_CYCLE_INTERVAL_SECONDS=0,
        STUCK_CYCLE_CEILING_SECONDS=5,
        TASK_TIMEOUT_SECONDS=0.5,
        DEPENDENT_TASK_TIMEOUT_SECONDS=0.5,
        CYCLE_TIMEOUT_SECONDS=2,
    )


@pytest.fixture
def publisher():
    return InMemoryPublisher()


@pytest.fixture
def make_client():
    """The StubScoringClient class, for tests that need custom responses."""
    return StubScoringClient


@pytest.fixture
def stub_client(sample_responses):
    return StubScoringClient(responses=sample_responses)


@pytest.fixture
def service(stub_client, publisher, test_settings):
    """LiveAnalysisService with the stub client and no Redis."""
    return LiveAnalysisService(
        client=stub_client,
        publisher=publisher,
        settings=test_settings,
        cache_provider=lambda: None,
    )


# =============================================================================
# FASTAPI TEST CLIENT FIXTURE
# =============================================================================

@pytest.fixture
def api_service(stub_client, test_settings):
    manager = ConnectionManager()
    svc = LiveAnalysisService(
        client=stub_client,
        publisher=manager,
        settings=test_settings,
        cache_provider=lambda: None,
    )
    app.dependency_overrides[get_analysis_service] = lambda: svc
    app.dependency_overrides[get_connection_manager] = lambda: manager
    yield svc
    app.dependency_overrides.clear()


@pytest.fixture
def client(api_service):
    """TestClient for the FastAPI application with the stub-backed service."""
    return TestClient(app)
