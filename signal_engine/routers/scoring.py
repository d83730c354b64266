"""
routers/scoring.py - Stateless scoring endpoints

Endpoints:
  POST /api/v1/scoring/composite  - Lubometer + Truth Index for given indicator scores
  POST /api/v1/scoring/analyze    - One-shot fan-out analysis of a full transcript
"""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from signal_engine.core.dependencies import get_analysis_service
from signal_engine.models.analysis import AnalysisUpdate, CompositeResponse, TruthIndexResponse
from signal_engine.models.enumerations import ProspectType
from signal_engine.models.signals import IncoherenceHint, PillarWeightOverride
from signal_engine.services.analysis_service import LiveAnalysisService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/scoring", tags=["Scoring"])


# =====================================================================
# Request / Response Models
# =====================================================================

class CompositeRequest(BaseModel):
    """Indicator scores keyed by indicator id (1-27). Unknown ids and
    out-of-range scores are ignored by the calculator."""
    indicators: Dict[int, float] = Field(default_factory=dict)
    pillar_weights: Optional[List[PillarWeightOverride]] = None
    transcript: str = Field(default="", max_length=50000)
    hints: List[IncoherenceHint] = Field(default_factory=list)


class CompositeScoringResponse(BaseModel):
    composite: CompositeResponse
    truth_index: TruthIndexResponse


class AnalyzeRequest(BaseModel):
    transcript: str = Field(min_length=1, max_length=200000)
    prospect_type: Optional[ProspectType] = None
    pillar_weights: Optional[List[PillarWeightOverride]] = None
    custom_script_prompt: Optional[str] = Field(default=None, max_length=4000)


# =====================================================================
# Endpoints
# =====================================================================

@router.post(
    "/composite",
    response_model=CompositeScoringResponse,
    summary="Score indicator values",
    description="Deterministic composite (Lubometer) and Truth Index for a set of indicator scores.",
)
async def score_composite(
    body: CompositeRequest,
    service: LiveAnalysisService = Depends(get_analysis_service),
) -> CompositeScoringResponse:
    composite, truth = service.score(
        body.indicators,
        weights=body.pillar_weights,
        transcript=body.transcript,
        hints=body.hints,
    )
    logger.info(f"Composite scored: {composite.score}/{composite.max_score} ({composite.level.value})")
    return CompositeScoringResponse(composite=composite, truth_index=truth)


@router.post(
    "/analyze",
    response_model=AnalysisUpdate,
    summary="Analyze a transcript",
    description="Runs every scoring task once over the newest window of a full transcript.",
)
async def analyze_transcript(
    body: AnalyzeRequest,
    service: LiveAnalysisService = Depends(get_analysis_service),
) -> AnalysisUpdate:
    return await service.analyze_transcript(
        body.transcript,
        prospect_type=body.prospect_type,
        pillar_weights=body.pillar_weights,
        custom_script_prompt=body.custom_script_prompt,
    )
