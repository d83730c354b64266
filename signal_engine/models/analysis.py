"""
Analysis Response Models
signal_engine/models/analysis.py

Pydantic models for the full-state update pushed to the presentation channel
and returned by the scoring endpoints.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from signal_engine.models.enumerations import (
    Coherence,
    PillarId,
    ProspectType,
    ReadinessLevel,
    RuleId,
    RuleSource,
)
from signal_engine.models.signals import (
    HotButton,
    Insights,
    Objection,
    QuestionCoverage,
)
from signal_engine.scoring.incoherence_engine import IncoherenceResult
from signal_engine.scoring.readiness_calculator import CompositeResult


class PillarSnapshot(BaseModel):
    pillar_id: PillarId
    observed_count: int
    raw_average: float
    effective_average: float
    weight: float
    contribution: float


class CompositeResponse(BaseModel):
    """Lubometer output."""
    score: float
    max_score: float
    level: ReadinessLevel
    interpretation: str
    action: str
    total_before_penalties: float
    penalty_total: float
    pillars: List[PillarSnapshot] = Field(default_factory=list)
    weights: Dict[str, float] = Field(default_factory=dict)
    close_blockers: List[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: CompositeResult) -> "CompositeResponse":
        return cls(
            score=float(result.score),
            max_score=float(result.max_score),
            level=result.level,
            interpretation=result.interpretation,
            action=result.action,
            total_before_penalties=float(result.total_before_penalties),
            penalty_total=float(result.penalty_total),
            pillars=[
                PillarSnapshot(
                    pillar_id=p.pillar,
                    observed_count=p.observed_count,
                    raw_average=float(p.raw_average),
                    effective_average=float(p.effective_average),
                    weight=float(p.weight),
                    contribution=float(p.contribution),
                )
                for p in result.pillars.values()
            ],
            weights={pid.value: float(w) for pid, w in result.weights.items()},
            close_blockers=list(result.close_blockers),
        )


class TriggeredRuleResponse(BaseModel):
    rule_id: RuleId
    name: str
    evidence: str
    confidence: float = Field(ge=0, le=1)
    penalty: float = Field(le=0)
    source: RuleSource


class TruthIndexResponse(BaseModel):
    """Coherence ("truth") score and the rules behind it."""
    truth_score: float = Field(ge=0, le=100)
    penalty_total: float = Field(ge=0)
    overall_coherence: Coherence
    triggered_rules: List[TriggeredRuleResponse] = Field(default_factory=list)
    coherence_signals: List[str] = Field(default_factory=list)
    red_flags: List[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: IncoherenceResult) -> "TruthIndexResponse":
        return cls(
            truth_score=float(result.truth_score),
            penalty_total=float(result.penalty_total),
            overall_coherence=result.overall_coherence,
            triggered_rules=[
                TriggeredRuleResponse(
                    rule_id=r.rule_id,
                    name=r.name,
                    evidence=r.evidence,
                    confidence=float(r.confidence),
                    penalty=float(r.penalty),
                    source=r.source,
                )
                for r in result.triggered_rules
            ],
            coherence_signals=list(result.coherence_signals),
            red_flags=result.red_flags,
        )


class AnalysisUpdate(BaseModel):
    """Full analysis state for one session, published once per cycle."""
    session_id: Optional[str] = None
    sequence: int = 0
    prospect_type: Optional[ProspectType] = None
    indicators: Dict[int, float] = Field(default_factory=dict)
    composite: Optional[CompositeResponse] = None
    truth_index: Optional[TruthIndexResponse] = None
    hot_buttons: List[HotButton] = Field(default_factory=list)
    objections: List[Objection] = Field(default_factory=list)
    question_coverage: QuestionCoverage = Field(default_factory=QuestionCoverage)
    insights: Insights = Field(default_factory=Insights)
    task_errors: Dict[str, str] = Field(default_factory=dict)
    degraded: bool = False
    error: Optional[str] = None
    duration_ms: float = 0.0
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def empty_composite(max_score: float = 80.0) -> CompositeResponse:
    """Zero-score composite used when no analysis could be produced."""
    return CompositeResponse(
        score=0.0,
        max_score=max_score,
        level=ReadinessLevel.LOW,
        interpretation="Insufficient data for analysis",
        action="Continue conversation to gather more information",
        total_before_penalties=0.0,
        penalty_total=0.0,
    )


def empty_analysis(
    session_id: Optional[str] = None,
    sequence: int = 0,
    prospect_type: Optional[ProspectType] = None,
    error: Optional[str] = None,
    max_score: float = 80.0,
) -> AnalysisUpdate:
    """The documented fallback published when a whole cycle fails."""
    return AnalysisUpdate(
        session_id=session_id,
        sequence=sequence,
        prospect_type=prospect_type,
        composite=empty_composite(max_score),
        truth_index=TruthIndexResponse(
            truth_score=100.0,
            penalty_total=0.0,
            overall_coherence=Coherence.UNKNOWN,
        ),
        degraded=error is not None,
        error=error,
    )
