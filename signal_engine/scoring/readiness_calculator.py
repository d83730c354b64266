# signal_engine/scoring/readiness_calculator.py
"""
Readiness Calculator (Lubometer)
--------------------------------
Deterministic weighted composite over the 7 pillar averages.

Formula:
    contribution_p = effective_average_p × weight_p
    total          = Σ contribution_p
    max_score      = Σ weight_p × 10                (recomputed every call)
    composite      = clamp(total − penalty_total, 0, max_score)

Bands (absolute score):
    ≥ 70  high     ≥ 50  medium     ≥ 30  low     else  no_go

Close blockers run after banding and force no_go:
    P1 ≤ 6  AND P2 ≤ 5       → not enough pain or urgency
    P6 raw ≥ 7 AND P4 ≤ 5    → price sensitive with no money access

Weight configuration accepts None, a mapping {pillar_id: weight} or an ordered
list of {pillar_id, weight} entries (dicts or objects). Missing pillars keep
the base weight, unknown ids and negative / non-numeric weights are ignored,
later entries override earlier ones.
"""
import structlog
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

from signal_engine.models.enumerations import PillarId, ReadinessLevel
from signal_engine.scoring.pillar_calculator import PillarAverage, PillarCalculator
from signal_engine.scoring.rubric import SCALE_MAX, default_weights
from signal_engine.scoring.utils import clamp, coerce_decimal, round2

logger = structlog.get_logger(__name__)

# (threshold, level, interpretation, action), evaluated top-down
_BANDS: List[Tuple[Decimal, ReadinessLevel, str, str]] = [
    (
        Decimal("70"),
        ReadinessLevel.HIGH,
        "High buy probability - prospect is ready and coherent",
        "Push to close",
    ),
    (
        Decimal("50"),
        ReadinessLevel.MEDIUM,
        "Moderate readiness - needs coaching and clarification",
        "Address remaining concerns, trial close, build urgency",
    ),
    (
        Decimal("30"),
        ReadinessLevel.LOW,
        "Low coherence or hidden risks - slow down",
        "Isolate objections, give homework materials to explore, set another meeting",
    ),
]
_NO_GO_BAND = (
    ReadinessLevel.NO_GO,
    "System breakdown or major contradictions - do not close",
    "Do not close - repair trust and consistency first",
)


@dataclass(frozen=True)
class CloseBlocker:
    id: str
    interpretation: str
    action: str


LOW_PAIN_LOW_URGENCY = CloseBlocker(
    id="low_pain_low_urgency",
    interpretation="Not enough pain or urgency to proceed",
    action="Do not close - build pain and urgency first",
)
PRICE_SENSITIVE_NO_MONEY = CloseBlocker(
    id="price_sensitive_no_money",
    interpretation="High price sensitivity with low money access - cannot justify investment",
    action="Do not close - address financial constraints first",
)


@dataclass
class PillarContribution:
    """Per-pillar snapshot inside a CompositeResult."""
    pillar: PillarId
    observed_count: int
    raw_average: Decimal
    effective_average: Decimal
    weight: Decimal
    contribution: Decimal


@dataclass
class CompositeResult:
    """Output of ReadinessCalculator.calculate()."""
    score: Decimal                       # in [0, max_score]
    max_score: Decimal                   # Σ weights × 10
    level: ReadinessLevel
    interpretation: str
    action: str
    total_before_penalties: Decimal
    penalty_total: Decimal
    pillars: Dict[PillarId, PillarContribution] = field(default_factory=dict)
    weights: Dict[PillarId, Decimal] = field(default_factory=dict)
    close_blockers: List[str] = field(default_factory=list)


def _entry_fields(entry: Any) -> Tuple[Any, Any]:
    if isinstance(entry, Mapping):
        pillar = entry.get("pillar_id", entry.get("pillarId", entry.get("id")))
        return pillar, entry.get("weight")
    return getattr(entry, "pillar_id", None), getattr(entry, "weight", None)


def _parse_pillar_id(value: Any) -> Optional[PillarId]:
    if isinstance(value, PillarId):
        return value
    if value is None:
        return None
    text = str(value).strip().upper()
    if text.isdigit():
        text = f"P{text}"
    try:
        return PillarId(text)
    except ValueError:
        return None


def resolve_weights(
    overrides: Any = None,
    base: Optional[Mapping[Any, Any]] = None,
) -> Dict[PillarId, Decimal]:
    """Merge weight overrides onto the base (default) weights."""
    weights = default_weights()
    for source in (base, overrides):
        if not source:
            continue
        entries = (
            [{"pillar_id": k, "weight": v} for k, v in source.items()]
            if isinstance(source, Mapping)
            else list(source)
        )
        for entry in entries:
            raw_pillar, raw_weight = _entry_fields(entry)
            pillar = _parse_pillar_id(raw_pillar)
            weight = coerce_decimal(raw_weight)
            if pillar is None or weight is None or weight < 0:
                continue
            weights[pillar] = weight
    return weights


class ReadinessCalculator:
    """Compute the Lubometer composite with bands and close blockers."""

    def __init__(self, base_weights: Optional[Mapping[Any, Any]] = None):
        self._base_weights = dict(base_weights) if base_weights else None
        self._pillar_calculator = PillarCalculator()

    def calculate(
        self,
        indicators: Optional[Mapping[Any, Any]],
        weights: Any = None,
        penalty_total: Any = 0,
    ) -> CompositeResult:
        """
        Args:
            indicators: indicator id → raw score (1-10). Invalid entries are ignored.
            weights: optional per-pillar weight overrides (see module docstring).
            penalty_total: incoherence penalty magnitude (non-negative).

        Returns:
            CompositeResult; never raises for bad data.
        """
        resolved = resolve_weights(weights, self._base_weights)
        averages = self._pillar_calculator.calculate(indicators)
        penalty = coerce_decimal(penalty_total) or Decimal("0")
        penalty = abs(penalty)

        snapshot: Dict[PillarId, PillarContribution] = {}
        total = Decimal("0")
        for pillar_id, avg in averages.items():
            weight = resolved[pillar_id]
            contribution = avg.effective_average * weight
            total += contribution
            snapshot[pillar_id] = PillarContribution(
                pillar=pillar_id,
                observed_count=avg.observed_count,
                raw_average=round2(avg.raw_average),
                effective_average=round2(avg.effective_average),
                weight=weight,
                contribution=round2(contribution),
            )

        max_score = sum(resolved.values(), Decimal("0")) * SCALE_MAX
        score = round2(clamp(total - penalty, Decimal("0"), max_score))

        level, interpretation, action = self._band(score)
        blockers = self._close_blockers(averages)
        for blocker in blockers:
            # Later blockers win, matching their listed order
            level = ReadinessLevel.NO_GO
            interpretation = blocker.interpretation
            action = blocker.action

        logger.info(
            "composite_calculated",
            score=float(score),
            max_score=float(max_score),
            total_before_penalties=float(total),
            penalty_total=float(penalty),
            level=level.value,
            close_blockers=[b.id for b in blockers],
        )

        return CompositeResult(
            score=score,
            max_score=round2(max_score),
            level=level,
            interpretation=interpretation,
            action=action,
            total_before_penalties=round2(total),
            penalty_total=round2(penalty),
            pillars=snapshot,
            weights=resolved,
            close_blockers=[b.id for b in blockers],
        )

    @staticmethod
    def _band(score: Decimal) -> Tuple[ReadinessLevel, str, str]:
        for threshold, level, interpretation, action in _BANDS:
            if score >= threshold:
                return level, interpretation, action
        return _NO_GO_BAND

    @staticmethod
    def _close_blockers(averages: Dict[PillarId, PillarAverage]) -> List[CloseBlocker]:
        p1 = averages[PillarId.P1].raw_average
        p2 = averages[PillarId.P2].raw_average
        p4 = averages[PillarId.P4].raw_average
        p6_raw = averages[PillarId.P6].raw_average

        blockers: List[CloseBlocker] = []
        if p1 <= Decimal("6") and p2 <= Decimal("5"):
            blockers.append(LOW_PAIN_LOW_URGENCY)
        if p6_raw >= Decimal("7") and p4 <= Decimal("5"):
            blockers.append(PRICE_SENSITIVE_NO_MONEY)
        return blockers
