# signal_engine/scoring/incoherence_engine.py
"""
Incoherence Rule Engine (Truth Index)
-------------------------------------
Detects contradictions between indicator groups and turns them into penalties.

Rule table (each rule fires at most once per cycle):

    T1  High Pain + Low Urgency              P1 ≥ 7      AND P2 ≤ 4        −15
    T2  High Desire + Low Decisiveness       desire ≥ 7  AND P3 ≤ 4        −15
    T3  High Money + High Price Sensitivity  P4 ≥ 7      AND P6 raw ≥ 8    −10
    T4  Claims Authority + Needs Approval    text pattern                  −10
    T5  High Desire + Low Responsibility     desire ≥ 7  AND P5 ≤ 5        −15

    desire = max(indicator 3, indicator 4) over the observed ones

Aggregates come from observed indicators only. A rule whose aggregates are
not observed does not fire locally, so silence is never penalised.

External hints (truth-index scoring task) can fire a catalogued rule when their
confidence reaches the threshold; local evaluation wins for the same rule.

    truth_score       = clamp(100 − penalty_total, 0, 100)
    overall_coherence = high ≥ 75, medium ≥ 50, else low
"""
import re
import structlog
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from signal_engine.models.enumerations import Coherence, PillarId, RuleId, RuleSource
from signal_engine.scoring.pillar_calculator import normalize_indicators, observed_average
from signal_engine.scoring.utils import clamp, coerce_decimal

logger = structlog.get_logger(__name__)

DEFAULT_HINT_CONFIDENCE = Decimal("0.7")

# "ask my wife", "check with my partner", "need to talk to", ...
_APPROVAL_CUE = re.compile(
    r"\b(?:"
    r"(?:ask|check with|talk to|run it by|run this by)\s+my\s+"
    r"(?:wife|husband|partner|spouse|business partner|attorney|lawyer|accountant|family|dad|mom|son|daughter|brother|sister)"
    r"|need to (?:ask|check|talk to|run it by)"
    r")\b",
    re.IGNORECASE,
)


@dataclass
class RuleContext:
    """Aggregates a rule predicate can read (None = unobserved)."""
    indicators: Dict[int, Decimal]
    pillars: Dict[PillarId, Optional[Decimal]]
    desire: Optional[Decimal]
    transcript: str


@dataclass(frozen=True)
class IncoherenceRule:
    id: RuleId
    name: str
    detail: str
    penalty: Decimal
    predicate: Callable[[RuleContext], bool]


@dataclass
class TriggeredRule:
    rule_id: RuleId
    name: str
    evidence: str
    confidence: Decimal
    penalty: Decimal  # non-positive
    source: RuleSource


@dataclass
class IncoherenceResult:
    """Output of IncoherenceEngine.detect()."""
    penalty_total: Decimal  # non-negative magnitude
    triggered_rules: List[TriggeredRule] = field(default_factory=list)
    truth_score: Decimal = Decimal("100")
    coherence_signals: List[str] = field(default_factory=list)
    overall_coherence: Coherence = Coherence.HIGH

    @property
    def red_flags(self) -> List[str]:
        return [f"{r.rule_id.value}: {r.name} - {r.evidence}" for r in self.triggered_rules]


def _both(a: Optional[Decimal], b: Optional[Decimal]) -> bool:
    return a is not None and b is not None


def _t1(ctx: RuleContext) -> bool:
    p1, p2 = ctx.pillars[PillarId.P1], ctx.pillars[PillarId.P2]
    return _both(p1, p2) and p1 >= 7 and p2 <= 4


def _t2(ctx: RuleContext) -> bool:
    p3 = ctx.pillars[PillarId.P3]
    return _both(ctx.desire, p3) and ctx.desire >= 7 and p3 <= 4


def _t3(ctx: RuleContext) -> bool:
    p4, p6 = ctx.pillars[PillarId.P4], ctx.pillars[PillarId.P6]
    return _both(p4, p6) and p4 >= 7 and p6 >= 8


def _t4(ctx: RuleContext) -> bool:
    authority = ctx.indicators.get(9)
    permission = ctx.indicators.get(12)
    if authority is None:
        return False
    if permission is not None and authority >= 8 and permission <= 3:
        return True
    return authority >= 7 and bool(_APPROVAL_CUE.search(ctx.transcript))


def _t5(ctx: RuleContext) -> bool:
    p5 = ctx.pillars[PillarId.P5]
    return _both(ctx.desire, p5) and ctx.desire >= 7 and p5 <= 5


RULES: List[IncoherenceRule] = [
    IncoherenceRule(RuleId.T1, "High Pain + Low Urgency",
                    "Claims deep pain but no urgency to act", Decimal("-15"), _t1),
    IncoherenceRule(RuleId.T2, "High Desire + Low Decisiveness",
                    "Wants change but avoids decision", Decimal("-15"), _t2),
    IncoherenceRule(RuleId.T3, "High Money + High Price Sensitivity",
                    "Can afford it, but still resists price", Decimal("-10"), _t3),
    IncoherenceRule(RuleId.T4, "Claims Authority + Needs Approval",
                    "Claims decision authority but reveals a need for approval", Decimal("-10"), _t4),
    IncoherenceRule(RuleId.T5, "High Desire + Low Responsibility",
                    "Craves result, but doesn't own the change", Decimal("-15"), _t5),
]
RULES_BY_ID: Dict[RuleId, IncoherenceRule] = {r.id: r for r in RULES}


def _hint_fields(hint: Any) -> tuple:
    if isinstance(hint, Mapping):
        return (
            hint.get("rule_id", hint.get("ruleId")),
            hint.get("evidence"),
            hint.get("confidence"),
        )
    return getattr(hint, "rule_id", None), getattr(hint, "evidence", None), getattr(hint, "confidence", None)


def coherence_level(truth_score: Decimal) -> Coherence:
    if truth_score >= 75:
        return Coherence.HIGH
    if truth_score >= 50:
        return Coherence.MEDIUM
    return Coherence.LOW


class IncoherenceEngine:
    """Evaluate the rule table against one indicator mapping."""

    def __init__(self, hint_confidence_threshold: Any = DEFAULT_HINT_CONFIDENCE):
        self.hint_confidence_threshold = coerce_decimal(hint_confidence_threshold)
        if self.hint_confidence_threshold is None:
            self.hint_confidence_threshold = DEFAULT_HINT_CONFIDENCE

    def detect(
        self,
        indicators: Optional[Mapping[Any, Any]],
        transcript_window: str = "",
        hints: Optional[Iterable[Any]] = None,
        extra_signals: Optional[Iterable[str]] = None,
    ) -> IncoherenceResult:
        ctx = self._context(indicators, transcript_window or "")
        triggered: Dict[RuleId, TriggeredRule] = {}

        for rule in RULES:
            if rule.predicate(ctx):
                triggered[rule.id] = TriggeredRule(
                    rule_id=rule.id,
                    name=rule.name,
                    evidence=rule.detail,
                    confidence=Decimal("1"),
                    penalty=rule.penalty,
                    source=RuleSource.LOCAL,
                )

        for hint in hints or []:
            raw_id, evidence, raw_confidence = _hint_fields(hint)
            try:
                rule_id = RuleId(str(getattr(raw_id, "value", raw_id)).strip().upper())
            except ValueError:
                continue
            confidence = coerce_decimal(raw_confidence)
            if rule_id in triggered or confidence is None:
                continue
            if confidence < self.hint_confidence_threshold or confidence > 1:
                continue
            rule = RULES_BY_ID[rule_id]
            triggered[rule_id] = TriggeredRule(
                rule_id=rule_id,
                name=rule.name,
                evidence=(evidence or "").strip() or "Detected from conversation",
                confidence=confidence,
                penalty=rule.penalty,
                source=RuleSource.HINT,
            )

        # Catalogue order keeps the output stable across calls
        ordered = [triggered[r.id] for r in RULES if r.id in triggered]
        penalty_total = sum((-r.penalty for r in ordered), Decimal("0"))
        truth_score = clamp(Decimal("100") - penalty_total, Decimal("0"), Decimal("100"))

        signals = self._coherence_signals(ctx)
        for signal in extra_signals or []:
            text = (signal or "").strip()
            if text and text not in signals:
                signals.append(text)

        result = IncoherenceResult(
            penalty_total=penalty_total,
            triggered_rules=ordered,
            truth_score=truth_score,
            coherence_signals=signals,
            overall_coherence=coherence_level(truth_score),
        )

        if ordered:
            logger.info(
                "incoherence_detected",
                rules=[r.rule_id.value for r in ordered],
                sources=[r.source.value for r in ordered],
                penalty_total=float(penalty_total),
                truth_score=float(truth_score),
            )
        return result

    @staticmethod
    def _context(indicators: Optional[Mapping[Any, Any]], transcript: str) -> RuleContext:
        cleaned = normalize_indicators(indicators)
        pillars = {pid: observed_average(cleaned, pid) for pid in PillarId}
        desire_values = [cleaned[i] for i in (3, 4) if i in cleaned]
        return RuleContext(
            indicators=cleaned,
            pillars=pillars,
            desire=max(desire_values) if desire_values else None,
            transcript=transcript,
        )

    @staticmethod
    def _coherence_signals(ctx: RuleContext) -> List[str]:
        p1, p2 = ctx.pillars[PillarId.P1], ctx.pillars[PillarId.P2]
        p3, p5 = ctx.pillars[PillarId.P3], ctx.pillars[PillarId.P5]
        signals: List[str] = []
        if _both(p1, p2) and p1 >= 7 and p2 >= 6:
            signals.append("Pain aligns with urgency")
        if _both(ctx.desire, p3) and ctx.desire >= 7 and p3 >= 6:
            signals.append("Desire aligns with decisiveness")
        if p5 is not None and p5 >= 7:
            signals.append("High ownership/responsibility")
        return signals
