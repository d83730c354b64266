"""
Scoring task catalogue
signal_engine/pipelines/tasks.py

One TaskSpec per scoring task the orchestrator fans out. Each spec knows
the rubric slice it covers, how much of the window it sees, its output-size
hint, how to parse the raw JSON it gets back, and the default used when the
task fails.

Parsers never raise on bad content: fields that fail shape checks are dropped
one by one and the rest of the payload survives.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

from signal_engine.models.enumerations import Coherence, PillarId, ProspectType
from signal_engine.models.signals import (
    HotButton,
    IncoherenceHint,
    Insights,
    Objection,
    QuestionCoverage,
)
from signal_engine.scoring.rubric import HOT_BUTTON_IDS, INDICATORS, PILLARS, questions_for
from signal_engine.scoring.utils import coerce_decimal


@dataclass
class ScoringTaskRequest:
    """What a scoring task client receives for one task."""
    task: str
    rubric_slice: str
    text: str
    max_output_tokens: int
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TaskSpec:
    name: str
    rubric_slice: str
    window_chars: int
    max_output_tokens: int
    parse: Callable[[Mapping[str, Any]], Any]
    default: Callable[[], Any]
    context: Dict[str, Any] = field(default_factory=dict)


class TruthIndexOutput(BaseModel):
    """Parsed output of the truth_index task."""
    hints: List[IncoherenceHint] = Field(default_factory=list)
    coherence_signals: List[str] = Field(default_factory=list)
    overall_coherence: Coherence = Coherence.UNKNOWN


def _first(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in payload:
            return payload[key]
    return None


def _items(payload: Mapping[str, Any], *keys: str) -> List[Any]:
    value = _first(payload, *keys)
    return value if isinstance(value, list) else []


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------

def parse_indicators(payload: Mapping[str, Any], pillar: Optional[PillarId] = None) -> Dict[int, float]:
    """
    Indicator id → score. With a pillar, only that pillar's ids are kept.

    Accepts {"indicators": {...}}, {"indicatorSignals": {...}} or a bare mapping.
    """
    raw = _first(payload, "indicators", "indicatorSignals", "indicator_signals")
    if not isinstance(raw, Mapping):
        raw = payload
    allowed = set(PILLARS[pillar].indicator_ids) if pillar else set(INDICATORS)

    scores: Dict[int, float] = {}
    for key, value in raw.items():
        try:
            ind_id = int(key)
        except (TypeError, ValueError):
            continue
        score = coerce_decimal(value)
        if ind_id not in allowed or score is None or not (1 <= score <= 10):
            continue
        scores[ind_id] = float(score)
    return scores


def parse_hot_buttons(payload: Mapping[str, Any]) -> List[HotButton]:
    results: List[HotButton] = []
    for item in _items(payload, "hot_buttons", "hotButtons", "hotButtonDetails"):
        if not isinstance(item, Mapping):
            continue
        data = {
            "indicator_id": _first(item, "indicator_id", "id"),
            "quote": item.get("quote"),
            "score": item.get("score"),
            "prompt": _first(item, "prompt", "contextualPrompt"),
        }
        try:
            hot_button = HotButton.model_validate(data)
        except ValidationError:
            continue
        if hot_button.indicator_id not in HOT_BUTTON_IDS:
            continue
        indicator = INDICATORS[hot_button.indicator_id]
        hot_button.name = indicator.label
        hot_button.description = indicator.description
        results.append(hot_button)
    return results


def parse_objections(payload: Mapping[str, Any]) -> List[Objection]:
    results: List[Objection] = []
    for item in _items(payload, "objections"):
        if isinstance(item, str):
            item = {"objection_text": item}
        if not isinstance(item, Mapping):
            continue
        data = {
            "objection_text": _first(item, "objection_text", "objectionText", "text"),
            "fear": item.get("fear"),
            "whisper": item.get("whisper"),
            "rebuttal_script": _first(item, "rebuttal_script", "rebuttalScript"),
        }
        probability = coerce_decimal(item.get("probability"))
        if probability is not None and 0 <= probability <= 1:
            data["probability"] = float(probability)
        try:
            results.append(Objection.model_validate(data))
        except ValidationError:
            continue
    return results


def parse_questions(payload: Mapping[str, Any], questions: List[str]) -> QuestionCoverage:
    asked: List[int] = []
    for value in _items(payload, "asked", "asked_questions", "askedQuestions"):
        if isinstance(value, bool):
            continue
        try:
            asked.append(int(value))
        except (TypeError, ValueError):
            continue
    return QuestionCoverage(questions=questions, total=len(questions), asked=asked)


def parse_truth_index(payload: Mapping[str, Any]) -> TruthIndexOutput:
    hints: List[IncoherenceHint] = []
    for item in _items(payload, "hints", "detected_rules", "detectedRules"):
        if not isinstance(item, Mapping):
            continue
        data = {
            "rule_id": _first(item, "rule_id", "ruleId", "rule"),
            "evidence": item.get("evidence"),
            "confidence": item.get("confidence"),
        }
        try:
            hints.append(IncoherenceHint.model_validate(data))
        except ValidationError:
            continue

    signals = [
        s.strip()
        for s in _items(payload, "coherence_signals", "coherenceSignals")
        if isinstance(s, str) and s.strip()
    ]

    raw_coherence = _first(payload, "overall_coherence", "overallCoherence")
    try:
        coherence = Coherence(str(raw_coherence).strip().lower())
    except ValueError:
        coherence = Coherence.UNKNOWN

    return TruthIndexOutput(hints=hints, coherence_signals=signals, overall_coherence=coherence)


def parse_insights(payload: Mapping[str, Any]) -> Insights:
    return Insights.model_validate({
        "summary": payload.get("summary"),
        "key_motivators": _first(payload, "key_motivators", "keyMotivators"),
        "concerns": payload.get("concerns"),
        "recommendation": payload.get("recommendation"),
        "closing_readiness": _first(payload, "closing_readiness", "closingReadiness"),
    })


def parse_enrichment(field_name: str) -> Callable[[Mapping[str, Any]], Dict[int, str]]:
    """
    Parser for an objection-dependent task: objection index → text.

    Accepts {"items": [{"index": 0, "<field>": "..."}]} or a list of strings
    in objection order under the field name.
    """
    def parse(payload: Mapping[str, Any]) -> Dict[int, str]:
        enriched: Dict[int, str] = {}
        items = _items(payload, "items", field_name, f"{field_name}s")
        for position, item in enumerate(items):
            if isinstance(item, str):
                index, text = position, item
            elif isinstance(item, Mapping):
                index, text = item.get("index", position), item.get(field_name)
            else:
                continue
            if isinstance(index, bool) or not isinstance(text, str) or not text.strip():
                continue
            try:
                enriched[int(index)] = text.strip()
            except (TypeError, ValueError):
                continue
        return enriched
    return parse


# ---------------------------------------------------------------------------
# Task set
# ---------------------------------------------------------------------------

PILLAR_TASK_PREFIX = "pillar_"
DEPENDENT_FIELDS = {
    "objection_fear": "fear",
    "objection_reframe": "whisper",
    "objection_rebuttal": "rebuttal_script",
}


def _pillar_slice(pillar: PillarId) -> str:
    spec = PILLARS[pillar]
    members = ", ".join(f"{i} {INDICATORS[i].label}" for i in spec.indicator_ids)
    reverse = " (reverse scored: high = more price sensitive)" if spec.reverse_scored else ""
    return f"{pillar.value} {spec.name}{reverse}: {members}"


def build_task_set(
    settings: Any,
    prospect_type: Optional[ProspectType] = None,
) -> List[TaskSpec]:
    """The fixed fan-out batch for one cycle."""
    questions = questions_for(prospect_type)
    tasks: List[TaskSpec] = []

    for pillar in PillarId:
        tasks.append(TaskSpec(
            name=f"{PILLAR_TASK_PREFIX}{pillar.value.lower()}",
            rubric_slice=_pillar_slice(pillar),
            window_chars=settings.PILLAR_WINDOW_CHARS,
            max_output_tokens=settings.SMALL_TASK_MAX_TOKENS,
            parse=lambda payload, p=pillar: parse_indicators(payload, p),
            default=dict,
            context={"pillar_id": pillar.value},
        ))

    hot_slice = ", ".join(f"{i} {INDICATORS[i].label}" for i in sorted(HOT_BUTTON_IDS))
    tasks.extend([
        TaskSpec(
            name="hot_buttons",
            rubric_slice=f"Hot-button indicators: {hot_slice}",
            window_chars=settings.TRIGGER_WINDOW_CHARS,
            max_output_tokens=settings.LARGE_TASK_MAX_TOKENS,
            parse=parse_hot_buttons,
            default=list,
        ),
        TaskSpec(
            name="objections",
            rubric_slice="Objections, hesitations and concerns raised by the prospect",
            window_chars=settings.OBJECTION_WINDOW_CHARS,
            max_output_tokens=settings.LARGE_TASK_MAX_TOKENS,
            parse=parse_objections,
            default=list,
        ),
        TaskSpec(
            name="diagnostic_questions",
            rubric_slice="\n".join(f"{i}. {q}" for i, q in enumerate(questions)),
            window_chars=settings.QUESTION_WINDOW_CHARS,
            max_output_tokens=settings.SMALL_TASK_MAX_TOKENS,
            parse=lambda payload, q=questions: parse_questions(payload, q),
            default=lambda q=questions: QuestionCoverage(questions=q, total=len(q)),
            context={"prospect_type": prospect_type.value if prospect_type else None},
        ),
        TaskSpec(
            name="truth_index",
            rubric_slice="Incoherence rules T1-T5 and coherence signals",
            window_chars=settings.TRUTH_WINDOW_CHARS,
            max_output_tokens=settings.SMALL_TASK_MAX_TOKENS,
            parse=parse_truth_index,
            default=TruthIndexOutput,
        ),
        TaskSpec(
            name="insights",
            rubric_slice="Summary, key motivators, concerns, recommendation, closing readiness",
            window_chars=settings.INSIGHTS_WINDOW_CHARS,
            max_output_tokens=settings.SMALL_TASK_MAX_TOKENS,
            parse=parse_insights,
            default=Insights,
            context={"prospect_type": prospect_type.value if prospect_type else None},
        ),
    ])
    return tasks


def build_dependent_tasks(
    settings: Any,
    objections: List[Objection],
    custom_script_prompt: Optional[str] = None,
) -> List[TaskSpec]:
    """Fear / reframe / rebuttal enrichment, only built when objections exist."""
    if not objections:
        return []
    listing = "\n".join(f"{i}. {o.objection_text}" for i, o in enumerate(objections))
    tasks: List[TaskSpec] = []
    for name, field_name in DEPENDENT_FIELDS.items():
        context: Dict[str, Any] = {"objections": [o.objection_text for o in objections]}
        if name == "objection_rebuttal" and custom_script_prompt:
            context["custom_script_prompt"] = custom_script_prompt
        tasks.append(TaskSpec(
            name=name,
            rubric_slice=f"{field_name} for each objection:\n{listing}",
            window_chars=settings.DEPENDENT_WINDOW_CHARS,
            max_output_tokens=settings.SMALL_TASK_MAX_TOKENS,
            parse=parse_enrichment(field_name),
            default=dict,
            context=context,
        ))
    return tasks
