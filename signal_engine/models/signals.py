#signal_engine/models/signals.py
"""
Signal models produced by scoring tasks and merged per cycle.

Required fields (ids, scores, quotes) fail validation and the item is dropped
by the task parser; optional text fields that arrive with the wrong type are
reset to their default instead of failing the whole item.
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Any, Dict, List, Literal, Optional

from signal_engine.models.enumerations import Coherence, PillarId, ProspectType, RuleId


def _optional_text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    return ""


def _text_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [v.strip() for v in value if isinstance(v, str) and v.strip()]


class HotButton(BaseModel):
    """An emotional trigger indicator detected with a verbatim quote."""
    indicator_id: int = Field(ge=1, le=27)
    name: str = ""
    description: str = ""
    quote: str = Field(min_length=1)
    score: float = Field(ge=1, le=10)
    prompt: str = ""
    evidence_verified: bool = False

    @field_validator("quote", mode="before")
    @classmethod
    def strip_quote(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("name", "description", "prompt", mode="before")
    @classmethod
    def optional_text(cls, v: Any) -> str:
        return _optional_text(v)


class Objection(BaseModel):
    """A prospect objection with its fear / reframe / rebuttal enrichment."""
    objection_text: str = Field(min_length=1)
    probability: float = Field(default=0.5, ge=0, le=1)
    fear: str = ""
    whisper: str = ""
    rebuttal_script: str = ""
    evidence_verified: bool = False

    @field_validator("objection_text", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("fear", "whisper", "rebuttal_script", mode="before")
    @classmethod
    def optional_text(cls, v: Any) -> str:
        return _optional_text(v)


class QuestionCoverage(BaseModel):
    """Which diagnostic questions the closer has asked (0-based indices)."""
    prospect_type: Optional[ProspectType] = None
    questions: List[str] = Field(default_factory=list)
    asked: List[int] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)
    completion_percentage: float = Field(default=0.0, ge=0, le=100)

    @model_validator(mode="after")
    def calculate_completion(self) -> "QuestionCoverage":
        """Keep asked indices in range, unique and sorted; derive the percentage."""
        if self.questions and not self.total:
            self.total = len(self.questions)
        self.asked = sorted({i for i in self.asked if 0 <= i < self.total})
        self.completion_percentage = (
            round(100.0 * len(self.asked) / self.total, 1) if self.total else 0.0
        )
        return self


class IncoherenceHint(BaseModel):
    """A rule detection suggested by the truth-index task."""
    rule_id: RuleId
    evidence: str = ""
    confidence: float = Field(ge=0, le=1)

    @field_validator("rule_id", mode="before")
    @classmethod
    def normalize_rule_id(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("evidence", mode="before")
    @classmethod
    def optional_text(cls, v: Any) -> str:
        return _optional_text(v)


class Insights(BaseModel):
    summary: str = ""
    key_motivators: List[str] = Field(default_factory=list)
    concerns: List[str] = Field(default_factory=list)
    recommendation: str = ""
    closing_readiness: Literal["ready", "almost", "not_ready"] = "not_ready"

    @field_validator("summary", "recommendation", mode="before")
    @classmethod
    def optional_text(cls, v: Any) -> str:
        return _optional_text(v)

    @field_validator("key_motivators", "concerns", mode="before")
    @classmethod
    def optional_list(cls, v: Any) -> List[str]:
        return _text_list(v)

    @field_validator("closing_readiness", mode="before")
    @classmethod
    def normalize_readiness(cls, v: Any) -> str:
        text = v.strip().lower().replace("-", "_").replace(" ", "_") if isinstance(v, str) else ""
        return text if text in ("ready", "almost", "not_ready") else "not_ready"


class MergedSignals(BaseModel):
    """Everything one analysis cycle extracted, after merge / dedup / validation."""
    indicators: Dict[int, float] = Field(default_factory=dict)
    hot_buttons: List[HotButton] = Field(default_factory=list)
    objections: List[Objection] = Field(default_factory=list)
    question_coverage: QuestionCoverage = Field(default_factory=QuestionCoverage)
    incoherence_hints: List[IncoherenceHint] = Field(default_factory=list)
    coherence_signals: List[str] = Field(default_factory=list)
    overall_coherence: Coherence = Coherence.UNKNOWN
    insights: Insights = Field(default_factory=Insights)
    task_errors: Dict[str, str] = Field(default_factory=dict)
    duration_ms: float = 0.0


class PillarWeightOverride(BaseModel):
    """One entry of the ordered weight configuration."""
    pillar_id: PillarId
    weight: float = Field(ge=0)


class RuleHints(BaseModel):
    """Per-cycle context forwarded to the scoring tasks."""
    prospect_type: Optional[ProspectType] = None
    custom_script_prompt: Optional[str] = None
