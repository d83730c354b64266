"""
Fan-out Orchestrator
signal_engine/pipelines/orchestrator.py

Runs one analysis cycle:

  clean window
      │
      ├── pillar_p1 … pillar_p7 ─┐
      ├── hot_buttons            │
      ├── objections ────────────┼── (if ≥1 objection) objection_fear
      ├── diagnostic_questions   │                      objection_reframe
      ├── truth_index            │                      objection_rebuttal
      └── insights ──────────────┘
                                 ▼
                   merge → dedupe → evidence check → MergedSignals

Every task runs under its own timeout. A failed task contributes its
documented default and an entry in task_errors; it never fails the cycle.
The merge only happens after every task has settled.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, List, Optional, Tuple

import structlog

from signal_engine.core.exceptions import (
    MalformedTaskOutputException,
    ScoringTaskException,
    ScoringTaskTimeoutException,
)
from signal_engine.models.enumerations import Coherence
from signal_engine.models.signals import (
    HotButton,
    Insights,
    MergedSignals,
    Objection,
    QuestionCoverage,
    RuleHints,
)
from signal_engine.pipelines.tasks import (
    DEPENDENT_FIELDS,
    PILLAR_TASK_PREFIX,
    ScoringTaskRequest,
    TaskSpec,
    TruthIndexOutput,
    build_dependent_tasks,
    build_task_set,
)
from signal_engine.pipelines.transcript import clean_transcript, tail
from signal_engine.scoring.text_similarity import deduplicate, validate_evidence

logger = structlog.get_logger(__name__)


class FanOutOrchestrator:
    """Fan a cycle out to independent scoring tasks and merge what comes back."""

    def __init__(self, client: Any, settings: Any):
        self.client = client
        self.settings = settings

    async def run_cycle(
        self,
        text_window: str,
        rule_hints: Optional[RuleHints] = None,
    ) -> MergedSignals:
        hints = rule_hints or RuleHints()
        started = time.perf_counter()
        window = clean_transcript(text_window)

        specs = build_task_set(self.settings, hints.prospect_type)
        outputs, errors = await self._run_batch(specs, window, self.settings.TASK_TIMEOUT_SECONDS)

        objections: List[Objection] = outputs["objections"]
        objections = deduplicate(
            objections,
            key=lambda o: o.objection_text,
            score=lambda o: o.probability,
            threshold=self.settings.DEDUP_OVERLAP_THRESHOLD,
        )[: self.settings.MAX_OBJECTIONS]

        dependent = build_dependent_tasks(self.settings, objections, hints.custom_script_prompt)
        if dependent:
            enrichment, dep_errors = await self._run_batch(
                dependent, window, self.settings.DEPENDENT_TASK_TIMEOUT_SECONDS
            )
            errors.update(dep_errors)
            objections = self._enrich_objections(objections, enrichment)

        merged = self._merge(outputs, objections, window)
        merged.task_errors = errors
        merged.duration_ms = round((time.perf_counter() - started) * 1000, 1)

        logger.info(
            "cycle_merged",
            tasks=len(specs) + len(dependent),
            failed_tasks=sorted(errors),
            indicators=len(merged.indicators),
            hot_buttons=len(merged.hot_buttons),
            objections=len(merged.objections),
            duration_ms=merged.duration_ms,
        )
        return merged

    async def _run_batch(
        self,
        specs: List[TaskSpec],
        window: str,
        timeout: float,
    ) -> Tuple[Dict[str, Any], Dict[str, str]]:
        results = await asyncio.gather(
            *(self._run_task(spec, window, timeout) for spec in specs)
        )
        outputs: Dict[str, Any] = {}
        errors: Dict[str, str] = {}
        for spec, (output, error) in zip(specs, results):
            outputs[spec.name] = output
            if error is not None:
                errors[spec.name] = error
        return outputs, errors

    async def _run_task(self, spec: TaskSpec, window: str, timeout: float) -> Tuple[Any, Optional[str]]:
        request = ScoringTaskRequest(
            task=spec.name,
            rubric_slice=spec.rubric_slice,
            text=tail(window, spec.window_chars),
            max_output_tokens=spec.max_output_tokens,
            context=dict(spec.context),
        )
        try:
            payload = await asyncio.wait_for(self.client.run(request), timeout=timeout)
            if not isinstance(payload, dict):
                raise MalformedTaskOutputException(spec.name, f"expected object, got {type(payload).__name__}")
            return spec.parse(payload), None
        except asyncio.TimeoutError:
            error: ScoringTaskException = ScoringTaskTimeoutException(spec.name, timeout)
        except ScoringTaskException as e:
            error = e
        except Exception as e:
            error = ScoringTaskException(spec.name, f"{type(e).__name__}: {e}")

        logger.warning("task_failed", task=spec.name, error=str(error))
        return spec.default(), str(error)

    @staticmethod
    def _enrich_objections(objections: List[Objection], enrichment: Dict[str, Any]) -> List[Objection]:
        enriched: List[Objection] = []
        for index, objection in enumerate(objections):
            updates = {}
            for task_name, field_name in DEPENDENT_FIELDS.items():
                text = enrichment.get(task_name, {}).get(index)
                if text:
                    updates[field_name] = text
            enriched.append(objection.model_copy(update=updates) if updates else objection)
        return enriched

    def _merge(self, outputs: Dict[str, Any], objections: List[Objection], window: str) -> MergedSignals:
        # First writer wins; pillar parsers already restrict ids to their pillar
        indicators: Dict[int, float] = {}
        for name, output in outputs.items():
            if not name.startswith(PILLAR_TASK_PREFIX):
                continue
            for ind_id, score in output.items():
                indicators.setdefault(ind_id, score)

        hot_buttons: List[HotButton] = deduplicate(
            outputs["hot_buttons"],
            key=lambda h: h.quote,
            score=lambda h: h.score,
            threshold=self.settings.DEDUP_OVERLAP_THRESHOLD,
        )
        hot_buttons = [
            h.model_copy(update={"evidence_verified": self._verified(h.quote, window)})
            for h in hot_buttons
        ]
        objections = [
            o.model_copy(update={"evidence_verified": self._verified(o.objection_text, window)})
            for o in objections
        ]

        truth: TruthIndexOutput = outputs["truth_index"]
        coverage: QuestionCoverage = outputs["diagnostic_questions"]
        insights: Insights = outputs["insights"]

        return MergedSignals(
            indicators=indicators,
            hot_buttons=hot_buttons,
            objections=objections,
            question_coverage=coverage,
            incoherence_hints=truth.hints,
            coherence_signals=truth.coherence_signals,
            overall_coherence=truth.overall_coherence or Coherence.UNKNOWN,
            insights=insights,
        )

    def _verified(self, evidence: str, window: str) -> bool:
        return validate_evidence(
            evidence,
            window,
            word_match_ratio=self.settings.EVIDENCE_WORD_MATCH_RATIO,
            fuzzy_threshold=self.settings.EVIDENCE_FUZZY_MATCH_THRESHOLD,
        )
