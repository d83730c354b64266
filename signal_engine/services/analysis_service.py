"""
Live Analysis Service - Live Signal Engine
signal_engine/services/analysis_service.py

Owns the live sessions and drives one analysis cycle per admitted fragment:

    ingest → IngestionThrottle.admit
           → background task: FanOutOrchestrator.run_cycle (under the cycle ceiling)
           → IncoherenceEngine.detect → ReadinessCalculator.calculate
           → finish_cycle (stale results discarded by sequence number)
           → AnalysisPublisher.publish + Redis snapshot
           → trailing cycle for text buffered meanwhile

A failing cycle publishes the empty analysis (degraded=True) so consumers
always hold a valid state.
"""

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import redis
import structlog

from signal_engine.config import Settings, get_settings
from signal_engine.core.exceptions import SessionNotFoundException
from signal_engine.models.analysis import (
    AnalysisUpdate,
    CompositeResponse,
    TruthIndexResponse,
    empty_analysis,
)
from signal_engine.models.enumerations import AdmitReason, ProspectType
from signal_engine.models.signals import MergedSignals, RuleHints
from signal_engine.pipelines.ingestion_throttle import AdmitDecision, IngestionThrottle
from signal_engine.pipelines.orchestrator import FanOutOrchestrator
from signal_engine.pipelines.session_state import SessionState, SessionStore
from signal_engine.pipelines.transcript import tail
from signal_engine.scoring.incoherence_engine import IncoherenceEngine
from signal_engine.scoring.readiness_calculator import ReadinessCalculator, resolve_weights
from signal_engine.scoring.rubric import SCALE_MAX, detect_prospect_type
from signal_engine.services.cache import get_cache
from signal_engine.services.publisher import AnalysisPublisher
from signal_engine.services.redis_cache import RedisCache
from signal_engine.services.scoring_client import ScoringTaskClient
from signal_engine.shutdown import is_shutting_down

logger = structlog.get_logger(__name__)


class LiveAnalysisService:
    """Session lifecycle, cycle scheduling and publication."""

    def __init__(
        self,
        client: ScoringTaskClient,
        publisher: AnalysisPublisher,
        settings: Optional[Settings] = None,
        store: Optional[SessionStore] = None,
        cache_provider: Callable[[], Optional[RedisCache]] = get_cache,
    ):
        self.settings = settings or get_settings()
        self.client = client
        self.publisher = publisher
        self.store = store or SessionStore()
        self.cache_provider = cache_provider

        self.orchestrator = FanOutOrchestrator(client, self.settings)
        self.throttle = IngestionThrottle(
            min_interval=self.settings.MIN_CYCLE_INTERVAL_SECONDS,
            stuck_ceiling=self.settings.STUCK_CYCLE_CEILING_SECONDS,
            max_window_chars=self.settings.MAX_TRANSCRIPT_CHARS,
        )
        self.calculator = ReadinessCalculator(base_weights=self.settings.pillar_weights)
        self.incoherence = IncoherenceEngine(self.settings.HINT_CONFIDENCE_THRESHOLD)
        self._closing = False

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def start_session(
        self,
        session_id: Optional[str] = None,
        prospect_type: Optional[ProspectType] = None,
        pillar_weights: Any = None,
        custom_script_prompt: Optional[str] = None,
    ) -> SessionState:
        state = self.store.create(
            session_id,
            prospect_type=prospect_type,
            weight_overrides=pillar_weights,
            custom_script_prompt=custom_script_prompt,
        )
        state.latest = empty_analysis(
            session_id=state.session_id,
            prospect_type=prospect_type,
            max_score=self._max_score(pillar_weights),
        )
        logger.info(
            "session_started",
            session_id=state.session_id,
            prospect_type=prospect_type.value if prospect_type else None,
        )
        return state

    def stop_session(self, session_id: str) -> SessionState:
        """Discard the session; in-flight cycles are cancelled, not awaited."""
        state = self.store.dispose(session_id)
        if state.trailing_handle is not None:
            state.trailing_handle.cancel()
            state.trailing_handle = None
        for task in state.tasks:
            task.cancel()
        logger.info(
            "session_stopped",
            session_id=session_id,
            cycles=state.cycle_seq,
            stuck_resets=state.stuck_resets,
        )
        return state

    def get_session(self, session_id: str) -> SessionState:
        return self.store.get(session_id)

    def get_latest(self, session_id: str) -> AnalysisUpdate:
        """Latest published update, falling back to the Redis snapshot."""
        if session_id in self.store:
            return self.store.get(session_id).latest
        cache = self.cache_provider()
        if cache is not None:
            try:
                cached = cache.load(session_id)
            except redis.RedisError as e:
                logger.warning("cache_read_failed", session_id=session_id, error=str(e))
                cached = None
            if cached is not None:
                return cached
        raise SessionNotFoundException(session_id)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def ingest(
        self,
        session_id: str,
        fragment: Optional[str],
        now: Optional[float] = None,
    ) -> AdmitDecision:
        state = self.store.get(session_id)
        if self._closing or is_shutting_down():
            return AdmitDecision(False, AdmitReason.SHUTTING_DOWN)

        decision = self.throttle.admit(state, fragment, now)
        if decision.should_run_cycle:
            self._launch(state, decision)
        elif decision.reason == AdmitReason.THROTTLED:
            self._schedule_trailing(state)
        return decision

    def _launch(self, state: SessionState, decision: AdmitDecision) -> None:
        logger.info("cycle_started", session_id=state.session_id, cycle_seq=decision.cycle_seq)
        task = asyncio.get_running_loop().create_task(
            self._run_cycle(state, decision.cycle_seq, decision.snapshot or "")
        )
        state.tasks.append(task)
        task.add_done_callback(lambda t: state.tasks.remove(t) if t in state.tasks else None)

    async def _run_cycle(self, state: SessionState, seq: int, snapshot: str) -> None:
        started = time.perf_counter()
        prospect_type = state.prospect_type or detect_prospect_type(snapshot)
        hints = RuleHints(prospect_type=prospect_type, custom_script_prompt=state.custom_script_prompt)

        try:
            merged = await asyncio.wait_for(
                self.orchestrator.run_cycle(snapshot, hints),
                timeout=self.settings.CYCLE_TIMEOUT_SECONDS,
            )
            error = None
        except asyncio.CancelledError:
            self.throttle.finish_cycle(state, seq)
            raise
        except asyncio.TimeoutError:
            merged, error = None, f"cycle timed out after {self.settings.CYCLE_TIMEOUT_SECONDS}s"
        except Exception as e:
            merged, error = None, f"{type(e).__name__}: {e}"

        current = self.throttle.finish_cycle(state, seq)
        if state.closed:
            return

        if current:
            if merged is None:
                logger.error("cycle_failed", session_id=state.session_id, cycle_seq=seq, error=error)
                update = empty_analysis(
                    session_id=state.session_id,
                    sequence=seq,
                    prospect_type=prospect_type,
                    error=error,
                    max_score=self._max_score(state.weight_overrides),
                )
            else:
                indicators = {**state.indicators, **merged.indicators}
                update = self._build_update(
                    indicators, merged, snapshot, state.weight_overrides,
                    session_id=state.session_id, sequence=seq, prospect_type=prospect_type,
                )
                state.indicators = indicators
            update.duration_ms = round((time.perf_counter() - started) * 1000, 1)
            state.published_seq = seq
            state.latest = update
            try:
                await self.publisher.publish(state.session_id, update)
            except Exception as e:
                # Delivery is best effort; the snapshot and trailing cycle still run
                logger.error("publish_failed", session_id=state.session_id, cycle_seq=seq, error=str(e))
            await self._write_snapshot(state.session_id, update)
            logger.info(
                "cycle_published",
                session_id=state.session_id,
                cycle_seq=seq,
                score=update.composite.score if update.composite else None,
                degraded=update.degraded,
            )

        self._schedule_trailing(state)

    def _schedule_trailing(self, state: SessionState) -> None:
        if state.closed or self._closing or not state.has_pending:
            return
        decision = self.throttle.flush_pending(state)
        if decision.should_run_cycle:
            self._launch(state, decision)
        elif decision.reason == AdmitReason.THROTTLED and state.trailing_handle is None:
            state.trailing_handle = asyncio.get_running_loop().call_later(
                decision.retry_after, self._on_trailing_timer, state
            )

    def _on_trailing_timer(self, state: SessionState) -> None:
        state.trailing_handle = None
        self._schedule_trailing(state)

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def _build_update(
        self,
        indicators: Dict[int, float],
        merged: MergedSignals,
        transcript: str,
        weights: Any,
        session_id: Optional[str] = None,
        sequence: int = 0,
        prospect_type: Optional[ProspectType] = None,
    ) -> AnalysisUpdate:
        composite, truth = self.score(
            indicators,
            weights=weights,
            transcript=transcript,
            hints=merged.incoherence_hints,
            extra_signals=merged.coherence_signals,
        )
        return AnalysisUpdate(
            session_id=session_id,
            sequence=sequence,
            prospect_type=prospect_type,
            indicators=indicators,
            composite=composite,
            truth_index=truth,
            hot_buttons=merged.hot_buttons,
            objections=merged.objections,
            question_coverage=merged.question_coverage,
            insights=merged.insights,
            task_errors=merged.task_errors,
            degraded=bool(merged.task_errors),
        )

    def score(
        self,
        indicators: Dict[Any, Any],
        weights: Any = None,
        transcript: str = "",
        hints: Optional[List[Any]] = None,
        extra_signals: Optional[List[str]] = None,
    ) -> Tuple[CompositeResponse, TruthIndexResponse]:
        """Pure composite + incoherence scoring for one indicator mapping."""
        incoherence = self.incoherence.detect(indicators, transcript, hints, extra_signals)
        composite = self.calculator.calculate(indicators, weights, incoherence.penalty_total)
        return CompositeResponse.from_result(composite), TruthIndexResponse.from_result(incoherence)

    async def analyze_transcript(
        self,
        transcript: str,
        prospect_type: Optional[ProspectType] = None,
        pillar_weights: Any = None,
        custom_script_prompt: Optional[str] = None,
    ) -> AnalysisUpdate:
        """One-shot analysis of a full transcript, outside any session."""
        started = time.perf_counter()
        window = tail(transcript or "", self.settings.MAX_TRANSCRIPT_CHARS)
        prospect_type = prospect_type or detect_prospect_type(window)
        hints = RuleHints(prospect_type=prospect_type, custom_script_prompt=custom_script_prompt)

        try:
            merged = await asyncio.wait_for(
                self.orchestrator.run_cycle(window, hints),
                timeout=self.settings.CYCLE_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            error = f"analysis timed out after {self.settings.CYCLE_TIMEOUT_SECONDS}s"
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
        else:
            error = None

        if error is not None:
            logger.error("analysis_failed", error=error)
            return empty_analysis(
                prospect_type=prospect_type,
                error=error,
                max_score=self._max_score(pillar_weights),
            )

        update = self._build_update(
            merged.indicators, merged, window, pillar_weights, prospect_type=prospect_type
        )
        update.duration_ms = round((time.perf_counter() - started) * 1000, 1)
        return update

    def _max_score(self, weights: Any) -> float:
        resolved = resolve_weights(weights, self.settings.pillar_weights)
        return float(sum(resolved.values()) * SCALE_MAX)

    # ------------------------------------------------------------------
    # Snapshot cache
    # ------------------------------------------------------------------

    async def _write_snapshot(self, session_id: str, update: AnalysisUpdate) -> None:
        try:
            cache = await asyncio.to_thread(self.cache_provider)
            if cache is None:
                return
            await asyncio.to_thread(
                cache.save, session_id, update, self.settings.CACHE_TTL_ANALYSIS
            )
        except redis.RedisError as e:
            logger.warning("cache_write_failed", session_id=session_id, error=str(e))

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def active_tasks(self) -> List[asyncio.Task]:
        tasks: List[asyncio.Task] = []
        for session_id in self.store.ids():
            tasks.extend(t for t in self.store.get(session_id).tasks if not t.done())
        return tasks

    async def wait_idle(self) -> None:
        """Wait until no cycle (including trailing ones started meanwhile) is running."""
        while True:
            tasks = self.active_tasks()
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self) -> None:
        self._closing = True
        tasks = []
        for session_id in self.store.ids():
            state = self.store.get(session_id)
            if state.trailing_handle is not None:
                state.trailing_handle.cancel()
                state.trailing_handle = None
            tasks.extend(state.tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self.client.aclose()
        logger.info("analysis_service_closed", sessions=len(self.store))
