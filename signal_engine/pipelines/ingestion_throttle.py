"""
Ingestion Throttle
signal_engine/pipelines/ingestion_throttle.py

Decides, per committed transcript fragment, whether to start an analysis
cycle, buffer the text for the next one, or drop it.

Order of checks in admit():
  1. empty / hallucination / duplicate  -> dropped, window untouched
  2. stuck-cycle recovery               -> forced reset after the hard ceiling
  3. append to the bounded window
  4. cycle in flight                    -> buffered (in_flight)
  5. minimum interval not elapsed       -> buffered (throttled)
  6. otherwise                          -> cycle started, snapshot returned

At most one cycle per session runs at a time.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Iterable, Optional

import structlog

from signal_engine.models.enumerations import AdmitReason
from signal_engine.pipelines.session_state import SessionState
from signal_engine.pipelines.transcript import (
    append_bounded,
    is_hallucination,
    normalize_fragment,
)

logger = structlog.get_logger(__name__)


@dataclass
class AdmitDecision:
    should_run_cycle: bool
    reason: AdmitReason
    snapshot: Optional[str] = None
    cycle_seq: Optional[int] = None
    retry_after: float = 0.0  # seconds until a buffered fragment may run


class IngestionThrottle:
    """Per-session gate in front of the fan-out orchestrator."""

    def __init__(
        self,
        min_interval: float = 2.0,
        stuck_ceiling: float = 30.0,
        max_window_chars: int = 8000,
        hallucination_phrases: Optional[Iterable[str]] = None,
    ):
        self.min_interval = min_interval
        self.stuck_ceiling = stuck_ceiling
        self.max_window_chars = max_window_chars
        self.hallucination_phrases = list(hallucination_phrases) if hallucination_phrases else None

    def admit(
        self,
        state: SessionState,
        fragment: Optional[str],
        now: Optional[float] = None,
    ) -> AdmitDecision:
        now = time.monotonic() if now is None else now
        normalized = normalize_fragment(fragment)

        if not normalized:
            return AdmitDecision(False, AdmitReason.EMPTY)

        if is_hallucination(normalized, self.hallucination_phrases):
            logger.debug("fragment_dropped", session_id=state.session_id, reason="hallucination")
            return AdmitDecision(False, AdmitReason.HALLUCINATION)

        if normalized == state.last_fragment:
            logger.debug("fragment_dropped", session_id=state.session_id, reason="duplicate")
            return AdmitDecision(False, AdmitReason.DUPLICATE)

        self.recover_stuck(state, now)

        state.last_fragment = normalized
        state.window = append_bounded(state.window, fragment, self.max_window_chars)

        if state.in_flight:
            state.has_pending = True
            return AdmitDecision(False, AdmitReason.IN_FLIGHT)

        wait = self._remaining_interval(state, now)
        if wait > 0:
            state.has_pending = True
            return AdmitDecision(False, AdmitReason.THROTTLED, retry_after=wait)

        return self._start_cycle(state, now)

    def finish_cycle(self, state: SessionState, seq: int) -> bool:
        """
        Clear the in-flight flag for `seq`.

        Returns True when `seq` is still the latest started cycle and newer
        than the last published one, i.e. its result may be published.
        """
        if seq == state.cycle_seq:
            state.in_flight = False
            state.in_flight_since = None
        current = seq == state.cycle_seq and seq > state.published_seq
        if not current:
            logger.info(
                "stale_cycle_discarded",
                session_id=state.session_id,
                cycle_seq=seq,
                latest_seq=state.cycle_seq,
                published_seq=state.published_seq,
            )
        return current

    def flush_pending(self, state: SessionState, now: Optional[float] = None) -> AdmitDecision:
        """Start a trailing cycle for buffered text when allowed."""
        now = time.monotonic() if now is None else now
        self.recover_stuck(state, now)

        if not state.has_pending or not state.window:
            return AdmitDecision(False, AdmitReason.EMPTY)
        if state.in_flight:
            return AdmitDecision(False, AdmitReason.IN_FLIGHT)

        wait = self._remaining_interval(state, now)
        if wait > 0:
            return AdmitDecision(False, AdmitReason.THROTTLED, retry_after=wait)

        return self._start_cycle(state, now)

    def recover_stuck(self, state: SessionState, now: float) -> bool:
        """Force-clear an in-flight flag older than the hard ceiling."""
        if not state.in_flight or state.in_flight_since is None:
            return False
        elapsed = now - state.in_flight_since
        if elapsed < self.stuck_ceiling:
            return False

        state.in_flight = False
        state.in_flight_since = None
        state.stuck_resets += 1
        logger.warning(
            "stuck_cycle_reset",
            session_id=state.session_id,
            cycle_seq=state.cycle_seq,
            elapsed_seconds=round(elapsed, 3),
            stuck_resets=state.stuck_resets,
        )
        return True

    def _remaining_interval(self, state: SessionState, now: float) -> float:
        if state.last_cycle_started_at is None:
            return 0.0
        return max(0.0, self.min_interval - (now - state.last_cycle_started_at))

    def _start_cycle(self, state: SessionState, now: float) -> AdmitDecision:
        state.in_flight = True
        state.in_flight_since = now
        state.last_cycle_started_at = now
        state.cycle_seq += 1
        state.has_pending = False
        logger.debug("cycle_admitted", session_id=state.session_id, cycle_seq=state.cycle_seq)
        return AdmitDecision(
            True,
            AdmitReason.STARTED,
            snapshot=state.window,
            cycle_seq=state.cycle_seq,
        )
