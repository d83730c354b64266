# tests/test_ingestion_throttle.py

"""
Ingestion Throttle Tests - admit order, at-most-one cycle, stuck-cycle recovery
"""

import pytest

from signal_engine.core.exceptions import DuplicateSessionException, SessionNotFoundException
from signal_engine.models.enumerations import AdmitReason
from signal_engine.pipelines.ingestion_throttle import IngestionThrottle
from signal_engine.pipelines.session_state import SessionState, SessionStore


@pytest.fixture
def throttle():
    return IngestionThrottle(min_interval=2.0, stuck_ceiling=10.0, max_window_chars=200)


@pytest.fixture
def state():
    return SessionState(session_id="s-1")


class TestDrops:

    @pytest.mark.parametrize("fragment", [None, "", "   \n\t "])
    def test_empty(self, throttle, state, fragment):
        decision = throttle.admit(state, fragment, now=0.0)
        assert decision.reason == AdmitReason.EMPTY
        assert not decision.should_run_cycle
        assert state.window == ""

    def test_hallucination(self, throttle, state):
        decision = throttle.admit(state, "Thanks for watching!", now=0.0)
        assert decision.reason == AdmitReason.HALLUCINATION
        assert state.window == ""

    def test_duplicate_ignores_case_and_spacing(self, throttle, state):
        throttle.admit(state, "I need to sell", now=0.0)
        decision = throttle.admit(state, "  i NEED to   sell ", now=5.0)
        assert decision.reason == AdmitReason.DUPLICATE
        assert state.window == "I need to sell"


class TestAdmission:

    def test_first_fragment_starts_cycle(self, throttle, state):
        decision = throttle.admit(state, "We are behind on the mortgage", now=0.0)
        assert decision.should_run_cycle
        assert decision.reason == AdmitReason.STARTED
        assert decision.snapshot == "We are behind on the mortgage"
        assert decision.cycle_seq == 1
        assert state.in_flight

    def test_in_flight_buffers(self, throttle, state):
        throttle.admit(state, "first", now=0.0)
        decision = throttle.admit(state, "second", now=5.0)
        assert decision.reason == AdmitReason.IN_FLIGHT
        assert state.has_pending
        assert state.window == "first second"
        assert state.cycle_seq == 1

    def test_throttled_within_interval(self, throttle, state):
        throttle.admit(state, "first", now=0.0)
        throttle.finish_cycle(state, 1)
        decision = throttle.admit(state, "second", now=0.5)
        assert decision.reason == AdmitReason.THROTTLED
        assert decision.retry_after == pytest.approx(1.5)
        assert state.has_pending

    def test_interval_elapsed_starts_next(self, throttle, state):
        throttle.admit(state, "first", now=0.0)
        throttle.finish_cycle(state, 1)
        decision = throttle.admit(state, "second", now=2.0)
        assert decision.should_run_cycle
        assert decision.cycle_seq == 2
        assert decision.snapshot == "first second"

    def test_at_most_one_cycle_in_flight(self, throttle, state):
        started = [
            throttle.admit(state, f"fragment {i}", now=float(i)).should_run_cycle
            for i in range(8)
        ]
        assert started.count(True) == 1

    def test_window_is_bounded(self, throttle, state):
        for i in range(50):
            throttle.admit(state, f"fragment number {i}", now=float(i))
        assert len(state.window) <= 200
        assert state.window.endswith("fragment number 49")


class TestFinishCycle:

    def test_current_cycle_may_publish(self, throttle, state):
        throttle.admit(state, "first", now=0.0)
        assert throttle.finish_cycle(state, 1) is True
        assert not state.in_flight

    def test_stale_cycle_discarded(self, throttle, state):
        throttle.admit(state, "first", now=0.0)
        # forced reset lets a second cycle start while the first is still running
        throttle.admit(state, "second", now=11.0)
        assert state.cycle_seq == 2
        assert throttle.finish_cycle(state, 1) is False
        assert state.in_flight
        assert throttle.finish_cycle(state, 2) is True

    def test_already_published_sequence(self, throttle, state):
        throttle.admit(state, "first", now=0.0)
        state.published_seq = 1
        assert throttle.finish_cycle(state, 1) is False


class TestStuckRecovery:

    def test_stuck_cycle_self_heals(self, throttle, state):
        throttle.admit(state, "first", now=0.0)
        buffered = throttle.admit(state, "second", now=9.9)
        assert buffered.reason == AdmitReason.IN_FLIGHT

        decision = throttle.admit(state, "third", now=10.0)
        assert decision.should_run_cycle
        assert state.stuck_resets == 1

    def test_recover_stuck_noop_when_idle(self, throttle, state):
        assert throttle.recover_stuck(state, now=100.0) is False


class TestFlushPending:

    def test_nothing_pending(self, throttle, state):
        assert throttle.flush_pending(state, now=0.0).reason == AdmitReason.EMPTY

    def test_trailing_cycle(self, throttle, state):
        throttle.admit(state, "first", now=0.0)
        throttle.admit(state, "second", now=1.0)
        throttle.finish_cycle(state, 1)

        early = throttle.flush_pending(state, now=1.5)
        assert early.reason == AdmitReason.THROTTLED
        assert early.retry_after == pytest.approx(0.5)

        decision = throttle.flush_pending(state, now=2.0)
        assert decision.should_run_cycle
        assert decision.snapshot == "first second"
        assert not state.has_pending


class TestSessionStore:

    def test_create_get_dispose(self):
        store = SessionStore()
        state = store.create("abc")
        assert store.get("abc") is state
        assert "abc" in store and len(store) == 1
        store.dispose("abc")
        assert state.closed
        with pytest.raises(SessionNotFoundException):
            store.get("abc")

    def test_generated_id(self):
        state = SessionStore().create()
        assert len(state.session_id) == 32

    def test_duplicate(self):
        store = SessionStore()
        store.create("abc")
        with pytest.raises(DuplicateSessionException):
            store.create("abc")

    def test_dispose_unknown(self):
        with pytest.raises(SessionNotFoundException):
            SessionStore().dispose("missing")
