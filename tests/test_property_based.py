# tests/test_property_based.py
"""
Property-Based Tests - composite and truth index invariants

Hypothesis tests with max_examples=300, covering:
  - ReadinessCalculator bounds, idempotence, neutrality and weight handling
  - IncoherenceEngine truth score bounds and penalty accounting
  - Ingestion throttle at-most-one-cycle
"""

from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from signal_engine.models.enumerations import AdmitReason, PillarId
from signal_engine.pipelines.ingestion_throttle import IngestionThrottle
from signal_engine.pipelines.session_state import SessionState
from signal_engine.scoring.incoherence_engine import RULES_BY_ID, IncoherenceEngine
from signal_engine.scoring.readiness_calculator import ReadinessCalculator
from signal_engine.scoring.rubric import PILLARS
from signal_engine.scoring.text_similarity import deduplicate
from signal_engine.models.signals import Objection

# ---------------------------------------------------------------------------
# Shared strategies
# ---------------------------------------------------------------------------

score_st = st.floats(min_value=1.0, max_value=10.0, allow_nan=False, allow_infinity=False)

indicators_st = st.dictionaries(
    keys=st.integers(min_value=1, max_value=27),
    values=score_st,
    max_size=27,
)

# Anything a scoring task might send back
noisy_indicators_st = st.dictionaries(
    keys=st.one_of(st.integers(min_value=-5, max_value=40), st.text(max_size=3)),
    values=st.one_of(
        st.floats(allow_nan=True, allow_infinity=True),
        st.integers(min_value=-100, max_value=100),
        st.text(max_size=5),
        st.none(),
        st.booleans(),
    ),
    max_size=30,
)

weight_st = st.floats(min_value=0.0, max_value=5.0, allow_nan=False, allow_infinity=False)

weights_st = st.lists(
    st.fixed_dictionaries({
        "pillar_id": st.sampled_from([p.value for p in PillarId]),
        "weight": weight_st,
    }),
    max_size=10,
)

penalty_st = st.sampled_from([0, 10, 15, 20, 25, 30, 40, 45, 55, 65])


class TestCompositeProperties:

    @given(indicators=noisy_indicators_st, weights=weights_st, penalty=penalty_st)
    @settings(max_examples=300)
    def test_composite_bounded(self, indicators, weights, penalty):
        result = ReadinessCalculator().calculate(indicators, weights, penalty)
        assert Decimal("0") <= result.score <= result.max_score

    @given(indicators=indicators_st, weights=weights_st)
    @settings(max_examples=300)
    def test_max_equals_weight_sum_times_ten(self, indicators, weights):
        result = ReadinessCalculator().calculate(indicators, weights)
        expected = sum(result.weights.values(), Decimal("0")) * 10
        assert result.max_score == expected.quantize(Decimal("0.01"))

    @given(indicators=indicators_st, penalty=penalty_st)
    @settings(max_examples=300)
    def test_idempotent(self, indicators, penalty):
        calculator = ReadinessCalculator()
        assert calculator.calculate(indicators, penalty_total=penalty) == \
            calculator.calculate(indicators, penalty_total=penalty)

    @given(indicators=indicators_st)
    @settings(max_examples=300)
    def test_unobserved_pillars_contribute_five_times_weight(self, indicators):
        result = ReadinessCalculator().calculate(indicators)
        for pillar_id, pillar in PILLARS.items():
            if not any(i in indicators for i in pillar.indicator_ids):
                snapshot = result.pillars[pillar_id]
                assert snapshot.contribution == (Decimal("5") * snapshot.weight).quantize(Decimal("0.01"))

    @given(value=score_st)
    @settings(max_examples=300)
    def test_reverse_pillar_mirrors(self, value):
        indicators = {21: value, 22: value, 23: value}
        p6 = ReadinessCalculator().calculate(indicators).pillars[PillarId.P6]
        assert p6.raw_average + p6.effective_average == Decimal("11")

    @given(indicators=indicators_st, weight=weight_st)
    @settings(max_examples=300)
    def test_override_precedence(self, indicators, weight):
        calculator = ReadinessCalculator(base_weights={"P2": 4.0})
        result = calculator.calculate(indicators, weights=[{"pillar_id": "P2", "weight": weight}])
        assert result.weights[PillarId.P2] == Decimal(str(weight))


class TestTruthIndexProperties:

    @given(indicators=noisy_indicators_st)
    @settings(max_examples=300)
    def test_truth_score_bounded(self, indicators):
        result = IncoherenceEngine().detect(indicators, "I need to ask my wife")
        assert Decimal("0") <= result.truth_score <= Decimal("100")

    @given(indicators=indicators_st)
    @settings(max_examples=300)
    def test_penalty_is_sum_of_fired_rules(self, indicators):
        result = IncoherenceEngine().detect(indicators)
        expected = sum((-RULES_BY_ID[r.rule_id].penalty for r in result.triggered_rules), Decimal("0"))
        assert result.penalty_total == expected
        assert len({r.rule_id for r in result.triggered_rules}) == len(result.triggered_rules)


class TestThrottleProperties:

    @given(gaps=st.lists(st.floats(min_value=0.0, max_value=3.0), min_size=1, max_size=40))
    @settings(max_examples=300)
    def test_at_most_one_cycle_without_finish(self, gaps):
        throttle = IngestionThrottle(min_interval=2.0, stuck_ceiling=1000.0)
        state = SessionState(session_id="prop")
        now = 0.0
        started = 0
        for i, gap in enumerate(gaps):
            now += gap
            if throttle.admit(state, f"fragment {i}", now=now).reason == AdmitReason.STARTED:
                started += 1
        assert started == 1


class TestDeduplicationProperties:

    @given(probabilities=st.lists(st.floats(min_value=0.0, max_value=1.0), min_size=1, max_size=8))
    @settings(max_examples=300)
    def test_identical_texts_keep_highest(self, probabilities):
        items = [Objection(objection_text="the price is too high", probability=p) for p in probabilities]
        kept = deduplicate(items, key=lambda o: o.objection_text, score=lambda o: o.probability)
        assert len(kept) == 1
        assert kept[0].probability == max(probabilities)
