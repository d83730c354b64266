# tests/test_tasks.py

"""
Scoring Task Parser Tests - malformed fields are dropped one by one
"""

from signal_engine.models.enumerations import Coherence, PillarId, ProspectType, RuleId
from signal_engine.pipelines.tasks import (
    build_dependent_tasks,
    build_task_set,
    parse_enrichment,
    parse_hot_buttons,
    parse_indicators,
    parse_insights,
    parse_objections,
    parse_questions,
    parse_truth_index,
)
from signal_engine.models.signals import Objection
from signal_engine.services.scoring_client import parse_task_json, strip_json_fences
from signal_engine.core.exceptions import MalformedTaskOutputException

import pytest


class TestIndicatorParser:

    def test_pillar_restricts_ids(self):
        payload = {"indicators": {"1": 8, "2": "7", "5": 9}}
        assert parse_indicators(payload, PillarId.P1) == {1: 8.0, 2: 7.0}

    def test_drops_bad_values(self):
        payload = {"indicatorSignals": {"1": 0, "2": 11, "3": "high", "4": None, "x": 5, "27": 6}}
        assert parse_indicators(payload) == {27: 6.0}

    def test_bare_mapping(self):
        assert parse_indicators({"13": 6}, PillarId.P4) == {13: 6.0}


class TestHotButtonParser:

    def test_valid_and_invalid_items(self):
        payload = {"hotButtons": [
            {"id": 1, "quote": "we are losing the house", "score": 9, "contextualPrompt": "When?"},
            {"id": 9, "quote": "I decide", "score": 8},       # not a hot-button indicator
            {"id": 2, "quote": "", "score": 5},               # empty quote
            {"id": 3, "quote": "I want out", "score": 15},    # score out of range
            "garbage",
        ]}
        result = parse_hot_buttons(payload)
        assert len(result) == 1
        assert result[0].indicator_id == 1
        assert result[0].name == "Pain Intensity"
        assert result[0].prompt == "When?"


class TestObjectionParser:

    def test_strings_and_objects(self):
        payload = {"objections": [
            "Too expensive",
            {"objectionText": "Need to ask my wife", "probability": 0.7, "fear": 42},
            {"objection_text": "", "probability": 0.9},
            {"objection_text": "Timing", "probability": 3},
        ]}
        result = parse_objections(payload)
        assert [o.objection_text for o in result] == ["Too expensive", "Need to ask my wife", "Timing"]
        assert result[0].probability == 0.5
        assert result[1].fear == ""
        assert result[2].probability == 0.5


class TestQuestionParser:

    def test_out_of_range_and_duplicates(self):
        coverage = parse_questions({"asked": [2, 0, 2, 99, -1, "1", True, "x"]}, ["a", "b", "c", "d"])
        assert coverage.asked == [0, 1, 2]
        assert coverage.completion_percentage == 75.0


class TestTruthIndexParser:

    def test_hints_and_coherence(self):
        payload = {
            "detectedRules": [
                {"ruleId": "t4", "evidence": "ask my wife", "confidence": 0.8},
                {"rule_id": "T8", "confidence": 0.9},
                {"rule_id": "T1", "confidence": 2},
            ],
            "coherenceSignals": ["Consistent story", 7, ""],
            "overallCoherence": "HIGH",
        }
        result = parse_truth_index(payload)
        assert [h.rule_id for h in result.hints] == [RuleId.T4]
        assert result.coherence_signals == ["Consistent story"]
        assert result.overall_coherence == Coherence.HIGH

    def test_unknown_coherence(self):
        assert parse_truth_index({"overall_coherence": "excellent"}).overall_coherence == Coherence.UNKNOWN


class TestInsightsParser:

    def test_bad_fields_reset(self):
        insights = parse_insights({
            "summary": ["not", "a", "string"],
            "keyMotivators": ["speed", 3],
            "concerns": "price",
            "closingReadiness": "Not Ready",
        })
        assert insights.summary == ""
        assert insights.key_motivators == ["speed"]
        assert insights.concerns == []
        assert insights.closing_readiness == "not_ready"


class TestEnrichmentParser:

    def test_items_and_list(self):
        parse = parse_enrichment("fear")
        assert parse({"items": [{"index": 1, "fear": " losing face "}, {"index": "x", "fear": "y"}]}) == {1: "losing face"}
        assert parse({"fear": ["a", "", "c"]}) == {0: "a", 2: "c"}


class TestTaskSet:

    def test_fan_out_batch(self, test_settings):
        names = [t.name for t in build_task_set(test_settings, ProspectType.FORECLOSURE)]
        assert names == [
            "pillar_p1", "pillar_p2", "pillar_p3", "pillar_p4", "pillar_p5", "pillar_p6", "pillar_p7",
            "hot_buttons", "objections", "diagnostic_questions", "truth_index", "insights",
        ]

    def test_dependent_tasks_only_with_objections(self, test_settings):
        assert build_dependent_tasks(test_settings, []) == []
        tasks = build_dependent_tasks(
            test_settings, [Objection(objection_text="Too expensive")], custom_script_prompt="Be brief"
        )
        assert [t.name for t in tasks] == ["objection_fear", "objection_reframe", "objection_rebuttal"]
        assert tasks[2].context["custom_script_prompt"] == "Be brief"
        assert "custom_script_prompt" not in tasks[0].context


class TestJsonFences:

    def test_fenced_json(self):
        assert strip_json_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert parse_task_json("insights", '```\n{"summary": "x"}\n```') == {"summary": "x"}

    def test_non_object_rejected(self):
        with pytest.raises(MalformedTaskOutputException):
            parse_task_json("objections", "[1, 2]")

    def test_invalid_json_rejected(self):
        with pytest.raises(MalformedTaskOutputException):
            parse_task_json("objections", "not json")
