"""Tests for the field normalizer's parse-or-default combinators."""
from __future__ import annotations

import json
import logging

import pytest

from venturescore.normalizer import (
    MAX_NUMBER,
    AbsentAnalysis,
    ProvidedAnalysis,
    normalize_fields,
    normalize_stage,
    parse_checklist,
    parse_list,
    parse_map,
    parse_metrics,
    resolve_analysis,
    to_bool,
    to_float,
    to_int,
)
from venturescore.schemas import VentureRecord


class TestNumbers:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            (1200, 1200.0),
            ("1,200", 1200.0),
            ("$5,000.50", 5000.5),
            (" 42 ", 42.0),
            (None, 0.0),
            ("abc", 0.0),
            ("", 0.0),
            (-5, 0.0),
            (float("nan"), 0.0),
            ("inf", 0.0),
            (True, 0.0),
            ([1, 2], 0.0),
            (10**400, 0.0),
            (1e308, MAX_NUMBER),
            ("1e308", MAX_NUMBER),
        ],
    )
    def test_to_float(self, raw, expected):
        assert to_float(raw) == expected

    def test_to_int_clips_oversized_counts(self):
        assert to_int("1e308") == int(MAX_NUMBER)

    def test_to_int_truncates(self):
        assert to_int("7.9") == 7
        assert to_int("NaN") == 0

    def test_recovery_logged_at_debug(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="venturescore.normalizer"):
            to_float("twelve", "revenue")
        assert any("revenue" in r.getMessage() for r in caplog.records)


class TestBool:
    @pytest.mark.parametrize("raw", [True, 1, "true", "TRUE", "yes", "1", "on"])
    def test_truthy(self, raw):
        assert to_bool(raw) is True

    @pytest.mark.parametrize("raw", [False, 0, None, "false", "no", "", "maybe", float("nan")])
    def test_falsy(self, raw):
        assert to_bool(raw) is False


class TestCollections:
    def test_deeply_nested_json_is_dropped(self):
        nested = "[" * 200_000
        assert parse_list(nested) == ()
        assert parse_map("{\"a\": " * 200_000) == {}
        fields = normalize_fields({"founderTypes": nested, "gedsiMetrics": nested, "aiAnalysis": nested})
        assert fields.founder_types == ()
        assert fields.metrics == ()
        assert isinstance(fields.analysis, AbsentAnalysis)

    def test_parse_list_accepts_json_and_dedupes(self):
        raw = json.dumps(["women-led", "Women-Led", " ", "youth-led", None])
        assert parse_list(raw) == ("women-led", "youth-led")

    def test_parse_list_accepts_parsed_list(self):
        assert parse_list(["OI.1", "OI.2"]) == ("OI.1", "OI.2")

    @pytest.mark.parametrize("raw", ["not json", '{"a": 1}', 42, None, "[broken"])
    def test_parse_list_defaults_to_empty(self, raw):
        assert parse_list(raw) == ()

    def test_parse_map(self):
        assert parse_map('{"pitch": true}') == {"pitch": True}
        assert parse_map({"a": 1}) == {"a": 1}
        assert parse_map("[1, 2]") == {}
        assert parse_map("{{") == {}

    def test_checklist_counts_checked_items(self):
        status = parse_checklist({"a": True, "b": "false", "c": "yes", "d": 1})
        assert status.checked == 3
        assert status.keys == 4
        assert status.completion == pytest.approx(0.75)

    def test_empty_checklist_gives_zero_completion(self):
        status = parse_checklist("{}")
        assert status.total == 1
        assert status.completion == 0.0
        assert not status.populated

    def test_parse_metrics_skips_malformed_entries(self):
        metrics = parse_metrics([
            {"metricCode": "OI.1", "metricName": "Women-led", "status": "verified", "category": "gender",
             "currentValue": "12", "targetValue": 20},
            "junk",
            {"metric_code": "OI.2", "status": "in_progress"},
        ])
        assert len(metrics) == 2
        assert metrics[0].code == "OI.1"
        assert metrics[0].status == "VERIFIED"
        assert metrics[0].category == "GENDER"
        assert metrics[0].current_value == 12.0
        assert metrics[1].category == "UNCATEGORIZED"
        assert metrics[1].current_value is None

    def test_parse_metrics_bad_json(self):
        assert parse_metrics("oops") == ()


class TestAnalysis:
    def test_absent(self):
        assert isinstance(resolve_analysis(None), AbsentAnalysis)
        assert isinstance(resolve_analysis("{{not json"), AbsentAnalysis)
        assert isinstance(resolve_analysis("[1, 2]"), AbsentAnalysis)

    def test_provided_from_json_text(self):
        analysis = resolve_analysis(json.dumps({
            "riskAssessment": "Medium risk overall",
            "recommendations": ["", "Hire a CFO"],
            "alerts": ["Runway under 6 months"],
        }))
        assert isinstance(analysis, ProvidedAnalysis)
        assert analysis.recommendations == ("Hire a CFO",)
        assert analysis.alerts == ("Runway under 6 months",)

    def test_structured_risk_is_flattened(self):
        analysis = resolve_analysis({"riskAssessment": {"level": "High", "risks": ["cash burn"]}})
        assert analysis.risk_assessment == "High risk cash burn"


class TestNormalizeFields:
    def test_stage_normalized(self):
        assert normalize_stage("series-a") == "SERIES_A"
        assert normalize_stage(" due diligence ") == "DUE_DILIGENCE"

    def test_camel_case_record(self):
        fields = normalize_fields({
            "id": 7,
            "name": "Solar Co",
            "sector": " CleanTech ",
            "stage": "funded",
            "revenue": "250,000",
            "fundingRaised": 1_000_000,
            "teamSize": "6",
            "founderTypes": '["women-led"]',
            "gedsiGoals": ["OI.1"],
            "operationalReadiness": '{"a": true}',
            "documentCount": 2,
            "website": " https://solar.example ",
        })
        assert fields.venture_id == 7
        assert fields.sector == "CleanTech"
        assert fields.stage == "FUNDED"
        assert fields.revenue == 250_000.0
        assert fields.team_size == 6
        assert fields.founder_tags == frozenset({"women-led"})
        assert fields.operational.checked == 1
        assert fields.document_count == 2
        assert fields.website == "https://solar.example"
        assert fields.readiness_populated

    def test_nested_counts(self):
        fields = normalize_fields({"_count": {"documents": 4, "activities": 3, "capitalActivities": 2}})
        assert (fields.document_count, fields.activity_count, fields.capital_activity_count) == (4, 3, 2)

    def test_direct_count_wins_over_nested(self):
        fields = normalize_fields({"documentCount": 1, "_count": {"documents": 9}})
        assert fields.document_count == 1

    def test_garbage_everywhere_never_raises(self):
        fields = normalize_fields({
            "name": None,
            "revenue": "abc",
            "fundingRaised": float("inf"),
            "teamSize": "NaN",
            "founderTypes": "{bad",
            "gedsiGoals": 12,
            "operationalReadiness": "[1,2]",
            "capitalReadiness": None,
            "gedsiMetrics": "oops",
            "aiAnalysis": "{{",
            "_count": "nope",
        })
        assert fields.name == ""
        assert fields.revenue == 0.0
        assert fields.funding_raised == 0.0
        assert fields.team_size == 0
        assert fields.founder_types == ()
        assert fields.metrics == ()
        assert isinstance(fields.analysis, AbsentAnalysis)
        assert not fields.readiness_populated

    def test_input_mapping_not_mutated(self):
        raw = {"name": "X", "founderTypes": '["youth-led"]', "revenue": "10"}
        before = dict(raw)
        normalize_fields(raw)
        assert raw == before

    def test_accepts_record_model(self):
        record = VentureRecord(name="Model", team_size=3)
        assert normalize_fields(record).team_size == 3
