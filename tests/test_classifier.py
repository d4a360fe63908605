"""Tests for the deterministic shape classifier."""

from __future__ import annotations

import copy

import pytest

from metricchart.classifier import ShapeClassifier, ShapeRule, classify, default_rules
from metricchart.models import ChartType


@pytest.fixture
def classifier() -> ShapeClassifier:
    return ShapeClassifier()


# ===================================================================
# 1. Rule table
# ===================================================================

class TestRuleTable:

    def test_rule_order(self, classifier):
        assert classifier.rule_names == [
            "columnar_table",
            "column_vector",
            "flat_numeric_object",
            "dual_array_participation",
            "wrapped_run_list",
            "dated_state_items",
            "commit_list",
            "contributor_totals",
            "weekly_activity",
            "code_frequency",
            "punch_card",
            "kpi_fallback",
        ]

    def test_custom_rules_get_kpi_fallback(self):
        rules = [r for r in default_rules() if r.name == "column_vector"]
        clf = ShapeClassifier(rules=rules)
        assert clf.rule_names[-1] == "kpi_fallback"
        spec = clf.classify({"unexpected": True}, "Stars", 4)
        assert spec.chart_type == ChartType.KPI

    def test_match_returns_rule(self, classifier, posthog_payload):
        rule = classifier.match(posthog_payload)
        assert isinstance(rule, ShapeRule)
        assert rule.name == "columnar_table"

    def test_classify_is_idempotent_and_pure(self, classifier, participation_payload):
        before = copy.deepcopy(participation_payload)
        first = classifier.classify(participation_payload, "Participation")
        second = classifier.classify(participation_payload, "Participation")
        assert first == second
        assert participation_payload == before


# ===================================================================
# 2. Object payloads
# ===================================================================

class TestObjectShapes:

    def test_columnar_table(self, classifier, posthog_payload):
        spec = classifier.classify(posthog_payload, "Events")
        assert spec.chart_type == ChartType.LINE
        assert spec.category_key == "date"
        assert spec.series_keys == ["count"]
        assert spec.rows == [
            {"date": "2025-01-01", "count": 42},
            {"date": "2025-01-02", "count": 58},
        ]
        assert "columns [date, count]" in spec.reasoning

    def test_columnar_table_rejects_ragged_rows(self, classifier):
        payload = {"columns": ["a", "b"], "results": [[1, 2], [3]]}
        assert classifier.match(payload).name != "columnar_table"

    def test_column_vector(self, classifier):
        spec = classifier.classify({"columnData": [5, "7", "n/a"]}, "Signups")
        assert spec.chart_type == ChartType.LINE
        assert spec.rows == [
            {"index": "Point 1", "value": 5},
            {"index": "Point 2", "value": 7},
            {"index": "Point 3", "value": 0},
        ]
        assert spec.series_style["value"].display_label == "Signups"

    def test_flat_object_six_entries_is_pie(self, classifier):
        payload = {f"lang{i}": i + 1 for i in range(6)}
        spec = classifier.classify(payload, "Languages")
        assert spec.chart_type == ChartType.PIE
        assert spec.category_key == "category"
        assert len(spec.rows) == 6
        assert len(spec.category_style) == 6

    def test_flat_object_seven_entries_is_bar(self, classifier):
        payload = {f"lang{i}": i + 1 for i in range(7)}
        spec = classifier.classify(payload, "Languages")
        assert spec.chart_type == ChartType.BAR

    def test_flat_object_numeric_strings(self, classifier):
        spec = classifier.classify({"TypeScript": 5000, "CSS": "120", "meta": {"x": 1}})
        assert spec.rows == [
            {"category": "TypeScript", "value": 5000},
            {"category": "CSS", "value": 120},
        ]

    def test_deny_list_is_configurable(self):
        clf = ShapeClassifier(deny_list=("CSS",))
        spec = clf.classify({"TypeScript": 5000, "CSS": 120})
        assert [r["category"] for r in spec.rows] == ["TypeScript"]

    def test_participation(self, classifier, participation_payload):
        spec = classifier.classify(participation_payload, "Participation")
        assert spec.chart_type == ChartType.AREA
        assert spec.series_keys == ["all", "owner"]
        assert spec.rows[1] == {"week": "Week 2", "all": 2, "owner": 1}
        assert spec.series_style["all"].display_label == "All Contributors"
        assert spec.series_style["owner"].display_label == "Owner"

    def test_participation_length_mismatch_falls_through(self, classifier):
        assert classifier.match({"all": [1, 2], "owner": [1]}).name == "kpi_fallback"

    def test_workflow_runs(self, classifier):
        payload = {"workflow_runs": [
            {"conclusion": "success"},
            {"conclusion": "failure"},
            {"conclusion": "success"},
            {"conclusion": None},
        ]}
        spec = classifier.classify(payload)
        assert spec.chart_type == ChartType.PIE
        assert spec.rows == [
            {"status": "success", "count": 2},
            {"status": "failure", "count": 1},
            {"status": "pending", "count": 1},
        ]


# ===================================================================
# 3. Array payloads
# ===================================================================

class TestArrayShapes:

    def test_dated_items_grouped_ascending(self, classifier):
        payload = [
            {"state": "open", "created_at": "2025-01-15T10:30:00Z"},
            {"state": "closed", "created_at": "2025-01-14T08:20:00Z"},
            {"state": "open", "created_at": "2025-01-15T12:00:00Z"},
        ]
        spec = classifier.classify(payload, "PRs")
        assert spec.chart_type == ChartType.LINE
        assert spec.rows == [
            {"date": "2025-01-14", "count": 1},
            {"date": "2025-01-15", "count": 2},
        ]

    def test_commit_list(self, classifier):
        payload = [
            {"sha": "a", "commit": {"author": {"date": "2025-01-02T00:00:00Z"}}},
            {"sha": "b", "commit": {"author": {"date": "2025-01-01T00:00:00Z"}}},
        ]
        spec = classifier.classify(payload)
        assert [r["date"] for r in spec.rows] == ["2025-01-01", "2025-01-02"]
        assert spec.series_style["count"].display_label == "Commits"

    def test_commit_without_date_is_skipped(self, classifier):
        payload = [{"sha": "a", "commit": {"message": "no author"}}]
        spec = classifier.classify(payload, "Commits", 9)
        assert spec.chart_type == ChartType.KPI
        assert spec.rows == [{"label": "Commits", "value": 9}]

    def test_contributors_top_ten(self, classifier):
        payload = [{"author": {"login": f"u{i}"}, "total": i} for i in range(12)]
        spec = classifier.classify(payload)
        assert spec.chart_type == ChartType.BAR
        assert len(spec.rows) == 10
        assert spec.rows[0] == {"contributor": "u11", "commits": 11}
        assert spec.rows[-1]["contributor"] == "u2"

    def test_weekly_activity(self, classifier):
        payload = [{"week": 1704067200, "total": 15, "days": [0, 1, 2, 3, 4, 5, 0]}]
        spec = classifier.classify(payload)
        assert spec.chart_type == ChartType.AREA
        assert spec.rows == [{"week": "2024-01-01", "commits": 15}]

    def test_code_frequency(self, classifier):
        payload = [[1704067200, 1000, -200], [1704672000, 500, -100]]
        spec = classifier.classify(payload)
        assert spec.chart_type == ChartType.BAR
        assert spec.series_keys == ["additions", "deletions"]
        assert spec.rows[0] == {"week": "2024-01-01", "additions": 1000, "deletions": 200}

    @pytest.mark.parametrize("timestamp", [10**20, 10**400])
    def test_code_frequency_out_of_range_timestamp(self, classifier, timestamp):
        spec = classifier.classify([[timestamp, 1, -2]], "Churn", 4)
        assert spec.chart_type == ChartType.BAR
        assert spec.rows == [{"week": "unknown", "additions": 1, "deletions": 2}]

    def test_weekly_activity_out_of_range_week(self, classifier):
        payload = [{"week": 10**20, "total": 3, "days": [0, 0, 1, 2, 0, 0, 0]}]
        spec = classifier.classify(payload)
        assert spec.chart_type == ChartType.AREA
        assert spec.rows == [{"week": "unknown", "commits": 3}]

    def test_punch_card_sums_per_weekday(self, classifier):
        payload = [[0, 9, 2], [0, 10, 3], [3, 14, 5]]
        spec = classifier.classify(payload)
        assert classifier.match(payload).name == "punch_card"
        assert [r["day"] for r in spec.rows] == ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
        assert spec.rows[0]["commits"] == 5
        assert spec.rows[3]["commits"] == 5
        assert spec.rows[1]["commits"] == 0


# ===================================================================
# 4. Fallback
# ===================================================================

class TestKpiFallback:

    def test_empty_array_uses_current_value(self):
        spec = classify([], "Stars", 42)
        assert spec.chart_type == ChartType.KPI
        assert spec.rows == [{"label": "Stars", "value": 42}]

    def test_missing_current_value_is_zero(self):
        spec = classify(None, "Stars")
        assert spec.rows == [{"label": "Stars", "value": 0}]

    @pytest.mark.parametrize("payload", ["text", 12, [1, 2, 3], {"nested": {"a": 1}}, [{"x": 1}]])
    def test_unrecognised_shapes(self, payload):
        spec = classify(payload, "Thing")
        assert spec.chart_type == ChartType.KPI
        assert len(spec.rows) == 1
