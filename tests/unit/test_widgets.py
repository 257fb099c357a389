"""Unit tests for dashboard widget request parsing."""

import pytest

from tenantdesk.core.enums import WidgetType
from tenantdesk.domain.widgets import (
    PIPELINE_STAGES,
    FilterClause,
    WidgetConfigError,
    check_columns,
    group_counts,
    group_pipeline,
    parse_widget_type,
    resolve_entity_type,
    resolve_filters,
    widget_limit,
)


@pytest.mark.unit
class TestWidgetParsing:
    def test_parse_widget_type(self):
        assert parse_widget_type("pipeline") is WidgetType.PIPELINE

    def test_unknown_widget_type(self):
        with pytest.raises(WidgetConfigError, match="Unknown widget type: gauge"):
            parse_widget_type("gauge")

    def test_me_placeholder_and_negation(self):
        clauses = resolve_filters(
            {"assigned_to_person_id": "$me", "status": "!closed", "opened_by_person_id": "!$me", "priority": "high"},
            "p-1",
        )
        assert clauses == [
            FilterClause("assigned_to_person_id", "p-1"),
            FilterClause("status", "closed", negate=True),
            FilterClause("opened_by_person_id", "p-1", negate=True),
            FilterClause("priority", "high"),
        ]

    def test_no_filters(self):
        assert resolve_filters(None, "p-1") == []
        assert resolve_filters({}, "p-1") == []

    @pytest.mark.parametrize("filters", [["status"], "status=open", 3])
    def test_filter_must_be_mapping(self, filters):
        with pytest.raises(WidgetConfigError, match="filter must be an object"):
            resolve_filters(filters, "p-1")

    def test_filter_values_must_be_scalars(self):
        with pytest.raises(WidgetConfigError, match="status"):
            resolve_filters({"status": ["open", "waiting"]}, "p-1")

    def test_entity_type_whitelist(self):
        assert resolve_entity_type({}) == "tickets"
        assert resolve_entity_type({"entity_type": "documents"}) == "documents"
        with pytest.raises(WidgetConfigError):
            resolve_entity_type({"entity_type": "persons"})

    @pytest.mark.parametrize(
        "raw,expected",
        [(None, 20), ("abc", 20), (0, 20), (-5, 20), (5, 5), ("7", 7), (1000, 200)],
    )
    def test_widget_limit(self, raw, expected):
        assert widget_limit(raw, 20, 200) == expected

    def test_check_columns(self):
        check_columns(["id", "status"], ["id", "status", "subject"])
        with pytest.raises(WidgetConfigError, match="bogus"):
            check_columns(["id", "bogus"], ["id"])

    @pytest.mark.parametrize("columns", ["subject", ["subject", 3], {"subject": True}])
    def test_columns_must_be_list_of_names(self, columns):
        with pytest.raises(WidgetConfigError, match="columns must be a list"):
            check_columns(columns, ["subject"])


@pytest.mark.unit
class TestWidgetShaping:
    def test_group_counts_marks_missing_as_unknown(self):
        assert group_counts(["high", None, "high", ""]) == [
            {"name": "high", "value": 2},
            {"name": "unknown", "value": 2},
        ]

    def test_group_pipeline_keeps_stage_order(self):
        items = [
            {"id": 1, "status": "resolved"},
            {"id": 2, "status": "open"},
            {"id": 3, "status": "nonsense"},
        ]
        stages = group_pipeline(items)
        assert [s["name"] for s in stages] == list(PIPELINE_STAGES)
        assert stages[0]["items"] == [{"id": 2, "status": "open"}]
        assert sum(len(s["items"]) for s in stages) == 2
        assert [s["position"] for s in stages] == list(range(len(PIPELINE_STAGES)))
