from __future__ import annotations

from typing import Any

import pytest

from portal_datatable.filter_groups import FilterCondition, FilterGroup
from portal_datatable.filters import (
    active_filter_count,
    apply_filters,
    clean_filter_value,
    matches_filters,
    remove_filter,
    set_filter,
    validate_filter_value,
)
from portal_datatable.models import RangeValue


def _ids(rows: list[dict[str, Any]]) -> list[int]:
    return [row["id"] for row in rows]


def test_text_filter_is_accent_insensitive_contains(columns, records) -> None:
    assert _ids(apply_filters(records, {"name": "alic"}, columns)) == [1]
    assert _ids(apply_filters(records, {"name": "NUNEZ"}, columns)) == [3]


def test_select_filter_equality_and_membership(columns, records) -> None:
    assert _ids(apply_filters(records, {"status": "inactive"}, columns)) == [2, 5]
    assert _ids(apply_filters(records, {"status": ["active", "inactive"]}, columns)) == [1, 2, 3, 4, 5]


def test_boolean_filter_coerces_text_values(columns, records) -> None:
    assert _ids(apply_filters(records, {"active": "true"}, columns)) == [1, 3, 4]
    assert _ids(apply_filters(records, {"active": False}, columns)) == [2, 5]


def test_range_filter_is_inclusive_and_skips_empty_values(columns, records) -> None:
    assert _ids(apply_filters(records, {"age": RangeValue(start=26, end=30)}, columns)) == [1, 5]
    assert _ids(apply_filters(records, {"age": {"start": 40}}, columns)) == [3]
    assert _ids(apply_filters(records, {"age": {"end": "25"}}, columns)) == [2]


def test_date_filter_matches_calendar_day_or_range(columns, records) -> None:
    assert _ids(apply_filters(records, {"created_at": "2024-03-05"}, columns)) == [3, 5]
    window = {"start": "2024-01-01", "end": "2024-02-20"}
    assert _ids(apply_filters(records, {"created_at": window}, columns)) == [1, 2]


def test_filters_combine_with_and(columns, records) -> None:
    filters = {"status": "active", "active": True, "name": "a"}
    assert _ids(apply_filters(records, filters, columns)) == [1, 3, 4]
    assert matches_filters(records[1], filters, columns) is False


@pytest.mark.parametrize(
    "filters",
    [{}, None, {"name": "", "age": None, "status": []}, {"age": ["", ""]}, {"age": ("", None)}, {"status": [" "]}],
)
def test_empty_filters_return_records_unchanged(columns, records, filters) -> None:
    assert apply_filters(records, filters, columns) == records


def test_unknown_or_non_filterable_keys_are_ignored(columns, records) -> None:
    assert apply_filters(records, {"missing": "x", "id": 1}, columns) == records


def test_clean_filter_value_drops_empty_entries() -> None:
    raw = {"name": "ana", "age": None, "status": [], "note": "  ", "range": {"start": "", "end": None}, "between": ["", None]}
    assert clean_filter_value(raw) == {"name": "ana"}
    assert clean_filter_value({"age": ["", 40]}) == {"age": ["", 40]}


def test_set_and_remove_filter_return_new_values() -> None:
    before = {"name": "ana"}
    updated = set_filter(before, "status", "active")
    assert updated == {"name": "ana", "status": "active"}
    assert before == {"name": "ana"}
    assert set_filter(updated, "status", "") == {"name": "ana"}
    assert remove_filter(updated, "name") == {"status": "active"}


def test_active_filter_count_includes_search_filters_and_group() -> None:
    group = FilterGroup(
        conditions=[FilterCondition(field="age", operator="gt", value=18)],
        groups=[FilterGroup(conditions=[FilterCondition(field="name", operator="is_null")])],
    )
    assert active_filter_count("hola", {"status": "active", "name": ""}, group) == 4
    assert active_filter_count("  ", {}, None) == 0


def test_validate_filter_value_reports_each_problem(columns) -> None:
    errors = validate_filter_value(
        {
            "status": "archived",
            "age": {"start": 50, "end": 10},
            "active": "quizás",
            "missing": "x",
        },
        columns,
    )
    assert len(errors) == 4
    assert any("status" in error and "opción no válida" in error for error in errors)
    assert any("age" in error and "mayor que el fin" in error for error in errors)
    assert any("active" in error for error in errors)
    assert any("missing" in error and "no existe" in error for error in errors)
