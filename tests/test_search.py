from __future__ import annotations

from typing import Any

from portal_datatable.models import Column
from portal_datatable.search import SearchMatcher, apply_search, default_search_fields


def _ids(rows: list[dict[str, Any]]) -> list[int]:
    return [row["id"] for row in rows]


def test_search_is_accent_insensitive(records) -> None:
    assert _ids(apply_search(records, "MARTINEZ", ["name", "status"])) == [2]
    assert _ids(apply_search(records, "peña", ["name"])) == [4]


def test_blank_query_returns_every_record(records) -> None:
    assert apply_search(records, "   ", ["name"]) == records
    assert apply_search(records, None, ["name"]) == records


def test_whole_word_search(records) -> None:
    assert _ids(apply_search(records, "activ", ["status"])) == [1, 2, 3, 4, 5]
    assert _ids(apply_search(records, "active", ["status"], whole_word=True)) == [1, 3, 4]


def test_list_fields_match_any_item() -> None:
    rows = [
        {"id": 1, "tags": ["Catastro", "Hacienda"]},
        {"id": 2, "tags": ["Movilidad"]},
        {"id": 3, "tags": []},
    ]
    assert _ids(SearchMatcher(["tags"]).apply(rows, "hacienda")) == [1]


def test_fuzzy_search_tolerates_typos(records) -> None:
    matcher = SearchMatcher(["name", "status"], fuzzy=True)
    assert _ids(matcher.apply(records, "Gomes")) == [1]
    assert _ids(SearchMatcher(["name"]).apply(records, "Gomes")) == []


def test_default_search_fields_skip_hidden_columns() -> None:
    columns = [
        Column(key="name", title="Nombre"),
        Column(key="internal_code", title="Código", hidden=True),
        Column(key="email", title="Correo"),
    ]
    assert default_search_fields(columns) == ("name", "email")
