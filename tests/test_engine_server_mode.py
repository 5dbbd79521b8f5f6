from __future__ import annotations

from typing import Any

import pytest

from portal_datatable.config import EngineConfig
from portal_datatable.engine import DataTableEngine, InMemoryRecordSource, PageResult, coerce_page_result
from portal_datatable.exceptions import MalformedResponseError, ServerError, TransportError
from portal_datatable.state import ViewStatus


def _ids(rows: Any) -> list[int]:
    return [row["id"] for row in rows]


@pytest.fixture
def engine(columns) -> DataTableEngine:
    return DataTableEngine(columns, mode="server", config=EngineConfig(default_page_size=2))


def test_only_the_latest_request_is_applied(engine, records) -> None:
    state = engine.initial_state()
    state, first = engine.begin_fetch(state)
    state, second = engine.begin_fetch(state)
    assert state.loading is True

    stale = engine.complete_fetch(state, first, {"data": records[2:4], "total": 5})
    assert stale is state

    state = engine.complete_fetch(state, second, {"data": records[:2], "total": 5})
    view = engine.view(state)
    assert _ids(view.visible_records) == [1, 2]
    assert (view.total, view.total_pages, view.status) == (5, 3, ViewStatus.SUCCESS)
    assert state.loading is False


def test_failure_keeps_last_known_good_rows(engine, records) -> None:
    state, token = engine.begin_fetch(engine.initial_state())
    state = engine.complete_fetch(state, token, {"data": records[:2], "total": 5})

    state, token = engine.retry(state)
    assert engine.view(state).status is ViewStatus.LOADING
    error = ServerError(code="UPSTREAM_DOWN", message="Servicio no disponible", trace_id="trace-1", status_code=503)
    state = engine.fail_fetch(state, token, error)

    view = engine.view(state)
    assert _ids(view.visible_records) == [1, 2]
    assert view.status is ViewStatus.PARTIAL_ERROR
    assert view.error.message == "Servicio no disponible"
    assert view.error.trace_id == "trace-1"


def test_failure_without_data_is_fatal(engine) -> None:
    state, token = engine.begin_fetch(engine.initial_state())
    state = engine.fail_fetch(state, token, TransportError(code="TRANSPORT_ERROR", message="timeout"))
    assert engine.view(state).status is ViewStatus.FATAL_ERROR


def test_stale_failure_is_ignored(engine) -> None:
    state, old = engine.begin_fetch(engine.initial_state())
    state, _ = engine.begin_fetch(state)
    assert engine.fail_fetch(state, old, RuntimeError("boom")) is state


def test_malformed_response_becomes_an_error(engine) -> None:
    state, token = engine.begin_fetch(engine.initial_state())
    state = engine.complete_fetch(state, token, {"total": 3})
    assert state.error is not None
    assert "MALFORMED_RESPONSE" in state.error.details
    assert state.loading is False


def test_query_change_discards_response_in_flight(engine, records) -> None:
    state, token = engine.begin_fetch(engine.initial_state())
    state = engine.set_filter(state, "status", "inactive")

    after = engine.complete_fetch(state, token, {"data": records[:2], "total": 5})
    assert after is state
    assert after.records == ()

    state, token = engine.begin_fetch(state)
    state = engine.complete_fetch(state, token, {"data": [records[1], records[4]], "total": 2})
    assert _ids(state.records) == [2, 5]
    assert state.query.filters == {"status": "inactive"}


def test_complete_fetch_clamps_page_and_keeps_loading(engine, records) -> None:
    state, token = engine.begin_fetch(engine.initial_state())
    state = engine.complete_fetch(state, token, {"data": records[:2], "total": 5})
    state = engine.set_page(state, 3)
    state, token = engine.begin_fetch(state)

    clamped = engine.complete_fetch(state, token, {"data": [], "total": 3})
    assert clamped.query.page == 2
    assert clamped.total == 3
    assert clamped.loading is True
    assert _ids(clamped.records) == [1, 2]
    assert engine.view(clamped).status is ViewStatus.LOADING


def test_fetch_refetches_when_total_shrinks_below_current_page(engine, columns, records) -> None:
    state = engine.fetch(engine.initial_state(), InMemoryRecordSource(records, columns))
    state = engine.fetch(engine.set_page(state, 3), InMemoryRecordSource(records, columns))
    assert _ids(state.records) == [5]

    state = engine.fetch(state, InMemoryRecordSource(records[:3], columns))
    view = engine.view(state)
    assert (view.page, view.total) == (2, 3)
    assert _ids(view.visible_records) == [3]
    assert view.status is ViewStatus.SUCCESS


def test_in_memory_source_clamps_out_of_range_page(engine, columns, records) -> None:
    query = engine.set_page(engine.initial_state(), 3).query
    result = InMemoryRecordSource(records[:3], columns).fetch(query)
    assert _ids(result.data) == [3]
    assert result.total == 3


def test_selection_spans_fetched_pages(engine, records) -> None:
    state, token = engine.begin_fetch(engine.initial_state())
    state = engine.complete_fetch(state, token, {"data": records[:2], "total": 5})
    state = engine.toggle_row(state, 1)

    state = engine.set_page(state, 2)
    state, token = engine.begin_fetch(state)
    state = engine.complete_fetch(state, token, {"data": records[2:4], "total": 5})
    state = engine.toggle_row(state, 3)

    assert _ids(engine.selected_records(state)) == [1, 3]
    assert engine.view(state).page_selection == "some"


def test_known_records_keep_only_selection_and_current_page(engine, records) -> None:
    state, token = engine.begin_fetch(engine.initial_state())
    state = engine.complete_fetch(state, token, {"data": records[:2], "total": 5})
    state = engine.toggle_row(state, 2)

    for page, rows in ((2, records[2:4]), (3, records[4:])):
        state, token = engine.begin_fetch(engine.set_page(state, page))
        state = engine.complete_fetch(state, token, {"data": rows, "total": 5})

    assert set(state.known_records) == {2, 5}
    assert _ids(engine.selected_records(state)) == [2]


def test_set_page_beyond_server_total_is_rejected(engine, records) -> None:
    state, token = engine.begin_fetch(engine.initial_state())
    state = engine.complete_fetch(state, token, {"data": records[:2], "total": 5})
    rejected = engine.set_page(state, 4)
    assert rejected.query.page == 1
    assert rejected.validation_errors == ("Página fuera de rango: 4 (máximo 3)",)


def test_fetch_from_in_memory_source_applies_query(engine, columns, records) -> None:
    source = InMemoryRecordSource(records, columns)
    state = engine.toggle_sort(engine.initial_state(), "age")
    state = engine.fetch(state, source)
    assert _ids(engine.view(state).visible_records) == [2, 5]
    assert state.total == 5

    state = engine.fetch(engine.set_filter(state, "status", "active"), source)
    assert _ids(state.records) == [1, 3]
    assert state.total == 3


def test_fetch_records_source_errors(engine) -> None:
    class Failing:
        def fetch(self, query):
            raise ServerError(code="BOOM", message="Error interno", status_code=500)

    state = engine.fetch(engine.initial_state(), Failing())
    assert state.error.message == "Error interno"
    assert state.loading is False


def test_fetch_turns_unexpected_source_errors_into_state_error(engine) -> None:
    class Broken:
        def fetch(self, query):
            raise RuntimeError("socket closed")

    state = engine.fetch(engine.initial_state(), Broken())
    assert (state.error.message, state.error.details) == ("socket closed", "RuntimeError")
    assert state.loading is False
    assert engine.view(state).status is ViewStatus.FATAL_ERROR


@pytest.mark.parametrize(
    "payload",
    [
        {"rows": [{"id": 1}]},
        {"items": [{"id": 1}], "total": 1},
        PageResult(data=({"id": 1},), total=1),
    ],
)
def test_coerce_page_result_accepts_known_shapes(payload: Any) -> None:
    result = coerce_page_result(payload)
    assert result.total == 1
    assert result.data == ({"id": 1},)


@pytest.mark.parametrize("payload", [{"data": [], "total": -1}, {"data": [], "total": "7"}, ["not", "a", "page"]])
def test_coerce_page_result_rejects_bad_payloads(payload: Any) -> None:
    with pytest.raises(MalformedResponseError):
        coerce_page_result(payload)
