from __future__ import annotations

from datetime import date
from urllib.parse import parse_qs, urlparse

import pytest
import responses

from portal_datatable.config import HttpConfig
from portal_datatable.engine import DataTableEngine
from portal_datatable.exceptions import MalformedResponseError
from portal_datatable.filter_groups import FilterCondition, FilterGroup
from portal_datatable.http_client import HttpClient
from portal_datatable.models import RangeValue, SortDirection, SortEntry
from portal_datatable.remote import RemoteRecordSource, query_params
from portal_datatable.state import TableQuery

BASE_URL = "https://api.example.test/v1"


def test_query_params_flatten_every_query_part() -> None:
    query = TableQuery(
        sort=(SortEntry(key="age", direction=SortDirection.DESC, priority=1), SortEntry(key="name")),
        filters={
            "status": ["active", "inactive"],
            "age": RangeValue(start=18, end=None),
            "active": True,
            "created_at": date(2024, 3, 5),
            "name": "",
        },
        search="  gomez ",
        page=2,
        page_size=25,
    )
    params = query_params(query)
    assert params == {
        "page": "2",
        "page_size": "25",
        "q": "gomez",
        "sort": "name:asc,age:desc",
        "status": "active,inactive",
        "age_from": "18",
        "active": "true",
        "created_at": "2024-03-05",
    }


def test_query_params_serialize_filter_group() -> None:
    group = FilterGroup(conditions=[FilterCondition(field="age", operator="gt", value=26)])
    params = query_params(TableQuery(filter_group=group))
    assert '"operator":"greater_than"' in params["filter_group"]
    assert "filter_group" not in query_params(TableQuery(filter_group=FilterGroup()))


@pytest.fixture
def source(monkeypatch) -> RemoteRecordSource:
    monkeypatch.setattr("portal_datatable.http_client.time.sleep", lambda seconds: None)
    return RemoteRecordSource(HttpClient(HttpConfig(api_base_url=BASE_URL, retries=0)), "/ciudadanos")


@responses.activate
def test_remote_source_feeds_server_mode_engine(source, columns, records) -> None:
    responses.add(responses.GET, f"{BASE_URL}/ciudadanos", json={"data": records[:2], "total": 5}, status=200)
    engine = DataTableEngine(columns, mode="server")
    state = engine.set_search(engine.initial_state(page_size=2), "a")

    state = engine.fetch(state, source)

    assert [row["id"] for row in state.records] == [1, 2]
    assert state.total == 5
    sent = parse_qs(urlparse(responses.calls[0].request.url).query)
    assert sent == {"page": ["1"], "page_size": ["2"], "q": ["a"]}


@responses.activate
def test_remote_source_rejects_empty_payload(source) -> None:
    responses.add(responses.GET, f"{BASE_URL}/ciudadanos", body="", status=200)
    with pytest.raises(MalformedResponseError) as exc_info:
        source.fetch(TableQuery())
    assert exc_info.value.code == "EMPTY_RESPONSE"


@responses.activate
def test_remote_http_error_becomes_view_error(source, columns) -> None:
    responses.add(responses.GET, f"{BASE_URL}/ciudadanos", json={"message": "Sin permiso"}, status=403)
    engine = DataTableEngine(columns, mode="server")
    state = engine.fetch(engine.initial_state(), source)
    assert state.error.message == "Sin permiso"
    assert state.loading is False
