from __future__ import annotations

from datetime import date, datetime
from typing import Any

from .engine import PageResult, coerce_page_result
from .exceptions import MalformedResponseError
from .filter_groups import export_filter_group
from .filters import as_range, clean_filter_value
from .http_client import HttpClient
from .logger import get_logger
from .sorting import ordered
from .state import TableQuery

logger = get_logger(__name__)


def _param_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def query_params(query: TableQuery) -> dict[str, str]:
    """Flatten a query into GET parameters understood by the listing endpoints."""
    params: dict[str, str] = {"page": str(query.page), "page_size": str(query.page_size)}
    search = query.search.strip()
    if search:
        params["q"] = search
    if query.sort:
        params["sort"] = ",".join(f"{entry.key}:{entry.direction.value}" for entry in ordered(query.sort))
    for key, value in clean_filter_value(query.filters).items():
        if isinstance(value, (list, tuple, set, frozenset)):
            params[key] = ",".join(_param_value(item) for item in value)
            continue
        rng = as_range(value)
        if rng is not None:
            if rng.start not in (None, ""):
                params[f"{key}_from"] = _param_value(rng.start)
            if rng.end not in (None, ""):
                params[f"{key}_to"] = _param_value(rng.end)
            continue
        params[key] = _param_value(value)
    if query.filter_group is not None and not query.filter_group.is_empty:
        params["filter_group"] = export_filter_group(query.filter_group)
    return params


class RemoteRecordSource:
    def __init__(self, http: HttpClient, path: str) -> None:
        self.http = http
        self.path = path

    def fetch(self, query: TableQuery) -> PageResult:
        payload = self.http.get_json(self.path, params=query_params(query))
        if payload is None:
            raise MalformedResponseError(code="EMPTY_RESPONSE", message="Respuesta vacía del servidor")
        result = coerce_page_result(payload)
        logger.debug("fetched %s of %s records from %s", len(result.data), result.total, self.path)
        return result
