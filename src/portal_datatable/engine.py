"""Table engine: one immutable state, one pipeline.

``records -> filtered -> searched -> sorted -> page slice``

Every transition takes a :class:`TableState` and returns a new one. Filter,
search and sort changes always go back to page 1; a page size change keeps
the first visible record roughly in place. Invalid user input (a malformed
filter group, a page out of range) never raises: it is recorded in
``validation_errors`` and the previous state is kept. Invalid configuration
(unknown columns, duplicate sort priorities) raises ``ConfigurationError``
when the engine is built.

In server mode the engine trusts the ``{data, total}`` a :class:`RecordSource`
returns. Each fetch is tagged with a request token and only the response for
the latest token is applied; any query change also moves the token on. When a
new total pushes the current page out of range, the page is clamped and the
state stays loading until the clamped page is fetched.
"""

from __future__ import annotations

import math
from collections.abc import Hashable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from .actions import ActionOutcome
from .config import EngineConfig
from .export import export_view_csv
from .exceptions import (
    ConfigurationError,
    FilterValidationError,
    MalformedResponseError,
    PaginationError,
)
from .filter_groups import FilterGroup, accept_filter_group, apply_filter_group, import_filter_group
from .filters import active_filter_count, apply_filters, clean_filter_value, remove_filter, set_filter, validate_filter_value
from .layout import resolve_layout
from .logger import get_logger, log_action
from .models import Column, RowKey, SortEntry, build_columns, column_by_key, coerce_sort_entries, record_key
from .pagination import Pagination, paginate, recompute, visible_pages
from .pagination import set_page_size as resize_page
from .presets import FilterPreset, save_preset, select_preset, validate_presets
from .row_actions import RowAction, RowActionDispatcher
from .search import SearchMatcher, default_search_fields
from .selection import (
    BulkAction,
    BulkActionManager,
    deselect_page,
    enabled_bulk_actions,
    page_selection_state,
    select_all,
    select_page,
    toggle,
    visible_bulk_actions,
)
from .sorting import sort_records, toggle_sort, validate_sort_entries
from .state import TableQuery, TableState, TableView, resolve_status
from .ui_errors import to_user_facing_error

logger = get_logger(__name__)

_DATA_KEYS = ("data", "rows", "items")


class EngineMode(str, Enum):
    CLIENT = "client"
    SERVER = "server"


@dataclass(frozen=True)
class PageResult:
    data: tuple[Any, ...]
    total: int


class RecordSource(Protocol):
    def fetch(self, query: TableQuery) -> PageResult: ...


def coerce_page_result(payload: PageResult | Mapping[str, Any]) -> PageResult:
    if isinstance(payload, PageResult):
        return payload
    if not isinstance(payload, Mapping):
        raise MalformedResponseError(code="MALFORMED_RESPONSE", message="Respuesta sin datos", details=type(payload).__name__)
    rows = next((payload[key] for key in _DATA_KEYS if isinstance(payload.get(key), list)), None)
    if rows is None:
        raise MalformedResponseError(code="MALFORMED_RESPONSE", message="Respuesta sin datos", details=sorted(payload))
    total = payload.get("total", len(rows))
    if isinstance(total, bool) or not isinstance(total, int) or total < 0:
        raise MalformedResponseError(code="MALFORMED_RESPONSE", message="Total de registros no válido", details=total)
    return PageResult(data=tuple(rows), total=total)


def match_records(
    records: Iterable[Any],
    query: TableQuery,
    columns: Sequence[Column],
    search_fields: Sequence[str],
) -> list[Any]:
    filtered = apply_filters(records, query.filters, columns)
    filtered = apply_filter_group(filtered, query.filter_group)
    return SearchMatcher(search_fields).apply(filtered, query.search)


def run_pipeline(
    records: Iterable[Any],
    query: TableQuery,
    columns: Sequence[Column],
    search_fields: Sequence[str],
) -> tuple[list[Any], Pagination]:
    matched = match_records(records, query, columns, search_fields)
    ordered = sort_records(matched, query.sort, columns)
    pagination = recompute(Pagination(page=query.page, page_size=query.page_size), len(ordered))
    return paginate(ordered, pagination), pagination


class InMemoryRecordSource:
    """Runs the full pipeline over a local collection, page by page."""

    def __init__(
        self,
        records: Iterable[Any],
        columns: Sequence[Column],
        *,
        searchable_fields: Sequence[str] | None = None,
    ) -> None:
        self.records = tuple(records)
        self.columns = build_columns(columns)
        self.search_fields = tuple(searchable_fields) if searchable_fields is not None else default_search_fields(self.columns)

    def fetch(self, query: TableQuery) -> PageResult:
        matched = match_records(self.records, query, self.columns, self.search_fields)
        ordered = sort_records(matched, query.sort, self.columns)
        pagination = recompute(Pagination(page=query.page, page_size=query.page_size), len(ordered))
        return PageResult(data=tuple(paginate(ordered, pagination)), total=len(ordered))


class DataTableEngine:
    def __init__(
        self,
        columns: Iterable[Column | Mapping[str, Any]],
        *,
        row_key: RowKey = "id",
        mode: EngineMode | str | None = None,
        config: EngineConfig | None = None,
        bulk_actions: Iterable[BulkAction] = (),
        row_actions: Iterable[RowAction] = (),
        searchable_fields: Sequence[str] | None = None,
        multi_sort: bool | None = None,
        card_hints: Mapping[str, str] | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.columns = build_columns(columns)
        if not self.columns:
            raise ConfigurationError("at least one column is required")
        try:
            self.mode = EngineMode(mode or self.config.mode)
        except ValueError as exc:
            raise ConfigurationError(f"unknown engine mode {mode!r}") from exc
        self.row_key = row_key
        self.multi_sort = self.config.multi_sort if multi_sort is None else multi_sort
        self.search_fields = (
            tuple(searchable_fields) if searchable_fields is not None else default_search_fields(self.columns)
        )
        self.card_hints = dict(card_hints) if card_hints else None
        self.bulk = BulkActionManager(bulk_actions, row_key)
        self.rows = RowActionDispatcher(row_actions, row_key)
        self._by_key = column_by_key(self.columns)

    @property
    def server_side(self) -> bool:
        return self.mode is EngineMode.SERVER

    @property
    def visible_columns(self) -> tuple[Column, ...]:
        return tuple(column for column in self.columns if not column.hidden)

    def initial_state(
        self,
        *,
        sort: Iterable[SortEntry | Mapping[str, Any]] = (),
        filters: Mapping[str, Any] | None = None,
        page_size: int | None = None,
        presets: Iterable[FilterPreset] = (),
        records: Iterable[Any] | None = None,
    ) -> TableState:
        entries = coerce_sort_entries(sort)
        validate_sort_entries(entries, self.columns)
        size = page_size or self.config.default_page_size
        if size < 1 or size > self.config.max_page_size:
            raise ConfigurationError(f"page size must be between 1 and {self.config.max_page_size}, got {size}")
        errors = validate_filter_value(filters, self.columns)
        if errors:
            raise ConfigurationError("; ".join(errors))
        state = TableState(
            query=TableQuery(sort=entries, filters=clean_filter_value(filters), page_size=size),
            presets=validate_presets(presets),
        )
        if records is not None:
            state = self.load(state, records)
        return state

    # state helpers

    def _accept(self, state: TableState, action: str, **query_changes: Any) -> TableState:
        update: dict[str, Any] = {"validation_errors": ()}
        updated = state
        if query_changes:
            # a new query invalidates any fetch still in flight
            updated = state.with_query(**query_changes)
            update["request_token"] = state.request_token + 1
        log_action(logger, "table", action, "applied", page=updated.query.page)
        return updated.model_copy(update=update)

    def _reject(self, state: TableState, action: str, errors: Sequence[str]) -> TableState:
        log_action(logger, "table", action, "rejected", errors=len(errors))
        return state.model_copy(update={"validation_errors": tuple(errors)})

    def _known_total(self, state: TableState) -> int | None:
        if not state.loaded:
            return None
        if self.server_side:
            return state.total
        return len(match_records(state.records, state.query, self.columns, self.search_fields))

    def load(self, state: TableState, records: Iterable[Any]) -> TableState:
        """Replace the local collection (client mode)."""
        rows = tuple(records)
        return state.model_copy(update={"records": rows, "total": len(rows), "loaded": True})

    # sorting

    def toggle_sort(self, state: TableState, key: str, *, additive: bool = False) -> TableState:
        column = self._by_key.get(key)
        if column is None or not column.sortable:
            return self._reject(state, "toggle_sort", [f"La columna '{key}' no se puede ordenar"])
        entries = toggle_sort(state.query.sort, key, additive=additive, multi_sort=self.multi_sort)
        return self._accept(state, "toggle_sort", sort=entries, page=1)

    def set_sort(self, state: TableState, entries: Iterable[SortEntry | Mapping[str, Any]]) -> TableState:
        coerced = coerce_sort_entries(entries)
        validate_sort_entries(coerced, self.columns)
        if len(coerced) > 1 and not self.multi_sort:
            raise ConfigurationError("multi-column sort is disabled for this table")
        return self._accept(state, "set_sort", sort=coerced, page=1)

    # filters and search

    def set_filters(self, state: TableState, filters: Mapping[str, Any] | None) -> TableState:
        errors = validate_filter_value(filters, self.columns)
        if errors:
            return self._reject(state, "set_filters", errors)
        updated = self._accept(state, "set_filters", filters=clean_filter_value(filters), page=1)
        return updated.model_copy(update={"active_preset_id": None})

    def set_filter(self, state: TableState, key: str, value: Any) -> TableState:
        return self.set_filters(state, set_filter(state.query.filters, key, value))

    def remove_filter(self, state: TableState, key: str) -> TableState:
        return self.set_filters(state, remove_filter(state.query.filters, key))

    def clear_filters(self, state: TableState, *, include_search: bool = True) -> TableState:
        changes: dict[str, Any] = {"filters": {}, "filter_group": None, "page": 1}
        if include_search:
            changes["search"] = ""
        updated = self._accept(state, "clear_filters", **changes)
        return updated.model_copy(update={"active_preset_id": None})

    def set_filter_group(self, state: TableState, group: FilterGroup | Mapping[str, Any] | None) -> TableState:
        candidate = group
        if isinstance(group, Mapping):
            try:
                candidate = import_filter_group(group)
            except FilterValidationError as exc:
                return self._reject(state, "set_filter_group", exc.messages)
        decision = accept_filter_group(
            state.query.filter_group,
            candidate,
            fields=self.columns,
            max_depth=self.config.max_filter_depth,
        )
        if not decision.accepted:
            return self._reject(state, "set_filter_group", decision.errors)
        group_value = None if decision.group is None or decision.group.is_empty else decision.group
        return self._accept(state, "set_filter_group", filter_group=group_value, page=1)

    def set_search(self, state: TableState, text: str | None) -> TableState:
        value = text or ""
        if value == state.query.search:
            return state
        return self._accept(state, "set_search", search=value, page=1)

    def active_filter_count(self, state: TableState) -> int:
        return active_filter_count(state.query.search, state.query.filters, state.query.filter_group)

    # presets

    def select_preset(self, state: TableState, preset_id: str) -> TableState:
        try:
            filters = select_preset(state.presets, preset_id)
        except ConfigurationError:
            return self._reject(state, "select_preset", [f"El filtro guardado '{preset_id}' no existe"])
        updated = self._accept(state, "select_preset", filters=filters, page=1)
        return updated.model_copy(update={"active_preset_id": preset_id})

    def save_preset(self, state: TableState, name: str, *, is_default: bool = False) -> TableState:
        try:
            presets = save_preset(state.presets, name, state.query.filters, is_default=is_default)
        except ConfigurationError as exc:
            return self._reject(state, "save_preset", [f"No se pudo guardar el filtro: {exc}"])
        updated = self._accept(state, "save_preset")
        return updated.model_copy(update={"presets": presets, "active_preset_id": presets[-1].id})

    # pagination

    def set_page(self, state: TableState, page: int) -> TableState:
        if page < 1:
            return self._reject(state, "set_page", [f"Página fuera de rango: {page}"])
        total = self._known_total(state)
        if total is not None:
            last_page = max(1, math.ceil(total / state.query.page_size))
            if page > last_page:
                return self._reject(state, "set_page", [f"Página fuera de rango: {page} (máximo {last_page})"])
        return self._accept(state, "set_page", page=page)

    def set_page_size(self, state: TableState, page_size: int) -> TableState:
        if page_size < 1 or page_size > self.config.max_page_size:
            return self._reject(
                state,
                "set_page_size",
                [f"Tamaño de página fuera de rango: {page_size} (1 a {self.config.max_page_size})"],
            )
        total = self._known_total(state)
        current = Pagination(page=state.query.page, page_size=state.query.page_size, total=total or 0)
        try:
            if total is None:
                first_index = (state.query.page - 1) * state.query.page_size
                page = math.ceil(first_index / page_size) + 1
            else:
                page = resize_page(current, page_size).page
        except PaginationError as exc:
            return self._reject(state, "set_page_size", [str(exc)])
        return self._accept(state, "set_page_size", page=page, page_size=page_size)

    # selection

    def _page_keys(self, state: TableState, records: Sequence[Any] | None = None) -> list[Hashable]:
        visible, _ = self._visible(state, records)
        return [record_key(record, self.row_key) for record in visible]

    def toggle_row(self, state: TableState, key: Hashable) -> TableState:
        return state.model_copy(update={"selection": toggle(state.selection, key)})

    def select_page(self, state: TableState, records: Sequence[Any] | None = None) -> TableState:
        keys = self._page_keys(state, records)
        return state.model_copy(update={"selection": select_page(state.selection, keys)})

    def deselect_page(self, state: TableState, records: Sequence[Any] | None = None) -> TableState:
        keys = self._page_keys(state, records)
        return state.model_copy(update={"selection": deselect_page(state.selection, keys)})

    def toggle_page(self, state: TableState, records: Sequence[Any] | None = None) -> TableState:
        """Header checkbox: clear the page when fully selected, otherwise select it."""
        keys = self._page_keys(state, records)
        if page_selection_state(state.selection, keys) == "all":
            return state.model_copy(update={"selection": deselect_page(state.selection, keys)})
        return state.model_copy(update={"selection": select_page(state.selection, keys)})

    def select_all_matching(self, state: TableState, records: Sequence[Any] | None = None) -> TableState:
        source = self._source(state, records)
        if self.server_side:
            matched = list(source)
        else:
            matched = match_records(source, state.query, self.columns, self.search_fields)
        keys = [record_key(record, self.row_key) for record in matched]
        return state.model_copy(update={"selection": select_all(state.selection, keys)})

    def clear_selection(self, state: TableState) -> TableState:
        return state.model_copy(update={"selection": frozenset()})

    def selected_records(self, state: TableState, records: Sequence[Any] | None = None) -> list[Any]:
        if not state.selection:
            return []
        if self.server_side:
            return [record for key, record in state.known_records.items() if key in state.selection]
        return [record for record in self._source(state, records) if record_key(record, self.row_key) in state.selection]

    def apply_outcome(self, state: TableState, outcome: ActionOutcome) -> TableState:
        """Drop the keys a successful bulk action touched from the selection."""
        if not outcome.ok or not outcome.affected_keys:
            return state
        return state.model_copy(update={"selection": state.selection - outcome.affected_keys})

    async def request_bulk_action(
        self, state: TableState, key: str, records: Sequence[Any] | None = None
    ) -> tuple[TableState, ActionOutcome]:
        outcome = await self.bulk.request(key, self.selected_records(state, records))
        return self.apply_outcome(state, outcome), outcome

    async def confirm_bulk_action(
        self, state: TableState, key: str, records: Sequence[Any] | None = None
    ) -> tuple[TableState, ActionOutcome]:
        outcome = await self.bulk.confirm(key, self.selected_records(state, records))
        return self.apply_outcome(state, outcome), outcome

    def cancel_bulk_action(self, key: str) -> ActionOutcome:
        return self.bulk.cancel(key)

    # fetch lifecycle

    def begin_fetch(self, state: TableState) -> tuple[TableState, int]:
        token = state.request_token + 1
        log_action(logger, "table", "fetch", "started", token=token, page=state.query.page)
        return state.model_copy(update={"loading": True, "request_token": token}), token

    def retry(self, state: TableState) -> tuple[TableState, int]:
        return self.begin_fetch(state)

    def complete_fetch(self, state: TableState, token: int, response: PageResult | Mapping[str, Any]) -> TableState:
        if token != state.request_token:
            log_action(logger, "table", "fetch", "stale_discarded", token=token, current=state.request_token)
            return state
        try:
            result = coerce_page_result(response)
        except MalformedResponseError as exc:
            return self.fail_fetch(state, token, exc)
        pagination = recompute(Pagination(page=state.query.page, page_size=state.query.page_size), result.total)
        if pagination.page != state.query.page:
            # rows belong to a page that no longer exists; keep loading until the clamped page arrives
            log_action(
                logger, "table", "fetch", "page_clamped", token=token, page=pagination.page, total=result.total
            )
            clamped = state.model_copy(update={"total": result.total, "loaded": True, "error": None})
            return clamped.with_query(page=pagination.page)
        page_rows = {record_key(record, self.row_key): record for record in result.data}
        kept = {key: record for key, record in state.known_records.items() if key in state.selection}
        updated = state.model_copy(
            update={
                "records": result.data,
                "known_records": {**kept, **page_rows},
                "total": result.total,
                "loaded": True,
                "loading": False,
                "error": None,
            }
        )
        log_action(logger, "table", "fetch", "completed", token=token, total=result.total, rows=len(result.data))
        return updated

    def fail_fetch(self, state: TableState, token: int, error: BaseException) -> TableState:
        if token != state.request_token:
            log_action(logger, "table", "fetch", "stale_discarded", token=token, current=state.request_token)
            return state
        user_error = to_user_facing_error(error)
        log_action(
            logger,
            "table",
            "fetch",
            "failed",
            token=token,
            trace_id=user_error.trace_id,
            error_type=type(error).__name__,
        )
        return state.model_copy(update={"loading": False, "error": user_error})

    def _fetch_once(self, state: TableState, source: RecordSource) -> TableState:
        state, token = self.begin_fetch(state)
        try:
            result = source.fetch(state.query)
        except Exception as exc:
            return self.fail_fetch(state, token, exc)
        return self.complete_fetch(state, token, result)

    def fetch(self, state: TableState, source: RecordSource) -> TableState:
        """Fetch the current query; fetch again once if the total moved the page."""
        state = self._fetch_once(state, source)
        if state.loading:
            state = self._fetch_once(state, source)
        return state

    # view

    def _source(self, state: TableState, records: Sequence[Any] | None) -> Sequence[Any]:
        if records is not None and not self.server_side:
            return records
        return state.records

    def _visible(self, state: TableState, records: Sequence[Any] | None) -> tuple[list[Any], Pagination]:
        if self.server_side:
            pagination = recompute(Pagination(page=state.query.page, page_size=state.query.page_size), state.total)
            return list(state.records), pagination
        return run_pipeline(self._source(state, records), state.query, self.columns, self.search_fields)

    def ordered_rows(self, state: TableState, records: Sequence[Any] | None = None) -> list[Any]:
        """Filtered, searched and sorted rows across every page."""
        if self.server_side:
            return list(state.records)
        matched = match_records(self._source(state, records), state.query, self.columns, self.search_fields)
        return sort_records(matched, state.query.sort, self.columns)

    def export_csv(
        self,
        state: TableState,
        output_dir: str | Path,
        *,
        module: str,
        records: Sequence[Any] | None = None,
    ) -> Path:
        return export_view_csv(
            self.ordered_rows(state, records),
            self.columns,
            output_dir,
            module=module,
            filters=state.query.filters,
            search=state.query.search,
        )

    def view(
        self,
        state: TableState,
        records: Sequence[Any] | None = None,
        *,
        viewport_width: int | None = None,
    ) -> TableView:
        visible, pagination = self._visible(state, records)
        page_keys = [record_key(record, self.row_key) for record in visible]
        selected = self.selected_records(state, records)
        actions = self.bulk.actions.values()
        layout = None
        if viewport_width is not None:
            layout = resolve_layout(viewport_width, self.visible_columns, self.config.mobile_breakpoint, self.card_hints)
        return TableView(
            visible_records=tuple(visible),
            total=pagination.total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=pagination.total_pages,
            first_record=pagination.first_record,
            last_record=pagination.last_record,
            pages=tuple(visible_pages(pagination)),
            sort=state.query.sort,
            selection=state.selection,
            page_selection=page_selection_state(state.selection, page_keys),
            enabled_bulk_actions=tuple(action.key for action in enabled_bulk_actions(actions, selected)),
            visible_bulk_actions=tuple(action.key for action in visible_bulk_actions(actions, selected)),
            validation_errors=state.validation_errors,
            active_filter_count=self.active_filter_count(state),
            loading=state.loading,
            error=state.error,
            status=resolve_status(is_loading=state.loading, error=state.error, has_data=bool(visible)),
            layout=layout,
        )
