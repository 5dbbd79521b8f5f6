from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .filter_groups import FilterGroup
from .layout import LayoutDecision
from .models import SortEntry
from .presets import FilterPreset
from .ui_errors import UserFacingError


class TableQuery(BaseModel):
    """Everything that decides which records are visible, in which order."""

    model_config = ConfigDict(frozen=True)

    sort: tuple[SortEntry, ...] = ()
    filters: dict[str, Any] = Field(default_factory=dict)
    filter_group: FilterGroup | None = None
    search: str = ""
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1)


class TableState(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: TableQuery = Field(default_factory=TableQuery)
    selection: frozenset[Any] = Field(default_factory=frozenset)
    presets: tuple[FilterPreset, ...] = ()
    active_preset_id: str | None = None
    validation_errors: tuple[str, ...] = ()
    loading: bool = False
    error: UserFacingError | None = None
    request_token: int = 0
    records: tuple[Any, ...] = ()
    known_records: dict[Any, Any] = Field(default_factory=dict)
    total: int = 0
    loaded: bool = False

    def with_query(self, **changes: Any) -> "TableState":
        return self.model_copy(update={"query": self.query.model_copy(update=changes)})


class ViewStatus(str, Enum):
    LOADING = "loading"
    EMPTY = "empty"
    SUCCESS = "success"
    PARTIAL_ERROR = "partial_error"
    FATAL_ERROR = "fatal_error"


def resolve_status(*, is_loading: bool, error: UserFacingError | None, has_data: bool) -> ViewStatus:
    if is_loading:
        return ViewStatus.LOADING
    if error is not None and has_data:
        return ViewStatus.PARTIAL_ERROR
    if error is not None:
        return ViewStatus.FATAL_ERROR
    if not has_data:
        return ViewStatus.EMPTY
    return ViewStatus.SUCCESS


@dataclass(frozen=True)
class TableView:
    visible_records: tuple[Any, ...]
    total: int
    page: int
    page_size: int
    total_pages: int
    first_record: int
    last_record: int
    pages: tuple[int | None, ...]
    sort: tuple[SortEntry, ...]
    selection: frozenset[Any]
    page_selection: str
    enabled_bulk_actions: tuple[str, ...]
    visible_bulk_actions: tuple[str, ...]
    validation_errors: tuple[str, ...]
    active_filter_count: int
    loading: bool = False
    error: UserFacingError | None = None
    status: ViewStatus = ViewStatus.SUCCESS
    layout: LayoutDecision | None = None

    def render(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "page": self.page,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
            "range": [self.first_record, self.last_record],
            "status": self.status.value,
            "selected": len(self.selection),
            "active_filters": self.active_filter_count,
            "errors": list(self.validation_errors),
        }
