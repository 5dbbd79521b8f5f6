from __future__ import annotations

from collections.abc import Hashable, Iterable, Mapping
from enum import Enum
from typing import Any, Callable, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ConfigurationError


class DataType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"


class FilterType(str, Enum):
    TEXT = "text"
    SELECT = "select"
    BOOLEAN = "boolean"
    RANGE = "range"
    DATE = "date"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class CardRole(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    HIDDEN = "hidden"


_DEFAULT_FILTER_TYPES = {
    DataType.STRING: FilterType.TEXT,
    DataType.NUMBER: FilterType.RANGE,
    DataType.BOOLEAN: FilterType.BOOLEAN,
    DataType.DATE: FilterType.DATE,
}

Comparator = Callable[[Any, Any], int]
RowKey = Union[str, Callable[[Any], Hashable]]


class SelectOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    value: Any


class Column(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str = Field(min_length=1)
    title: str
    sortable: bool = True
    filterable: bool = False
    filter_type: FilterType | None = None
    data_type: DataType = DataType.STRING
    options: tuple[SelectOption, ...] | None = None
    comparator: Comparator | None = None
    hidden: bool = False
    card_role: CardRole | None = None

    @model_validator(mode="after")
    def _check_filter_shape(self) -> "Column":
        filter_type = self.effective_filter_type
        if filter_type is FilterType.SELECT and not self.options:
            raise ValueError(f"column '{self.key}': select filters require a non-empty options set")
        if filter_type is FilterType.RANGE and self.data_type not in {DataType.NUMBER, DataType.DATE}:
            raise ValueError(f"column '{self.key}': range filters require a number or date column")
        return self

    @property
    def effective_filter_type(self) -> FilterType | None:
        if self.filter_type is not None:
            return self.filter_type
        if self.filterable:
            return _DEFAULT_FILTER_TYPES[self.data_type]
        return None

    def option_values(self) -> list[Any]:
        return [option.value for option in self.options or ()]


class SortEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str = Field(min_length=1)
    direction: SortDirection = SortDirection.ASC
    priority: int = Field(default=0, ge=0)


class RangeValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: Any = None
    end: Any = None

    @property
    def is_empty(self) -> bool:
        return self.start in (None, "") and self.end in (None, "")


class ConfirmSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = "Confirmar acción"
    message: str
    confirm_label: str = "Confirmar"
    cancel_label: str = "Cancelar"


def coerce_column(raw: Column | Mapping[str, Any]) -> Column:
    if isinstance(raw, Column):
        return raw
    try:
        return Column.model_validate(raw)
    except PydanticValidationError as exc:
        issue = exc.errors()[0] if exc.errors() else {"msg": "Invalid column"}
        raise ConfigurationError(str(issue.get("msg", "Invalid column"))) from exc


def build_columns(raw_columns: Iterable[Column | Mapping[str, Any]]) -> tuple[Column, ...]:
    columns = tuple(coerce_column(raw) for raw in raw_columns)
    seen: set[str] = set()
    for column in columns:
        if column.key in seen:
            raise ConfigurationError(f"duplicate column key '{column.key}'")
        seen.add(column.key)
    return columns


def coerce_sort_entries(raw_entries: Iterable[SortEntry | Mapping[str, Any]]) -> tuple[SortEntry, ...]:
    entries: list[SortEntry] = []
    for raw in raw_entries:
        if isinstance(raw, SortEntry):
            entries.append(raw)
            continue
        try:
            entries.append(SortEntry.model_validate(raw))
        except PydanticValidationError as exc:
            raise ConfigurationError(f"invalid sort entry {dict(raw)!r}") from exc
    return tuple(entries)


_MISSING = object()


def read_field(record: Any, key: str) -> Any:
    """Read ``key`` from a mapping or object; dotted keys walk nested values."""
    value = _read_one(record, key)
    if value is not _MISSING:
        return value
    if "." not in key:
        return None
    current = record
    for part in key.split("."):
        current = _read_one(current, part)
        if current is _MISSING or current is None:
            return None
    return current


def _read_one(record: Any, key: str) -> Any:
    if record is None:
        return _MISSING
    if isinstance(record, Mapping):
        return record.get(key, _MISSING)
    return getattr(record, key, _MISSING)


def record_key(record: Any, row_key: RowKey) -> Hashable:
    if callable(row_key):
        return row_key(record)
    value = read_field(record, row_key)
    if value is None:
        raise ConfigurationError(f"record has no value for row key '{row_key}'")
    return value


def column_by_key(columns: Iterable[Column]) -> dict[str, Column]:
    return {column.key: column for column in columns}
