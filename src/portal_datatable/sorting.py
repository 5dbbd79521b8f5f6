"""Sort coordinator.

Holds the ordered list of :class:`SortEntry` for one table and implements the
header-click state machine::

    Unsorted --click(k)--> Single(k, asc) --click(k)--> Single(k, desc) --click(k)--> Unsorted

With multi-sort enabled an additive click (shift+click) appends a key, flips
an ascending key to descending, and removes a descending key; priorities are
re-indexed so they stay contiguous from 0.

Ordering is stable and applies keys from lowest to highest precedence, so the
first entry with a non-equal comparison decides. Empty values always sort last
regardless of direction.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from functools import cmp_to_key
from typing import Any, Callable

from .exceptions import ConfigurationError
from .models import Column, DataType, SortDirection, SortEntry, column_by_key, read_field
from .normalization import strip_accents
from .values import coerce_bool, coerce_datetime, coerce_number, is_empty

UNSORTED = "unsorted"
SINGLE = "single"
MULTI = "multi"


def ordered(entries: Iterable[SortEntry]) -> tuple[SortEntry, ...]:
    return tuple(sorted(entries, key=lambda entry: entry.priority))


def _reindex(entries: Iterable[SortEntry]) -> tuple[SortEntry, ...]:
    return tuple(
        entry if entry.priority == index else entry.model_copy(update={"priority": index})
        for index, entry in enumerate(ordered(entries))
    )


def sort_state(entries: Sequence[SortEntry]) -> str:
    if not entries:
        return UNSORTED
    return SINGLE if len(entries) == 1 else MULTI


def toggle_sort(
    entries: Sequence[SortEntry],
    key: str,
    *,
    additive: bool = False,
    multi_sort: bool = False,
) -> tuple[SortEntry, ...]:
    current = ordered(entries)
    if additive and multi_sort:
        return _toggle_additive(current, key)
    return _toggle_single(current, key)


def _toggle_single(current: tuple[SortEntry, ...], key: str) -> tuple[SortEntry, ...]:
    if len(current) == 1 and current[0].key == key:
        if current[0].direction is SortDirection.ASC:
            return (current[0].model_copy(update={"direction": SortDirection.DESC}),)
        return ()
    return (SortEntry(key=key, direction=SortDirection.ASC, priority=0),)


def _toggle_additive(current: tuple[SortEntry, ...], key: str) -> tuple[SortEntry, ...]:
    existing = next((entry for entry in current if entry.key == key), None)
    if existing is None:
        return current + (SortEntry(key=key, direction=SortDirection.ASC, priority=len(current)),)
    if existing.direction is SortDirection.ASC:
        return tuple(
            entry.model_copy(update={"direction": SortDirection.DESC}) if entry.key == key else entry
            for entry in current
        )
    return _reindex(entry for entry in current if entry.key != key)


def validate_sort_entries(entries: Sequence[SortEntry], columns: Sequence[Column] | None = None) -> None:
    keys = [entry.key for entry in entries]
    duplicates = sorted({key for key in keys if keys.count(key) > 1})
    if duplicates:
        raise ConfigurationError(f"duplicate sort keys: {', '.join(duplicates)}")

    priorities = sorted(entry.priority for entry in entries)
    if priorities != list(range(len(entries))):
        raise ConfigurationError(f"sort priorities must be unique and contiguous from 0, got {priorities}")

    if columns is None:
        return
    by_key = column_by_key(columns)
    for entry in entries:
        column = by_key.get(entry.key)
        if column is None:
            raise ConfigurationError(f"unknown sort column '{entry.key}'")
        if not column.sortable:
            raise ConfigurationError(f"column '{entry.key}' is not sortable")


def _string_key(value: Any) -> tuple[int, Any]:
    return (0, strip_accents(value))


def _number_key(value: Any) -> tuple[int, Any]:
    number = coerce_number(value)
    if number is None:
        return (1, strip_accents(value))
    return (0, number)


def _date_key(value: Any) -> tuple[int, Any]:
    parsed = coerce_datetime(value)
    if parsed is None:
        return (1, strip_accents(value))
    return (0, parsed)


def _bool_key(value: Any) -> tuple[int, Any]:
    parsed = coerce_bool(value)
    if parsed is None:
        return (1, strip_accents(value))
    return (0, parsed)


_DEFAULT_KEYS: dict[DataType, Callable[[Any], tuple[int, Any]]] = {
    DataType.STRING: _string_key,
    DataType.NUMBER: _number_key,
    DataType.DATE: _date_key,
    DataType.BOOLEAN: _bool_key,
}


def compare_values(a: Any, b: Any, data_type: DataType = DataType.STRING) -> int:
    """Default ascending comparison for two values; empties compare last."""
    if is_empty(a) and is_empty(b):
        return 0
    if is_empty(a):
        return 1
    if is_empty(b):
        return -1
    key = _DEFAULT_KEYS[data_type]
    left, right = key(a), key(b)
    if left == right:
        return 0
    return -1 if left < right else 1


def sort_records(records: Iterable[Any], entries: Sequence[SortEntry], columns: Sequence[Column] = ()) -> list[Any]:
    result = list(records)
    if not entries:
        return result
    by_key = column_by_key(columns)
    for entry in reversed(ordered(entries)):
        column = by_key.get(entry.key)
        filled = [record for record in result if not is_empty(read_field(record, entry.key))]
        empties = [record for record in result if is_empty(read_field(record, entry.key))]
        descending = entry.direction is SortDirection.DESC
        if column is not None and column.comparator is not None:
            comparator = column.comparator
            filled.sort(
                key=cmp_to_key(lambda x, y: comparator(read_field(x, entry.key), read_field(y, entry.key))),
                reverse=descending,
            )
        else:
            key = _DEFAULT_KEYS[column.data_type if column else DataType.STRING]
            filled.sort(key=lambda record: key(read_field(record, entry.key)), reverse=descending)
        result = filled + empties
    return result
