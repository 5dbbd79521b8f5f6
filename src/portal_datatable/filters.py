from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from .filter_groups import FilterGroup, count_conditions
from .logger import get_logger
from .models import Column, DataType, FilterType, RangeValue, column_by_key, read_field
from .normalization import match
from .values import coerce_bool, coerce_date, coerce_datetime, coerce_number, is_empty

FilterValue = dict[str, Any]

logger = get_logger(__name__)


def as_range(value: Any) -> RangeValue | None:
    if isinstance(value, RangeValue):
        return value
    if isinstance(value, Mapping) and ("start" in value or "end" in value):
        return RangeValue(start=value.get("start"), end=value.get("end"))
    if isinstance(value, (list, tuple)) and len(value) == 2:
        return RangeValue(start=value[0], end=value[1])
    return None


def _is_blank_filter(value: Any) -> bool:
    if isinstance(value, (list, tuple, set, frozenset)):
        return all(is_empty(item) for item in value)
    rng = as_range(value)
    if rng is not None:
        return rng.is_empty
    return is_empty(value)


def clean_filter_value(filters: Mapping[str, Any] | None) -> FilterValue:
    if not filters:
        return {}
    return {key: value for key, value in filters.items() if not _is_blank_filter(value)}


def set_filter(filters: Mapping[str, Any], key: str, value: Any) -> FilterValue:
    updated = dict(filters)
    if _is_blank_filter(value):
        updated.pop(key, None)
    else:
        updated[key] = value
    return updated


def remove_filter(filters: Mapping[str, Any], key: str) -> FilterValue:
    return {name: value for name, value in filters.items() if name != key}


def active_filter_count(search: str | None, filters: Mapping[str, Any] | None, group: FilterGroup | None = None) -> int:
    count = 1 if search and search.strip() else 0
    count += len(clean_filter_value(filters))
    if group is not None:
        count += count_conditions(group)
    return count


def _loosely_equal(left: Any, right: Any) -> bool:
    if left == right:
        return True
    if left is None or right is None or isinstance(left, bool) or isinstance(right, bool):
        return False
    return str(left) == str(right)


def _match_text(record_value: Any, value: Any) -> bool:
    if isinstance(record_value, (list, tuple, set, frozenset)):
        return any(match(value, item) for item in record_value)
    return match(value, record_value)


def _match_select(record_value: Any, value: Any) -> bool:
    wanted = list(value) if isinstance(value, (list, tuple, set, frozenset)) else [value]
    present = list(record_value) if isinstance(record_value, (list, tuple, set, frozenset)) else [record_value]
    return any(_loosely_equal(item, option) for item in present for option in wanted)


def _match_boolean(record_value: Any, value: Any) -> bool:
    expected = coerce_bool(value)
    if expected is None:
        return False
    return coerce_bool(record_value) is expected


def _in_bounds(current: Any, start: Any, end: Any) -> bool:
    if start is not None and current < start:
        return False
    if end is not None and current > end:
        return False
    return True


def _match_range(record_value: Any, value: Any, data_type: DataType) -> bool:
    rng = as_range(value)
    if rng is None or is_empty(record_value):
        return False
    if data_type is DataType.DATE:
        current = coerce_datetime(record_value)
        start = coerce_datetime(rng.start) if not is_empty(rng.start) else None
        end = coerce_datetime(rng.end) if not is_empty(rng.end) else None
    else:
        current = coerce_number(record_value)
        start = coerce_number(rng.start) if not is_empty(rng.start) else None
        end = coerce_number(rng.end) if not is_empty(rng.end) else None
    if current is None:
        return False
    return _in_bounds(current, start, end)


def _match_date(record_value: Any, value: Any) -> bool:
    current = coerce_date(record_value)
    if current is None:
        return False
    rng = as_range(value)
    if rng is not None:
        start = coerce_date(rng.start) if not is_empty(rng.start) else None
        end = coerce_date(rng.end) if not is_empty(rng.end) else None
        return _in_bounds(current, start, end)
    return current == coerce_date(value)


def matches_column_filter(record: Any, column: Column, value: Any) -> bool:
    filter_type = column.effective_filter_type
    record_value = read_field(record, column.key)
    if filter_type is FilterType.TEXT:
        return _match_text(record_value, value)
    if filter_type is FilterType.SELECT:
        return _match_select(record_value, value)
    if filter_type is FilterType.BOOLEAN:
        return _match_boolean(record_value, value)
    if filter_type is FilterType.RANGE:
        return _match_range(record_value, value, column.data_type)
    if filter_type is FilterType.DATE:
        return _match_date(record_value, value)
    return True


def _filterable(filters: Mapping[str, Any], columns: Sequence[Column]) -> list[tuple[Column, Any]]:
    by_key = column_by_key(columns)
    pairs: list[tuple[Column, Any]] = []
    for key, value in clean_filter_value(filters).items():
        column = by_key.get(key)
        if column is None or column.effective_filter_type is None:
            logger.debug("ignoring filter on non filterable field %s", key)
            continue
        pairs.append((column, value))
    return pairs


def matches_filters(record: Any, filters: Mapping[str, Any] | None, columns: Sequence[Column]) -> bool:
    return all(matches_column_filter(record, column, value) for column, value in _filterable(filters or {}, columns))


def apply_filters(records: Iterable[Any], filters: Mapping[str, Any] | None, columns: Sequence[Column]) -> list[Any]:
    pairs = _filterable(filters or {}, columns)
    if not pairs:
        return list(records)
    return [record for record in records if all(matches_column_filter(record, column, value) for column, value in pairs)]


def validate_filter_value(filters: Mapping[str, Any] | None, columns: Sequence[Column]) -> list[str]:
    errors: list[str] = []
    by_key = column_by_key(columns)
    for key, value in clean_filter_value(filters).items():
        column = by_key.get(key)
        if column is None:
            errors.append(f"Filtro '{key}': el campo no existe")
            continue
        filter_type = column.effective_filter_type
        if filter_type is None:
            errors.append(f"Filtro '{key}': el campo no admite filtros")
        elif filter_type is FilterType.SELECT:
            allowed = column.option_values()
            chosen = value if isinstance(value, (list, tuple, set, frozenset)) else [value]
            invalid = [item for item in chosen if not any(_loosely_equal(item, option) for option in allowed)]
            if invalid:
                errors.append(f"Filtro '{key}': opción no válida {invalid!r}")
        elif filter_type is FilterType.RANGE:
            rng = as_range(value)
            if rng is None:
                errors.append(f"Filtro '{key}': se esperaba un rango con inicio y fin")
                continue
            errors.extend(_range_order_errors(key, rng, column.data_type))
        elif filter_type is FilterType.BOOLEAN and coerce_bool(value) is None:
            errors.append(f"Filtro '{key}': se esperaba un valor verdadero o falso")
    return errors


def _range_order_errors(key: str, rng: RangeValue, data_type: DataType) -> list[str]:
    coerce = coerce_datetime if data_type is DataType.DATE else coerce_number
    start = coerce(rng.start) if not is_empty(rng.start) else None
    end = coerce(rng.end) if not is_empty(rng.end) else None
    if (not is_empty(rng.start) and start is None) or (not is_empty(rng.end) and end is None):
        return [f"Filtro '{key}': los límites del rango no son válidos"]
    if start is not None and end is not None and start > end:
        return [f"Filtro '{key}': el inicio del rango es mayor que el fin"]
    return []
