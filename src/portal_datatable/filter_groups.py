"""Advanced AND/OR filter trees.

A :class:`FilterGroup` holds conditions and nested groups; both node kinds are
tagged with ``kind`` so a serialized tree round-trips through JSON without
guessing. Evaluation is a plain recursive descent that short-circuits, and
validation walks the whole tree collecting every problem so the caller can
show them together instead of fixing one error at a time.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from itertools import chain
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import FilterValidationError, ValidationIssue
from .logger import get_logger
from .models import Column, read_field
from .normalization import strip_accents
from .values import coerce_bool, coerce_datetime, coerce_number, is_empty

logger = get_logger(__name__)

DEFAULT_MAX_DEPTH = 3


class GroupOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_EQUAL = "greater_equal"
    LESS_EQUAL = "less_equal"
    BETWEEN = "between"
    NOT_BETWEEN = "not_between"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"
    IN = "in"
    NOT_IN = "not_in"


OPERATOR_ALIASES = {
    "eq": ConditionOperator.EQUALS.value,
    "ne": ConditionOperator.NOT_EQUALS.value,
    "gt": ConditionOperator.GREATER_THAN.value,
    "lt": ConditionOperator.LESS_THAN.value,
    "gte": ConditionOperator.GREATER_EQUAL.value,
    "ge": ConditionOperator.GREATER_EQUAL.value,
    "lte": ConditionOperator.LESS_EQUAL.value,
    "le": ConditionOperator.LESS_EQUAL.value,
}

VALUELESS_OPERATORS = {ConditionOperator.IS_NULL, ConditionOperator.IS_NOT_NULL}
RANGE_OPERATORS = {ConditionOperator.BETWEEN, ConditionOperator.NOT_BETWEEN}
LIST_OPERATORS = {ConditionOperator.IN, ConditionOperator.NOT_IN}


class FilterCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["condition"] = "condition"
    field: str
    operator: ConditionOperator
    value: Any = None

    @field_validator("operator", mode="before")
    @classmethod
    def _resolve_alias(cls, value: Any) -> Any:
        if isinstance(value, str):
            token = value.strip().lower()
            return OPERATOR_ALIASES.get(token, token)
        return value


class FilterGroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["group"] = "group"
    operator: GroupOperator = GroupOperator.AND
    conditions: tuple[FilterCondition, ...] = ()
    groups: tuple["FilterGroup", ...] = ()

    @field_validator("operator", mode="before")
    @classmethod
    def _upper_operator(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @property
    def is_empty(self) -> bool:
        return not self.conditions and not self.groups


FilterGroup.model_rebuild()


@dataclass(frozen=True)
class FilterGroupDecision:
    group: FilterGroup | None
    errors: tuple[str, ...] = ()

    @property
    def accepted(self) -> bool:
        return not self.errors


def _same(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, bool) or isinstance(right, bool):
        expected = coerce_bool(right)
        return expected is not None and coerce_bool(left) is expected
    left_number, right_number = coerce_number(left), coerce_number(right)
    if left_number is not None and right_number is not None:
        return left_number == right_number
    return strip_accents(left).strip() == strip_accents(right).strip()


def _compare(left: Any, right: Any) -> int | None:
    """Three-way compare as numbers, then dates, then accent-insensitive text."""
    if is_empty(left) or is_empty(right):
        return None
    for coerce in (coerce_number, coerce_datetime):
        left_value, right_value = coerce(left), coerce(right)
        if left_value is not None and right_value is not None:
            return (left_value > right_value) - (left_value < right_value)
    left_text, right_text = strip_accents(left), strip_accents(right)
    return (left_text > right_text) - (left_text < right_text)


def _text(value: Any) -> str:
    return strip_accents(value)


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return []


def _between(record_value: Any, bounds: Any) -> bool:
    pair = _as_list(bounds)
    if len(pair) != 2:
        return False
    low, high = _compare(record_value, pair[0]), _compare(record_value, pair[1])
    return low is not None and high is not None and low >= 0 and high <= 0


def evaluate_condition(record: Any, condition: FilterCondition) -> bool:
    record_value = read_field(record, condition.field)
    operator = condition.operator
    value = condition.value

    if operator is ConditionOperator.IS_NULL:
        return is_empty(record_value)
    if operator is ConditionOperator.IS_NOT_NULL:
        return not is_empty(record_value)
    if operator is ConditionOperator.EQUALS:
        return _same(record_value, value)
    if operator is ConditionOperator.NOT_EQUALS:
        return not _same(record_value, value)
    if operator is ConditionOperator.CONTAINS:
        return record_value is not None and _text(value) in _text(record_value)
    if operator is ConditionOperator.NOT_CONTAINS:
        return record_value is None or _text(value) not in _text(record_value)
    if operator is ConditionOperator.STARTS_WITH:
        return record_value is not None and _text(record_value).startswith(_text(value))
    if operator is ConditionOperator.ENDS_WITH:
        return record_value is not None and _text(record_value).endswith(_text(value))
    if operator is ConditionOperator.BETWEEN:
        return _between(record_value, value)
    if operator is ConditionOperator.NOT_BETWEEN:
        if len(_as_list(value)) != 2:
            return True
        return not _between(record_value, value)
    if operator is ConditionOperator.IN:
        return any(_same(record_value, option) for option in _as_list(value))
    if operator is ConditionOperator.NOT_IN:
        return not any(_same(record_value, option) for option in _as_list(value))

    result = _compare(record_value, value)
    if result is None:
        return False
    if operator is ConditionOperator.GREATER_THAN:
        return result > 0
    if operator is ConditionOperator.LESS_THAN:
        return result < 0
    if operator is ConditionOperator.GREATER_EQUAL:
        return result >= 0
    if operator is ConditionOperator.LESS_EQUAL:
        return result <= 0
    return True


def evaluate_group(record: Any, group: FilterGroup) -> bool:
    if group.is_empty:
        return True
    results = chain(
        (evaluate_condition(record, condition) for condition in group.conditions),
        (evaluate_group(record, nested) for nested in group.groups),
    )
    if group.operator is GroupOperator.AND:
        return all(results)
    return any(results)


def apply_filter_group(records: Iterable[Any], group: FilterGroup | None) -> list[Any]:
    if group is None or group.is_empty:
        return list(records)
    return [record for record in records if evaluate_group(record, group)]


def count_conditions(group: FilterGroup | None) -> int:
    if group is None:
        return 0
    return len(group.conditions) + sum(count_conditions(nested) for nested in group.groups)


def _field_names(fields: Iterable[str | Column] | None) -> set[str] | None:
    if fields is None:
        return None
    return {item.key if isinstance(item, Column) else str(item) for item in fields}


def _condition_issues(condition: FilterCondition, path: str, known: Collection[str] | None) -> Iterator[ValidationIssue]:
    if known is not None and condition.field not in known:
        yield ValidationIssue(path, condition.field, "el campo no existe")
    operator = condition.operator
    if operator in VALUELESS_OPERATORS:
        return
    value = condition.value
    if operator in RANGE_OPERATORS:
        pair = _as_list(value)
        if len(pair) != 2 or any(is_empty(item) for item in pair):
            yield ValidationIssue(path, condition.field, "se requieren dos valores (desde y hasta)")
        return
    if operator in LIST_OPERATORS:
        if not _as_list(value) or all(is_empty(item) for item in _as_list(value)):
            yield ValidationIssue(path, condition.field, "se requiere una lista de valores no vacía")
        return
    if is_empty(value):
        yield ValidationIssue(path, condition.field, "el valor es obligatorio")


def collect_filter_group_issues(
    group: FilterGroup,
    *,
    fields: Iterable[str | Column] | None = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[ValidationIssue]:
    known = _field_names(fields)
    issues: list[ValidationIssue] = []

    def walk(node: FilterGroup, path: str, depth: int) -> None:
        if depth > max_depth:
            issues.append(ValidationIssue(path, None, f"se supera la profundidad máxima de {max_depth} niveles"))
        for index, condition in enumerate(node.conditions, start=1):
            issues.extend(_condition_issues(condition, f"{path}, condición {index}", known))
        for index, nested in enumerate(node.groups, start=1):
            walk(nested, f"{path}.{index}", depth + 1)

    walk(group, "Grupo 1", 1)
    return issues


def validate_filter_group(
    group: FilterGroup,
    *,
    fields: Iterable[str | Column] | None = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[str]:
    return [issue.message() for issue in collect_filter_group_issues(group, fields=fields, max_depth=max_depth)]


def accept_filter_group(
    current: FilterGroup | None,
    candidate: FilterGroup | None,
    *,
    fields: Iterable[str | Column] | None = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> FilterGroupDecision:
    if candidate is None:
        return FilterGroupDecision(group=None)
    errors = validate_filter_group(candidate, fields=fields, max_depth=max_depth)
    if errors:
        logger.info("filter group rejected with %s error(s)", len(errors))
        return FilterGroupDecision(group=current, errors=tuple(errors))
    return FilterGroupDecision(group=candidate)


def export_filter_group(group: FilterGroup) -> str:
    return group.model_dump_json()


def _issue_from_pydantic(error: Mapping[str, Any]) -> ValidationIssue:
    location = ".".join(str(part) for part in error.get("loc", ())) or "filter_group"
    return ValidationIssue(location, None, str(error.get("msg", "valor no válido")))


def import_filter_group(payload: str | bytes | Mapping[str, Any]) -> FilterGroup:
    try:
        if isinstance(payload, (str, bytes)):
            return FilterGroup.model_validate_json(payload)
        return FilterGroup.model_validate(payload)
    except PydanticValidationError as exc:
        raise FilterValidationError([_issue_from_pydantic(error) for error in exc.errors()]) from exc
