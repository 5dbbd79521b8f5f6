from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from .models import Column, read_field
from .normalization import match, normalize


def default_search_fields(columns: Iterable[Column]) -> tuple[str, ...]:
    return tuple(column.key for column in columns if not column.hidden)


class SearchMatcher:
    """Free-text search over a fixed set of record fields."""

    def __init__(self, fields: Sequence[str], *, whole_word: bool = False, fuzzy: bool = False) -> None:
        self.fields = tuple(fields)
        self.whole_word = whole_word
        self.fuzzy = fuzzy

    def _field_matches(self, value: Any, query: str) -> bool:
        if isinstance(value, (list, tuple, set, frozenset)):
            return any(self._field_matches(item, query) for item in value)
        return match(query, value, whole_word=self.whole_word, fuzzy=self.fuzzy)

    def matches(self, record: Any, query: str | None) -> bool:
        if not normalize(query):
            return True
        return any(self._field_matches(read_field(record, name), query or "") for name in self.fields)

    def apply(self, records: Iterable[Any], query: str | None) -> list[Any]:
        if not normalize(query):
            return list(records)
        return [record for record in records if self.matches(record, query)]


def apply_search(records: Iterable[Any], query: str | None, fields: Sequence[str], *, whole_word: bool = False) -> list[Any]:
    return SearchMatcher(fields, whole_word=whole_word).apply(records, query)
