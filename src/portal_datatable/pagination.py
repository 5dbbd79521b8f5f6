from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import PaginationError

FULL_WINDOW_LIMIT = 7


class Pagination(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1)
    total: int = Field(default=0, ge=0)

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size)

    @property
    def last_page(self) -> int:
        return max(1, self.total_pages)

    @property
    def first_record(self) -> int:
        if self.total == 0:
            return 0
        return (self.page - 1) * self.page_size + 1

    @property
    def last_record(self) -> int:
        return min(self.page * self.page_size, self.total)

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def _clamp(page: int, pagination: Pagination) -> int:
    return min(max(1, page), pagination.last_page)


def set_page(pagination: Pagination, page: int) -> Pagination:
    if page < 1:
        raise PaginationError(f"page must be >= 1, got {page}")
    target = _clamp(page, pagination)
    if target == pagination.page:
        return pagination
    return pagination.model_copy(update={"page": target})


def next_page(pagination: Pagination) -> Pagination:
    if not pagination.has_next:
        return pagination
    return pagination.model_copy(update={"page": pagination.page + 1})


def prev_page(pagination: Pagination) -> Pagination:
    return pagination.model_copy(update={"page": max(1, pagination.page - 1)})


def set_page_size(pagination: Pagination, page_size: int) -> Pagination:
    """Change the page size keeping the first visible record roughly in view."""
    if page_size < 1:
        raise PaginationError(f"page size must be >= 1, got {page_size}")
    if page_size == pagination.page_size:
        return pagination
    first_index = (pagination.page - 1) * pagination.page_size
    resized = pagination.model_copy(update={"page_size": page_size})
    target = math.ceil(first_index / page_size) + 1
    return resized.model_copy(update={"page": _clamp(target, resized)})


def recompute(pagination: Pagination, total: int) -> Pagination:
    if total < 0:
        raise PaginationError(f"total must be >= 0, got {total}")
    updated = pagination.model_copy(update={"total": total})
    page = _clamp(updated.page, updated)
    if page == updated.page:
        return updated
    return updated.model_copy(update={"page": page})


def reset(pagination: Pagination) -> Pagination:
    if pagination.page == 1:
        return pagination
    return pagination.model_copy(update={"page": 1})


def slice_bounds(pagination: Pagination) -> tuple[int, int]:
    start = (pagination.page - 1) * pagination.page_size
    return start, min(start + pagination.page_size, pagination.total)


def paginate(records: Sequence[Any], pagination: Pagination) -> list[Any]:
    start = (pagination.page - 1) * pagination.page_size
    return list(records[start : start + pagination.page_size])


def visible_pages(pagination: Pagination, delta: int = 2) -> list[int | None]:
    """Page numbers for the pager; ``None`` marks an ellipsis."""
    total_pages = pagination.total_pages
    if total_pages <= FULL_WINDOW_LIMIT:
        return list(range(1, total_pages + 1))

    current = pagination.page
    pages: list[int | None] = [1]
    if current > delta + 2:
        pages.append(None)
    start = max(2, current - delta)
    end = min(total_pages - 1, current + delta)
    pages.extend(range(start, end + 1))
    if current < total_pages - delta - 1:
        pages.append(None)
    pages.append(total_pages)
    return pages


def quick_jump(pagination: Pagination, raw: Any) -> Pagination:
    try:
        page = int(str(raw).strip())
    except (TypeError, ValueError):
        return pagination
    if page < 1 or page > pagination.total_pages:
        return pagination
    return pagination.model_copy(update={"page": page})
