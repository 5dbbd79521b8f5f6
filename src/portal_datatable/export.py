from __future__ import annotations

import csv
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable

from .logger import get_logger, log_action
from .models import Column, DataType, read_field
from .values import is_empty

EMPTY_VALUE = "—"
SENSITIVE_KEYS = {"token", "refresh_token", "secret", "password", "access_token"}

logger = get_logger(__name__)


def display_value(value: Any, column: Column | None = None) -> str:
    if is_empty(value):
        return EMPTY_VALUE
    if column is not None and column.options and not isinstance(value, (list, tuple, set, frozenset)):
        label = next((option.label for option in column.options if option.value == value), None)
        if label is not None:
            return label
    if isinstance(value, bool):
        return "Sí" if value else "No"
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple, set, frozenset)):
        return ", ".join(display_value(item, column) for item in value)
    if isinstance(value, float) and column is not None and column.data_type is DataType.NUMBER and value.is_integer():
        return str(int(value))
    return str(value).strip()


def sanitize_row(record: Any, columns: Sequence[Column]) -> dict[str, str]:
    row: dict[str, str] = {}
    for column in columns:
        if column.key.lower() in SENSITIVE_KEYS:
            row[column.title] = "***"
            continue
        row[column.title] = display_value(read_field(record, column.key), column)
    return row


def export_view_csv(
    rows: Iterable[Any],
    columns: Sequence[Column],
    output_dir: str | Path,
    *,
    module: str,
    filters: Mapping[str, Any] | None = None,
    search: str | None = None,
    now: Callable[[], datetime] | None = None,
) -> Path:
    """Write the rows of the current view, in view order, to a timestamped CSV."""
    visible = [column for column in columns if not column.hidden]
    destination = Path(output_dir)
    destination.mkdir(parents=True, exist_ok=True)

    moment = (now or (lambda: datetime.now().astimezone()))()
    path = destination / f"{module}_{moment.strftime('%Y%m%d_%H%M%S')}.csv"

    count = 0
    with path.open("w", newline="", encoding="utf-8-sig") as handle:
        handle.write(f"# timestamp_local: {moment.isoformat()}\n")
        handle.write(f"# module: {module}\n")
        handle.write(f"# search: {search or ''}\n")
        handle.write(f"# filters: {dict(filters or {})}\n")
        writer = csv.DictWriter(handle, fieldnames=[column.title for column in visible], extrasaction="ignore")
        writer.writeheader()
        for record in rows:
            writer.writerow(sanitize_row(record, visible))
            count += 1

    log_action(logger, "export", "csv", "written", rows=count, file=path.name)
    return path
