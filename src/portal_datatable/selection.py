from __future__ import annotations

from collections.abc import Hashable, Iterable, Sequence
from typing import Any, Callable, Union

from pydantic import BaseModel, ConfigDict, Field

from .actions import ActionOutcome, ActionStatus, InvocationTracker
from .exceptions import ActionNotFoundError, ConfigurationError
from .logger import get_logger, log_action
from .models import ConfirmSpec, RowKey, record_key
from .ui_errors import UserFacingError

logger = get_logger(__name__)

RecordsPredicate = Union[bool, Callable[[list[Any]], bool]]

NONE_SELECTED = "none"
SOME_SELECTED = "some"
ALL_SELECTED = "all"


def select(selection: frozenset, key: Hashable) -> frozenset:
    return selection | {key}


def deselect(selection: frozenset, key: Hashable) -> frozenset:
    return selection - {key}


def toggle(selection: frozenset, key: Hashable) -> frozenset:
    return deselect(selection, key) if key in selection else select(selection, key)


def select_page(selection: frozenset, page_keys: Iterable[Hashable]) -> frozenset:
    return selection | frozenset(page_keys)


def deselect_page(selection: frozenset, page_keys: Iterable[Hashable]) -> frozenset:
    return selection - frozenset(page_keys)


def select_all(selection: frozenset, all_keys: Iterable[Hashable]) -> frozenset:
    return selection | frozenset(all_keys)


def clear(selection: frozenset) -> frozenset:
    return frozenset()


def prune_selection(selection: frozenset, available_keys: Iterable[Hashable]) -> frozenset:
    return selection & frozenset(available_keys)


def page_selection_state(selection: frozenset, page_keys: Iterable[Hashable]) -> str:
    keys = frozenset(page_keys)
    if not keys:
        return NONE_SELECTED
    chosen = len(keys & selection)
    if chosen == 0:
        return NONE_SELECTED
    return ALL_SELECTED if chosen == len(keys) else SOME_SELECTED


class BulkAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str = Field(min_length=1)
    label: str
    execute: Callable[..., Any]
    min_selection: int = Field(default=1, ge=0)
    max_selection: int | None = Field(default=None, ge=1)
    disabled: RecordsPredicate = False
    hidden: RecordsPredicate = False
    confirm: ConfirmSpec | None = None
    variant: str = "default"


def _evaluate(flag: RecordsPredicate, records: list[Any]) -> bool:
    if callable(flag):
        return bool(flag(records))
    return bool(flag)


def bulk_action_enabled(action: BulkAction, selected_records: Sequence[Any]) -> bool:
    records = list(selected_records)
    count = len(records)
    if count < action.min_selection:
        return False
    if action.max_selection is not None and count > action.max_selection:
        return False
    return not _evaluate(action.disabled, records)


def visible_bulk_actions(actions: Iterable[BulkAction], selected_records: Sequence[Any]) -> list[BulkAction]:
    records = list(selected_records)
    return [action for action in actions if not _evaluate(action.hidden, records)]


def enabled_bulk_actions(actions: Iterable[BulkAction], selected_records: Sequence[Any]) -> list[BulkAction]:
    return [action for action in visible_bulk_actions(actions, selected_records) if bulk_action_enabled(action, selected_records)]


def validate_bulk_actions(actions: Iterable[BulkAction]) -> tuple[BulkAction, ...]:
    items = tuple(actions)
    seen: set[str] = set()
    for action in items:
        if action.key in seen:
            raise ConfigurationError(f"duplicate bulk action key '{action.key}'")
        if action.max_selection is not None and action.max_selection < action.min_selection:
            raise ConfigurationError(f"bulk action '{action.key}': max_selection is lower than min_selection")
        seen.add(action.key)
    return items


class BulkActionManager:
    """Confirm/execute flow for actions applied to the current selection.

    Each action key runs at most once at a time; a second request while the
    first is still executing returns ``IN_FLIGHT``. A successful outcome carries
    the keys of the records it touched so the caller can drop them from the
    selection; a failed one leaves the selection alone and keeps the error
    under ``errors[action_key]`` until :meth:`clear_error` is called.
    """

    def __init__(self, actions: Iterable[BulkAction], row_key: RowKey = "id") -> None:
        self.actions = {action.key: action for action in validate_bulk_actions(actions)}
        self.row_key = row_key
        self._tracker = InvocationTracker(module="bulk_actions")

    @property
    def errors(self) -> dict[Hashable, UserFacingError]:
        return dict(self._tracker.errors)

    def in_flight(self, key: str) -> bool:
        return self._tracker.is_busy(key)

    def awaiting_confirmation(self, key: str) -> bool:
        return self._tracker.is_pending(key)

    def _action(self, key: str) -> BulkAction:
        action = self.actions.get(key)
        if action is None:
            raise ActionNotFoundError(key, f"Acción masiva desconocida: {key}")
        return action

    def _keys(self, records: Sequence[Any]) -> frozenset:
        return frozenset(record_key(record, self.row_key) for record in records)

    def _refusal(self, action: BulkAction, records: Sequence[Any]) -> ActionOutcome | None:
        if self._tracker.is_busy(action.key):
            return ActionOutcome(ActionStatus.IN_FLIGHT, action.key)
        if _evaluate(action.hidden, list(records)) or not bulk_action_enabled(action, records):
            log_action(logger, "bulk_actions", action.key, "disabled", selected=len(records))
            return ActionOutcome(ActionStatus.DISABLED, action.key)
        return None

    async def request(self, key: str, selected_records: Sequence[Any]) -> ActionOutcome:
        action = self._action(key)
        refusal = self._refusal(action, selected_records)
        if refusal is not None:
            return refusal
        if action.confirm is not None:
            self._tracker.park(key)
            log_action(logger, "bulk_actions", key, "confirmation_required", selected=len(selected_records))
            return ActionOutcome(ActionStatus.CONFIRMATION_REQUIRED, key, confirm=action.confirm)
        return await self._execute(action, selected_records)

    async def confirm(self, key: str, selected_records: Sequence[Any]) -> ActionOutcome:
        action = self._action(key)
        refusal = self._refusal(action, selected_records)
        if refusal is not None:
            return refusal
        if action.confirm is not None and not self._tracker.release(key):
            raise ActionNotFoundError(key, f"No hay una confirmación pendiente para {key}")
        return await self._execute(action, selected_records)

    def cancel(self, key: str) -> ActionOutcome:
        self._action(key)
        self._tracker.release(key)
        log_action(logger, "bulk_actions", key, "cancelled")
        return ActionOutcome(ActionStatus.CANCELLED, key)

    def clear_error(self, key: str) -> None:
        self._tracker.clear_error(key)

    async def _execute(self, action: BulkAction, selected_records: Sequence[Any]) -> ActionOutcome:
        records = list(selected_records)
        return await self._tracker.run(
            action.key,
            action.key,
            action.execute,
            records,
            affected_keys=self._keys(records),
        )
