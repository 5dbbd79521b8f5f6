from __future__ import annotations

from collections.abc import Hashable, Iterable
from dataclasses import dataclass
from typing import Any, Callable, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .actions import ActionOutcome, ActionStatus, InvocationTracker
from .exceptions import ActionNotFoundError, ConfigurationError
from .logger import get_logger, log_action
from .models import ConfirmSpec, RowKey, record_key
from .ui_errors import UserFacingError

logger = get_logger(__name__)

RecordPredicate = Union[bool, Callable[[Any], bool]]

_MODIFIER_ORDER = ("ctrl", "alt", "shift", "meta")
_MODIFIER_ALIASES = {
    "control": "ctrl",
    "ctl": "ctrl",
    "option": "alt",
    "opt": "alt",
    "cmd": "meta",
    "command": "meta",
    "super": "meta",
    "win": "meta",
}


def normalize_shortcut(combo: str) -> str:
    """Canonical ``ctrl+alt+shift+meta+key`` form, case-insensitive."""
    parts = [part.strip().lower() for part in combo.replace(" ", "").split("+") if part.strip()]
    if not parts:
        return ""
    modifiers = {_MODIFIER_ALIASES.get(part, part) for part in parts[:-1]}
    key = _MODIFIER_ALIASES.get(parts[-1], parts[-1])
    ordered = [name for name in _MODIFIER_ORDER if name in modifiers]
    ordered.extend(sorted(modifiers - set(_MODIFIER_ORDER)))
    return "+".join([*ordered, key])


class RowAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str = Field(min_length=1)
    label: str
    execute: Callable[..., Any]
    disabled: RecordPredicate = False
    hidden: RecordPredicate = False
    confirm: ConfirmSpec | None = None
    shortcut: str | None = None
    variant: str = "default"

    @field_validator("shortcut")
    @classmethod
    def _canonical_shortcut(cls, value: str | None) -> str | None:
        if value is None:
            return None
        canonical = normalize_shortcut(value)
        return canonical or None


@dataclass(frozen=True)
class AvailableAction:
    action: RowAction
    enabled: bool
    busy: bool = False
    error: UserFacingError | None = None

    @property
    def key(self) -> str:
        return self.action.key


def _evaluate(flag: RecordPredicate, record: Any) -> bool:
    if callable(flag):
        return bool(flag(record))
    return bool(flag)


class RowActionDispatcher:
    """Per-record actions with confirmation and keyboard shortcuts.

    Invocations are tracked per ``(action key, record key)`` so the same action
    on two different rows can run at the same time while a double submit on
    one row is refused.
    """

    def __init__(self, actions: Iterable[RowAction], row_key: RowKey = "id") -> None:
        self.actions: dict[str, RowAction] = {}
        self.shortcuts: dict[str, str] = {}
        for action in actions:
            if action.key in self.actions:
                raise ConfigurationError(f"duplicate row action key '{action.key}'")
            if action.shortcut:
                if action.shortcut in self.shortcuts:
                    raise ConfigurationError(f"shortcut '{action.shortcut}' is bound twice")
                self.shortcuts[action.shortcut] = action.key
            self.actions[action.key] = action
        self.row_key = row_key
        self._tracker = InvocationTracker(module="row_actions")

    def _invocation(self, key: str, record: Any) -> tuple[str, Hashable]:
        return (key, record_key(record, self.row_key))

    def _action(self, key: str) -> RowAction:
        action = self.actions.get(key)
        if action is None:
            raise ActionNotFoundError(key, f"Acción desconocida: {key}")
        return action

    def is_enabled(self, action: RowAction, record: Any) -> bool:
        return not _evaluate(action.hidden, record) and not _evaluate(action.disabled, record)

    def available_actions(self, record: Any) -> list[AvailableAction]:
        available = []
        for action in self.actions.values():
            if _evaluate(action.hidden, record):
                continue
            invocation = self._invocation(action.key, record)
            available.append(
                AvailableAction(
                    action=action,
                    enabled=not _evaluate(action.disabled, record),
                    busy=self._tracker.is_busy(invocation),
                    error=self._tracker.errors.get(invocation),
                )
            )
        return available

    def error_for(self, key: str, record: Any) -> UserFacingError | None:
        return self._tracker.errors.get(self._invocation(key, record))

    def clear_error(self, key: str, record: Any) -> None:
        self._tracker.clear_error(self._invocation(key, record))

    def _refusal(self, action: RowAction, record: Any, invocation: tuple[str, Hashable]) -> ActionOutcome | None:
        if self._tracker.is_busy(invocation):
            return ActionOutcome(ActionStatus.IN_FLIGHT, action.key)
        if not self.is_enabled(action, record):
            log_action(logger, "row_actions", action.key, "disabled", record_key=invocation[1])
            return ActionOutcome(ActionStatus.DISABLED, action.key)
        return None

    async def request(self, key: str, record: Any) -> ActionOutcome:
        action = self._action(key)
        invocation = self._invocation(key, record)
        refusal = self._refusal(action, record, invocation)
        if refusal is not None:
            return refusal
        if action.confirm is not None:
            self._tracker.park(invocation)
            return ActionOutcome(ActionStatus.CONFIRMATION_REQUIRED, key, confirm=action.confirm)
        return await self._execute(action, record, invocation)

    async def confirm(self, key: str, record: Any) -> ActionOutcome:
        action = self._action(key)
        invocation = self._invocation(key, record)
        refusal = self._refusal(action, record, invocation)
        if refusal is not None:
            return refusal
        if action.confirm is not None and not self._tracker.release(invocation):
            raise ActionNotFoundError(key, f"No hay una confirmación pendiente para {key}")
        return await self._execute(action, record, invocation)

    def cancel(self, key: str, record: Any) -> ActionOutcome:
        self._action(key)
        self._tracker.release(self._invocation(key, record))
        return ActionOutcome(ActionStatus.CANCELLED, key)

    async def handle_shortcut(self, combo: str, record: Any) -> ActionOutcome | None:
        key = self.shortcuts.get(normalize_shortcut(combo))
        if key is None:
            return None
        return await self.request(key, record)

    async def _execute(self, action: RowAction, record: Any, invocation: tuple[str, Hashable]) -> ActionOutcome:
        return await self._tracker.run(
            invocation,
            action.key,
            action.execute,
            record,
            affected_keys=frozenset({invocation[1]}),
        )
