from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from .exceptions import ConfigurationError
from .models import CardRole, Column, column_by_key

TABLE = "table"
CARD = "card"
DEFAULT_BREAKPOINT = 768


@dataclass(frozen=True)
class ColumnRoles:
    primary: Column | None = None
    secondary: Column | None = None
    hidden: tuple[Column, ...] = ()


@dataclass(frozen=True)
class LayoutDecision:
    mode: str
    roles: ColumnRoles | None = None

    @property
    def is_card(self) -> bool:
        return self.mode == CARD


def select_layout(viewport_width: int, breakpoint: int = DEFAULT_BREAKPOINT) -> str:
    if breakpoint <= 0:
        raise ConfigurationError(f"breakpoint must be > 0, got {breakpoint}")
    return CARD if viewport_width < breakpoint else TABLE


def _hinted(columns: Sequence[Column], hints: Mapping[str, str] | None, role: CardRole) -> Column | None:
    by_key = column_by_key(columns)
    if hints and hints.get(role.value):
        column = by_key.get(hints[role.value])
        if column is None:
            raise ConfigurationError(f"card {role.value} column '{hints[role.value]}' does not exist")
        return column
    return next((column for column in columns if column.card_role is role), None)


def resolve_column_roles(columns: Sequence[Column], hints: Mapping[str, str] | None = None) -> ColumnRoles:
    """Pick the columns shown on a card: explicit hints, then column roles, then order."""
    primary = _hinted(columns, hints, CardRole.PRIMARY)
    secondary = _hinted(columns, hints, CardRole.SECONDARY)

    hidden_keys = {column.key for column in columns if column.card_role is CardRole.HIDDEN}
    if hints and hints.get(CardRole.HIDDEN.value):
        hidden_keys.update(key.strip() for key in str(hints[CardRole.HIDDEN.value]).split(",") if key.strip())

    fallback = [
        column
        for column in columns
        if not column.hidden and column.key not in hidden_keys and column not in (primary, secondary)
    ]
    if primary is None and fallback:
        primary = fallback.pop(0)
    if secondary is None and fallback:
        secondary = fallback.pop(0)

    chosen = {column.key for column in (primary, secondary) if column is not None}
    return ColumnRoles(
        primary=primary,
        secondary=secondary,
        hidden=tuple(column for column in columns if column.key not in chosen),
    )


def resolve_layout(
    viewport_width: int,
    columns: Sequence[Column],
    breakpoint: int = DEFAULT_BREAKPOINT,
    hints: Mapping[str, str] | None = None,
) -> LayoutDecision:
    mode = select_layout(viewport_width, breakpoint)
    if mode == TABLE:
        return LayoutDecision(mode=TABLE)
    return LayoutDecision(mode=CARD, roles=resolve_column_roles(columns, hints))
