from __future__ import annotations

import pytest

from portal_datatable.exceptions import ConfigurationError
from portal_datatable.layout import CARD, TABLE, resolve_column_roles, resolve_layout, select_layout
from portal_datatable.models import CardRole, Column


@pytest.mark.parametrize(("width", "expected"), [(320, CARD), (767, CARD), (768, TABLE), (1440, TABLE)])
def test_select_layout_switches_at_breakpoint(width: int, expected: str) -> None:
    assert select_layout(width) == expected


def test_select_layout_rejects_invalid_breakpoint() -> None:
    with pytest.raises(ConfigurationError):
        select_layout(500, breakpoint=0)


def test_roles_default_to_first_visible_columns(columns) -> None:
    roles = resolve_column_roles(columns)
    assert (roles.primary.key, roles.secondary.key) == ("id", "name")
    assert [column.key for column in roles.hidden] == ["age", "status", "active", "created_at"]


def test_explicit_hints_win(columns) -> None:
    roles = resolve_column_roles(columns, {"primary": "name", "secondary": "status", "hidden": "id"})
    assert (roles.primary.key, roles.secondary.key) == ("name", "status")
    assert "id" in [column.key for column in roles.hidden]
    with pytest.raises(ConfigurationError, match="does not exist"):
        resolve_column_roles(columns, {"primary": "salary"})


def test_column_card_roles_are_used_when_no_hint() -> None:
    columns = [
        Column(key="id", title="ID", card_role=CardRole.HIDDEN),
        Column(key="email", title="Correo", card_role=CardRole.SECONDARY),
        Column(key="name", title="Nombre"),
    ]
    roles = resolve_column_roles(columns)
    assert (roles.primary.key, roles.secondary.key) == ("name", "email")


def test_resolve_layout_only_computes_roles_for_cards(columns) -> None:
    assert resolve_layout(1024, columns).roles is None
    decision = resolve_layout(375, columns)
    assert decision.is_card
    assert decision.roles.primary.key == "id"
