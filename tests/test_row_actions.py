from __future__ import annotations

import asyncio
from typing import Any

import pytest

from portal_datatable.actions import ActionStatus
from portal_datatable.exceptions import ActionNotFoundError, ConfigurationError
from portal_datatable.models import ConfirmSpec
from portal_datatable.row_actions import RowAction, RowActionDispatcher, normalize_shortcut


@pytest.mark.parametrize(
    ("combo", "expected"),
    [
        ("Ctrl+E", "ctrl+e"),
        ("shift + control + e", "ctrl+shift+e"),
        ("Cmd+Option+K", "alt+meta+k"),
        ("Delete", "delete"),
        ("", ""),
    ],
)
def test_normalize_shortcut(combo: str, expected: str) -> None:
    assert normalize_shortcut(combo) == expected


def _dispatcher(calls: list[Any]) -> RowActionDispatcher:
    return RowActionDispatcher(
        [
            RowAction(key="edit", label="Editar", execute=lambda record: calls.append(("edit", record["id"])), shortcut="ctrl+e"),
            RowAction(
                key="delete",
                label="Eliminar",
                execute=lambda record: calls.append(("delete", record["id"])),
                confirm=ConfirmSpec(message="¿Eliminar el registro?"),
                disabled=lambda record: record["status"] == "inactive",
                shortcut="Delete",
            ),
            RowAction(
                key="restore",
                label="Restaurar",
                execute=lambda record: calls.append(("restore", record["id"])),
                hidden=lambda record: record["status"] == "active",
            ),
        ]
    )


def test_available_actions_respect_hidden_and_disabled(records) -> None:
    dispatcher = _dispatcher([])
    active = {item.key: item.enabled for item in dispatcher.available_actions(records[0])}
    inactive = {item.key: item.enabled for item in dispatcher.available_actions(records[1])}
    assert active == {"edit": True, "delete": True}
    assert inactive == {"edit": True, "delete": False, "restore": True}


def test_shortcut_invokes_action_for_the_focused_row(records) -> None:
    calls: list[Any] = []
    dispatcher = _dispatcher(calls)
    outcome = asyncio.run(dispatcher.handle_shortcut("Control+E", records[2]))
    assert outcome.ok
    assert outcome.affected_keys == frozenset({3})
    assert calls == [("edit", 3)]
    assert asyncio.run(dispatcher.handle_shortcut("ctrl+z", records[2])) is None


def test_shortcut_on_disabled_action_does_nothing(records) -> None:
    calls: list[Any] = []
    outcome = asyncio.run(_dispatcher(calls).handle_shortcut("delete", records[1]))
    assert outcome.status is ActionStatus.DISABLED
    assert calls == []


def test_confirmation_is_tracked_per_record(records) -> None:
    calls: list[Any] = []
    dispatcher = _dispatcher(calls)

    async def scenario():
        requested = await dispatcher.request("delete", records[0])
        assert requested.status is ActionStatus.CONFIRMATION_REQUIRED
        with pytest.raises(ActionNotFoundError):
            await dispatcher.confirm("delete", records[2])
        return await dispatcher.confirm("delete", records[0])

    assert asyncio.run(scenario()).ok
    assert calls == [("delete", 1)]


def test_failed_row_action_stores_error_for_that_row(records) -> None:
    def explode(record: Any) -> None:
        raise ValueError("registro bloqueado")

    dispatcher = RowActionDispatcher([RowAction(key="lock", label="Bloquear", execute=explode)])
    outcome = asyncio.run(dispatcher.request("lock", records[0]))
    assert outcome.status is ActionStatus.FAILED
    assert dispatcher.error_for("lock", records[0]).message == "registro bloqueado"
    assert dispatcher.error_for("lock", records[1]) is None
    dispatcher.clear_error("lock", records[0])
    assert dispatcher.error_for("lock", records[0]) is None


def test_same_action_on_other_rows_is_not_blocked(records) -> None:
    async def scenario():
        release = asyncio.Event()

        async def slow(record: Any) -> int:
            await release.wait()
            return record["id"]

        dispatcher = RowActionDispatcher([RowAction(key="sync", label="Sincronizar", execute=slow)])
        first = asyncio.create_task(dispatcher.request("sync", records[0]))
        await asyncio.sleep(0)
        repeated = await dispatcher.request("sync", records[0])
        other = asyncio.create_task(dispatcher.request("sync", records[1]))
        await asyncio.sleep(0)
        release.set()
        return repeated, await first, await other

    repeated, first, other = asyncio.run(scenario())
    assert repeated.status is ActionStatus.IN_FLIGHT
    assert (first.result, other.result) == (1, 2)


def test_duplicate_shortcuts_are_rejected() -> None:
    with pytest.raises(ConfigurationError, match="bound twice"):
        RowActionDispatcher(
            [
                RowAction(key="a", label="A", execute=print, shortcut="ctrl+s"),
                RowAction(key="b", label="B", execute=print, shortcut="Control+S"),
            ]
        )
