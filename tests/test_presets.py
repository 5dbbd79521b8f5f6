from __future__ import annotations

import pytest

from portal_datatable.exceptions import ConfigurationError
from portal_datatable.presets import FilterPreset, default_preset, save_preset, select_preset, validate_presets


def test_save_preset_snapshots_filters() -> None:
    filters = {"status": ["active"], "name": "", "age": {"start": 18}}
    presets = save_preset((), "  Activos  ", filters, preset_id="activos")

    filters["status"].append("inactive")
    assert len(presets) == 1
    assert presets[0].name == "Activos"
    assert presets[0].filters == {"status": ["active"], "age": {"start": 18}}


def test_save_preset_rejects_blank_name() -> None:
    with pytest.raises(ConfigurationError, match="name is required"):
        save_preset((), "   ", {"status": "active"})


def test_only_one_default_preset() -> None:
    presets = save_preset((), "Activos", {"status": "active"}, is_default=True, preset_id="a")
    with pytest.raises(ConfigurationError, match="default preset already exists"):
        save_preset(presets, "Inactivos", {"status": "inactive"}, is_default=True)
    assert default_preset(presets).id == "a"
    assert default_preset(()) is None


def test_select_preset_replaces_filters_with_a_copy() -> None:
    presets = (FilterPreset(id="p1", name="Mayores", filters={"age": {"start": 60}}),)
    selected = select_preset(presets, "p1")
    selected["age"]["start"] = 1
    assert presets[0].filters == {"age": {"start": 60}}
    with pytest.raises(ConfigurationError, match="unknown preset"):
        select_preset(presets, "p2")


def test_validate_presets_rejects_duplicate_ids_and_defaults() -> None:
    with pytest.raises(ConfigurationError, match="duplicate preset ids"):
        validate_presets([FilterPreset(id="x", name="A"), FilterPreset(id="x", name="B")])
    with pytest.raises(ConfigurationError, match="only one default"):
        validate_presets(
            [FilterPreset(id="x", name="A", is_default=True), FilterPreset(id="y", name="B", is_default=True)]
        )
