from __future__ import annotations

import copy
import uuid
from collections.abc import Iterable, Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ConfigurationError
from .filters import FilterValue, clean_filter_value


class FilterPreset(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    filters: dict[str, Any] = Field(default_factory=dict)
    is_default: bool = False


def validate_presets(presets: Iterable[FilterPreset]) -> tuple[FilterPreset, ...]:
    items = tuple(presets)
    ids = [preset.id for preset in items]
    duplicates = sorted({preset_id for preset_id in ids if ids.count(preset_id) > 1})
    if duplicates:
        raise ConfigurationError(f"duplicate preset ids: {', '.join(duplicates)}")
    defaults = [preset.name for preset in items if preset.is_default]
    if len(defaults) > 1:
        raise ConfigurationError(f"only one default preset is allowed, got {', '.join(defaults)}")
    return items


def default_preset(presets: Iterable[FilterPreset]) -> FilterPreset | None:
    return next((preset for preset in presets if preset.is_default), None)


def find_preset(presets: Iterable[FilterPreset], preset_id: str) -> FilterPreset | None:
    return next((preset for preset in presets if preset.id == preset_id), None)


def select_preset(presets: Iterable[FilterPreset], preset_id: str) -> FilterValue:
    """Return the preset's filters as a fresh value that replaces the current one."""
    preset = find_preset(presets, preset_id)
    if preset is None:
        raise ConfigurationError(f"unknown preset '{preset_id}'")
    return copy.deepcopy(clean_filter_value(preset.filters))


def save_preset(
    presets: Sequence[FilterPreset],
    name: str,
    filters: FilterValue,
    *,
    is_default: bool = False,
    preset_id: str | None = None,
) -> tuple[FilterPreset, ...]:
    clean_name = (name or "").strip()
    if not clean_name:
        raise ConfigurationError("preset name is required")
    if is_default and default_preset(presets) is not None:
        raise ConfigurationError("a default preset already exists")
    preset = FilterPreset(
        id=preset_id or uuid.uuid4().hex,
        name=clean_name,
        filters=copy.deepcopy(clean_filter_value(filters)),
        is_default=is_default,
    )
    return validate_presets((*presets, preset))
