from __future__ import annotations

from typing import Any

import pytest

from portal_datatable.models import Column, build_columns


@pytest.fixture
def columns() -> tuple[Column, ...]:
    return build_columns(
        [
            {"key": "id", "title": "ID", "data_type": "number"},
            {"key": "name", "title": "Nombre", "filterable": True},
            {"key": "age", "title": "Edad", "data_type": "number", "filterable": True},
            {
                "key": "status",
                "title": "Estado",
                "filter_type": "select",
                "options": [
                    {"label": "Activo", "value": "active"},
                    {"label": "Inactivo", "value": "inactive"},
                ],
            },
            {"key": "active", "title": "Vigente", "data_type": "boolean", "filterable": True},
            {"key": "created_at", "title": "Creado", "data_type": "date", "filterable": True},
        ]
    )


@pytest.fixture
def records() -> list[dict[str, Any]]:
    return [
        {"id": 1, "name": "Alícia Gómez", "age": 30, "status": "active", "active": True, "created_at": "2024-01-15T10:00:00"},
        {"id": 2, "name": "Bob Martínez", "age": 25, "status": "inactive", "active": False, "created_at": "2024-02-20T08:30:00"},
        {"id": 3, "name": "Carlos Núñez", "age": 41, "status": "active", "active": True, "created_at": "2024-03-05T12:00:00"},
        {"id": 4, "name": "Diana Peña", "age": None, "status": "active", "active": "true", "created_at": None},
        {"id": 5, "name": "Ernesto Ruiz", "age": 26, "status": "inactive", "active": "0", "created_at": "2024-03-05T18:45:00"},
    ]
