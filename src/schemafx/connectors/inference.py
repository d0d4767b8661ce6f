"""Infer table definitions from stored rows for schemaless connectors."""

from datetime import date, datetime
from typing import Any, Iterable
from uuid import uuid4

from schemafx.models.enums import FieldKind
from schemafx.models.schema import AppField, AppTable, Row


def infer_kind(value: Any) -> FieldKind:
    # bool first: it is a subclass of int
    if isinstance(value, bool):
        return FieldKind.BOOLEAN
    if isinstance(value, (int, float)):
        return FieldKind.NUMBER
    if isinstance(value, (datetime, date)):
        return FieldKind.DATE
    if isinstance(value, (list, tuple)):
        return FieldKind.LIST
    if isinstance(value, dict):
        return FieldKind.JSON
    return FieldKind.TEXT


def infer_table(name: str, path: list[str], rows: Iterable[Row], connector_id: str) -> AppTable:
    """Build a table whose fields cover every key seen in ``rows``.

    A key whose values disagree on kind falls back to text. The ``id`` column
    becomes the key field; without one, the first field does.
    """
    kinds: dict[str, FieldKind | None] = {}
    for row in rows:
        for key, value in row.items():
            kinds.setdefault(key, None)
            if value is None:
                continue
            kind = infer_kind(value)
            current = kinds[key]
            if current is None:
                kinds[key] = kind
            elif current != kind:
                kinds[key] = FieldKind.TEXT

    has_id = "id" in kinds
    fields = [
        AppField(
            id=key,
            name=key,
            type=kind or FieldKind.TEXT,
            is_key=key == "id" or (not has_id and index == 0),
        )
        for index, (key, kind) in enumerate(kinds.items())
    ]

    return AppTable(
        id=str(uuid4()),
        name=name,
        connector=connector_id,
        path=list(path),
        fields=fields,
    )
