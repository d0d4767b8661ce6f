from datetime import date, datetime

import pytest

from schemafx.connectors.inference import infer_kind, infer_table
from schemafx.models import FieldKind


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (True, FieldKind.BOOLEAN),
        (3, FieldKind.NUMBER),
        (2.5, FieldKind.NUMBER),
        (datetime(2024, 1, 1), FieldKind.DATE),
        (date(2024, 1, 1), FieldKind.DATE),
        ([1, 2], FieldKind.LIST),
        ({"a": 1}, FieldKind.JSON),
        ("text", FieldKind.TEXT),
    ],
)
def test_infer_kind(value: object, expected: FieldKind) -> None:
    assert infer_kind(value) == expected


def test_infer_table_covers_every_key() -> None:
    table = infer_table(
        "people",
        ["people"],
        [{"id": 1, "name": "Ada"}, {"id": 2, "email": "grace@example.com"}],
        "memory",
    )

    assert [f.id for f in table.fields] == ["id", "name", "email"]
    assert table.name == "people"
    assert table.path == ["people"]
    assert table.connector == "memory"


def test_id_column_is_the_key() -> None:
    table = infer_table("t", ["t"], [{"name": "Ada", "id": 1}], "memory")

    assert [f.id for f in table.key_fields] == ["id"]


def test_first_field_is_key_without_id_column() -> None:
    table = infer_table("t", ["t"], [{"code": "A", "label": "Alpha"}], "memory")

    assert [f.id for f in table.key_fields] == ["code"]


def test_conflicting_kinds_fall_back_to_text() -> None:
    table = infer_table("t", ["t"], [{"id": 1, "value": 5}, {"id": 2, "value": "five"}], "memory")

    assert table.find_field("value").type == FieldKind.TEXT


def test_null_values_do_not_decide_kind() -> None:
    table = infer_table("t", ["t"], [{"id": 1, "active": None}, {"id": 2, "active": True}], "memory")

    assert table.find_field("active").type == FieldKind.BOOLEAN


def test_all_null_column_is_text() -> None:
    table = infer_table("t", ["t"], [{"id": 1, "note": None}], "memory")

    assert table.find_field("note").type == FieldKind.TEXT
