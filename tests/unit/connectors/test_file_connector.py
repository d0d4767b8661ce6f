"""Unit tests for the FileConnector."""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from schemafx.connectors.file import FileConnector
from schemafx.models import AppField, AppSchema, AppTable, FieldKind


def _table() -> AppTable:
    return AppTable(
        id="customers",
        name="Customers",
        connector="file",
        path=["customers"],
        fields=[AppField(id="id", name="ID", type=FieldKind.NUMBER, is_key=True), AppField(id="name", name="Name")],
    )


@pytest.fixture
def db_file(tmp_path: Path) -> Path:
    return tmp_path / "data" / "db.json"


@pytest.fixture
def connector(db_file: Path) -> FileConnector:
    return FileConnector(name="file", file_path=db_file)


class TestFileConnectorRows:
    async def test_missing_file_reads_as_empty(self, connector: FileConnector) -> None:
        source = await connector.get_data(_table())

        assert source.rows == []
        assert await connector.list_tables([]) == []

    async def test_add_row_persists_json(self, connector: FileConnector, db_file: Path) -> None:
        await connector.add_row(_table(), {"id": 1, "name": "Ada"})

        stored = json.loads(db_file.read_text(encoding="utf-8"))

        assert stored == {"schemas": {}, "tables": {"customers": [{"id": 1, "name": "Ada"}]}}

    async def test_datetimes_are_stored_as_iso_text(self, connector: FileConnector) -> None:
        await connector.add_row(_table(), {"id": 1, "seen": datetime(2024, 5, 1, tzinfo=timezone.utc)})

        source = await connector.get_data(_table())

        assert source.rows[0]["seen"].startswith("2024-05-01T00:00:00")

    async def test_update_and_delete(self, connector: FileConnector) -> None:
        table = _table()
        await connector.add_row(table, {"id": 1, "name": "Ada"})
        await connector.add_row(table, {"id": 2, "name": "Grace"})

        await connector.update_row(table, {"id": 2}, {"name": "Grace Hopper"})
        await connector.delete_row(table, {"id": 1})

        source = await connector.get_data(table)
        assert source.rows == [{"id": 2, "name": "Grace Hopper"}]

    async def test_data_survives_new_instance(self, connector: FileConnector, db_file: Path) -> None:
        await connector.add_row(_table(), {"id": 1, "name": "Ada"})

        reopened = FileConnector(name="file", file_path=db_file)
        table = await reopened.get_table(["customers"])

        assert table is not None
        assert [f.id for f in table.fields] == ["id", "name"]
        assert table.key_fields[0].id == "id"


class TestFileConnectorSchemas:
    async def test_schema_round_trip(self, connector: FileConnector) -> None:
        schema = AppSchema(id="crm", name="CRM", tables=[_table()])

        await connector.save_schema("crm", schema)

        assert await connector.get_schema("crm") == schema
        assert await connector.get_schema("other") is None

    async def test_delete_schema(self, connector: FileConnector) -> None:
        await connector.save_schema("crm", AppSchema(id="crm", name="CRM"))

        await connector.delete_schema("crm")

        assert await connector.get_schema("crm") is None
