"""JSON file connector.

Reads and writes a single JSON document of the form
``{"schemas": {...}, "tables": {"<path>": [rows...]}}``. File I/O is
blocking, so it runs through ``asyncio.to_thread``.
"""

import asyncio
import json
from pathlib import Path
from typing import Any

import structlog
from pydantic_core import to_jsonable_python

from schemafx.connectors.base import Connector, InlineSource, TableDescriptor, matches_key
from schemafx.connectors.inference import infer_table
from schemafx.models.schema import AppSchema, AppTable, Row


class FileConnector(Connector):
    """Persists schemas and rows to one JSON file."""

    def __init__(
        self,
        name: str,
        file_path: Path,
        connector_id: str | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        super().__init__(name, connector_id, logger)
        self.file_path = Path(file_path)
        self._lock = asyncio.Lock()

    async def list_tables(self, path: list[str], auth: str | None = None) -> list[TableDescriptor]:
        if path:
            return []
        db = await self._read_db()
        return [TableDescriptor(name=name, path=[name]) for name in db["tables"]]

    async def get_table(self, path: list[str], auth: str | None = None) -> AppTable | None:
        if not path:
            return None
        db = await self._read_db()
        if path[0] not in db["tables"]:
            return None
        return infer_table(path[0], path, db["tables"][path[0]], self.id)

    async def get_data(self, table: AppTable, auth: str | None = None) -> InlineSource:
        db = await self._read_db()
        return InlineSource(rows=db["tables"].get(self._table_key(table), []))

    async def add_row(self, table: AppTable, row: Row, auth: str | None = None) -> None:
        async with self._lock:
            db = await self._read_db()
            db["tables"].setdefault(self._table_key(table), []).append(to_jsonable_python(row))
            await self._write_db(db)

    async def update_row(self, table: AppTable, key: Row, row: Row, auth: str | None = None) -> None:
        stored_key = to_jsonable_python(key)
        async with self._lock:
            db = await self._read_db()
            rows = db["tables"].get(self._table_key(table), [])
            for index, existing in enumerate(rows):
                if matches_key(existing, stored_key):
                    rows[index] = {**existing, **to_jsonable_python(row)}
                    await self._write_db(db)
                    return

    async def delete_row(self, table: AppTable, key: Row, auth: str | None = None) -> None:
        stored_key = to_jsonable_python(key)
        async with self._lock:
            db = await self._read_db()
            rows = db["tables"].get(self._table_key(table), [])
            for index, existing in enumerate(rows):
                if matches_key(existing, stored_key):
                    del rows[index]
                    await self._write_db(db)
                    return

    async def get_schema(self, app_id: str) -> AppSchema | None:
        db = await self._read_db()
        data = db["schemas"].get(app_id)
        return AppSchema.from_record(data) if data is not None else None

    async def save_schema(self, app_id: str, schema: AppSchema) -> AppSchema:
        async with self._lock:
            db = await self._read_db()
            db["schemas"][app_id] = schema.to_record()
            await self._write_db(db)
        return schema

    async def delete_schema(self, app_id: str) -> None:
        async with self._lock:
            db = await self._read_db()
            if db["schemas"].pop(app_id, None) is not None:
                await self._write_db(db)

    async def _read_db(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._read_db_sync)

    async def _write_db(self, db: dict[str, Any]) -> None:
        await asyncio.to_thread(self._write_db_sync, db)
        self._logger.debug("file_db_written", file_path=str(self.file_path))

    def _read_db_sync(self) -> dict[str, Any]:
        try:
            data = json.loads(self.file_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {"schemas": {}, "tables": {}}
        data.setdefault("schemas", {})
        data.setdefault("tables", {})
        return data

    def _write_db_sync(self, db: dict[str, Any]) -> None:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        self.file_path.write_text(json.dumps(db, indent=4), encoding="utf-8")

    @staticmethod
    def _table_key(table: AppTable) -> str:
        return table.path[0] if table.path else table.id
