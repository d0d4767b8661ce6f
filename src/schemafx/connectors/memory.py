"""In-memory connector holding rows per table path."""

import structlog

from schemafx.connectors.base import Connector, InlineSource, TableDescriptor, matches_key
from schemafx.connectors.inference import infer_table
from schemafx.models.schema import AppSchema, AppTable, Row


class MemoryConnector(Connector):
    """Keeps rows in process memory, keyed by the first element of a table's path.

    Doubles as a schema store through ``get_schema`` / ``save_schema``.
    """

    def __init__(
        self,
        name: str = "memory",
        connector_id: str | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        super().__init__(name, connector_id, logger)
        self.tables: dict[str, list[Row]] = {}
        self.schemas: dict[str, AppSchema] = {}

    async def list_tables(self, path: list[str], auth: str | None = None) -> list[TableDescriptor]:
        if path:
            return []
        return [TableDescriptor(name=name, path=[name]) for name in self.tables]

    async def get_table(self, path: list[str], auth: str | None = None) -> AppTable | None:
        if not path or path[0] not in self.tables:
            return None
        return infer_table(path[0], path, self.tables[path[0]], self.id)

    async def get_data(self, table: AppTable, auth: str | None = None) -> InlineSource:
        return InlineSource(rows=[dict(row) for row in self._rows(table)])

    async def add_row(self, table: AppTable, row: Row, auth: str | None = None) -> None:
        self.tables.setdefault(self._table_key(table), []).append(dict(row))

    async def update_row(self, table: AppTable, key: Row, row: Row, auth: str | None = None) -> None:
        rows = self._rows(table)
        for index, existing in enumerate(rows):
            if matches_key(existing, key):
                rows[index] = {**existing, **row}
                return
        self._logger.debug("memory_row_not_found", table=table.id, key=key)

    async def delete_row(self, table: AppTable, key: Row, auth: str | None = None) -> None:
        rows = self._rows(table)
        for index, existing in enumerate(rows):
            if matches_key(existing, key):
                del rows[index]
                return

    async def get_schema(self, app_id: str) -> AppSchema | None:
        return self.schemas.get(app_id)

    async def save_schema(self, app_id: str, schema: AppSchema) -> AppSchema:
        self.schemas[app_id] = schema
        return schema

    async def delete_schema(self, app_id: str) -> None:
        self.schemas.pop(app_id, None)

    def _rows(self, table: AppTable) -> list[Row]:
        return self.tables.get(self._table_key(table), [])

    @staticmethod
    def _table_key(table: AppTable) -> str:
        return table.path[0] if table.path else table.id
