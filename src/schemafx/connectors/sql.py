"""SQL connector persisting rows to SQLite.

Uses SQLAlchemy's native async support with aiosqlite for non-blocking
database operations.
"""

import structlog
from pydantic_core import to_jsonable_python
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlmodel import SQLModel

from schemafx.connectors.base import Connector, InlineSource, TableDescriptor, matches_key
from schemafx.connectors.inference import infer_table
from schemafx.models.schema import AppSchema, AppTable, Row
from schemafx.models.tables import SchemaRecord, TableRowRecord


class SqlConnector(Connector):
    """Stores rows of every logical table as JSON records in SQLite.

    Accepts an AsyncEngine via dependency injection to support both
    persistent and in-memory databases for testing. Tables are created on
    first use.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        name: str = "sql",
        connector_id: str | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        super().__init__(name, connector_id, logger)
        self._engine = engine
        self._initialized = False

    async def initialize_schema(self) -> None:
        """Create database tables if they don't exist."""
        async with self._engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        self._initialized = True
        self._logger.info("sql_connector_initialized", connector=self.id)

    async def list_tables(self, path: list[str], auth: str | None = None) -> list[TableDescriptor]:
        if path:
            return []
        await self._ensure_schema()
        async with AsyncSession(self._engine) as session:
            statement = select(TableRowRecord.table_path).distinct().order_by(TableRowRecord.table_path)
            result = await session.execute(statement)
            return [TableDescriptor(name=table_path, path=[table_path]) for table_path in result.scalars()]

    async def get_table(self, path: list[str], auth: str | None = None) -> AppTable | None:
        if not path:
            return None
        rows = await self._load_rows(path[0])
        if not rows:
            return None
        return infer_table(path[0], path, rows, self.id)

    async def get_data(self, table: AppTable, auth: str | None = None) -> InlineSource:
        return InlineSource(rows=await self._load_rows(self._table_path(table)))

    async def add_row(self, table: AppTable, row: Row, auth: str | None = None) -> None:
        await self._ensure_schema()
        record = TableRowRecord(table_path=self._table_path(table), data=to_jsonable_python(row))
        async with AsyncSession(self._engine) as session:
            session.add(record)
            await session.commit()
        self._logger.debug("sql_row_added", table=table.id)

    async def update_row(self, table: AppTable, key: Row, row: Row, auth: str | None = None) -> None:
        await self._ensure_schema()
        stored_key = to_jsonable_python(key)
        async with AsyncSession(self._engine) as session:
            record = await self._find_record(session, self._table_path(table), stored_key)
            if record is None:
                return
            record.data = {**record.data, **to_jsonable_python(row)}
            session.add(record)
            await session.commit()
        self._logger.debug("sql_row_updated", table=table.id)

    async def delete_row(self, table: AppTable, key: Row, auth: str | None = None) -> None:
        await self._ensure_schema()
        stored_key = to_jsonable_python(key)
        async with AsyncSession(self._engine) as session:
            record = await self._find_record(session, self._table_path(table), stored_key)
            if record is None:
                return
            await session.delete(record)
            await session.commit()
        self._logger.debug("sql_row_deleted", table=table.id)

    async def count_rows(self, table: AppTable) -> int:
        await self._ensure_schema()
        async with AsyncSession(self._engine) as session:
            statement = select(func.count()).where(TableRowRecord.table_path == self._table_path(table))
            result = await session.execute(statement)
            return int(result.scalar_one())

    async def get_schema(self, app_id: str) -> AppSchema | None:
        await self._ensure_schema()
        async with AsyncSession(self._engine) as session:
            record = await session.get(SchemaRecord, app_id)
            if record is None:
                return None
            return AppSchema.from_record(record.data)

    async def save_schema(self, app_id: str, schema: AppSchema) -> AppSchema:
        await self._ensure_schema()
        async with AsyncSession(self._engine) as session:
            existing = await session.get(SchemaRecord, app_id)
            if existing:
                existing.data = schema.to_record()
                session.add(existing)
            else:
                session.add(SchemaRecord(app_id=app_id, data=schema.to_record()))
            await session.commit()
        return schema

    async def delete_schema(self, app_id: str) -> None:
        await self._ensure_schema()
        async with AsyncSession(self._engine) as session:
            record = await session.get(SchemaRecord, app_id)
            if record is not None:
                await session.delete(record)
                await session.commit()

    async def dispose(self) -> None:
        await self._engine.dispose()
        self._initialized = False

    async def _ensure_schema(self) -> None:
        if not self._initialized:
            await self.initialize_schema()

    async def _load_rows(self, table_path: str) -> list[Row]:
        await self._ensure_schema()
        async with AsyncSession(self._engine) as session:
            statement = (
                select(TableRowRecord)
                .where(TableRowRecord.table_path == table_path)
                .order_by(TableRowRecord.row_id)
            )
            result = await session.execute(statement)
            return [dict(record.data) for record in result.scalars()]

    @staticmethod
    async def _find_record(session: AsyncSession, table_path: str, key: Row) -> TableRowRecord | None:
        statement = (
            select(TableRowRecord)
            .where(TableRowRecord.table_path == table_path)
            .order_by(TableRowRecord.row_id)
        )
        result = await session.execute(statement)
        for record in result.scalars():
            if matches_key(record.data, key):
                return record
        return None

    @staticmethod
    def _table_path(table: AppTable) -> str:
        return "/".join(table.path) if table.path else table.id


def create_async_engine_from_path(db_path: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine for the given database path.

    Args:
        db_path: Path to SQLite database file, or ":memory:" for in-memory.

    Returns:
        AsyncEngine instance configured for aiosqlite.
    """
    if db_path == ":memory:":
        url = "sqlite+aiosqlite:///:memory:"
    else:
        url = f"sqlite+aiosqlite:///{db_path}"
    return create_async_engine(url)
