"""Run declarative queries over connector data with embedded DuckDB.

Connector data of any shape is materialized into a uniquely named temporary
relation on a dedicated cursor, queried with SQL compiled from the QuerySpec,
and mapped back to rows keyed by field id. DuckDB calls block, so each query
runs in a worker thread.
"""

import asyncio
import json
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from pathlib import PurePosixPath
from typing import Any, assert_never
from urllib.parse import urlparse
from uuid import uuid4

import duckdb
import pyarrow as pa
import structlog
from pydantic_core import to_json

from schemafx.connectors.base import (
    ConnectionSource,
    DatabaseKind,
    DataSource,
    FileFormat,
    FileSource,
    InlineSource,
    StreamSource,
    UrlSource,
)
from schemafx.errors import DataSourceError, InvalidQueryError
from schemafx.models.base import ensure_utc
from schemafx.models.enums import FieldKind
from schemafx.models.query import QuerySpec
from schemafx.models.schema import AppField, AppTable, Row
from schemafx.services.query_builder import CompiledQuery, build_query, quote_identifier

MAX_SAFE_INTEGER = 2**53 - 1

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_UNSAFE_LOCATION = re.compile(r"['\"\x00-\x1f\x7f]")

_FORMAT_SUFFIXES = {
    ".csv": FileFormat.CSV,
    ".tsv": FileFormat.CSV,
    ".json": FileFormat.JSON,
    ".jsonl": FileFormat.JSON,
    ".ndjson": FileFormat.JSON,
    ".parquet": FileFormat.PARQUET,
}

_READERS = {
    FileFormat.CSV: "read_csv_auto",
    FileFormat.JSON: "read_json_auto",
    FileFormat.PARQUET: "read_parquet",
}

_BOOLEAN_TEXT = {"true": True, "false": False}

_TEXT_KINDS = (FieldKind.TEXT, FieldKind.EMAIL, FieldKind.DROPDOWN, FieldKind.REFERENCE)


def duckdb_type(field: AppField) -> str:
    """SQL type of a field's column."""
    if field.type == FieldKind.NUMBER:
        return "DOUBLE"
    if field.type == FieldKind.BOOLEAN:
        return "BOOLEAN"
    if field.type == FieldKind.DATE:
        return "TIMESTAMP"
    if field.is_structured:
        if field.type == FieldKind.LIST:
            return f"{duckdb_type(field.child)}[]"
        members = ", ".join(f"{quote_identifier(child.id)} {duckdb_type(child)}" for child in field.fields)
        return f"STRUCT({members})"
    return "VARCHAR"


def arrow_type(field: AppField) -> pa.DataType:
    if field.type == FieldKind.NUMBER:
        return pa.float64()
    if field.type == FieldKind.BOOLEAN:
        return pa.bool_()
    if field.type == FieldKind.DATE:
        return pa.timestamp("us")
    if field.is_structured:
        if field.type == FieldKind.LIST:
            return pa.list_(arrow_type(field.child))
        return pa.struct([pa.field(child.id, arrow_type(child)) for child in field.fields])
    return pa.string()


def _to_naive_utc(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return ensure_utc(value).replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return ensure_utc(datetime.fromisoformat(value)).replace(tzinfo=None)
        except ValueError:
            return None
    return None


def _to_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return _BOOLEAN_TEXT.get(value.strip().lower())
    if isinstance(value, (int, float)):
        return bool(value)
    return None


def to_arrow_value(field: AppField, value: Any) -> Any:
    """Shape one stored value for its Arrow column; unusable values become null."""
    if value is None:
        return None
    match field.type:
        case FieldKind.NUMBER:
            try:
                return float(value)
            except (TypeError, ValueError):
                return None
        case FieldKind.BOOLEAN:
            return _to_bool(value)
        case FieldKind.DATE:
            return _to_naive_utc(value)
        case _ if field.is_structured and field.type == FieldKind.LIST:
            if not isinstance(value, (list, tuple)):
                return None
            return [to_arrow_value(field.child, item) for item in value]
        case _ if field.is_structured:
            if not isinstance(value, dict):
                return None
            return {child.id: to_arrow_value(child, value.get(child.id)) for child in field.fields}
        case FieldKind.JSON | FieldKind.LIST:
            # encrypted JSON arrives as ciphertext text
            if field.encrypted and isinstance(value, str):
                return value
            return to_json(value).decode("utf-8")
        case _:
            return value if isinstance(value, str) else to_json(value).decode("utf-8")


def rows_to_arrow(table: AppTable, rows: list[Row]) -> pa.Table:
    schema = pa.schema([pa.field(field.id, arrow_type(field)) for field in table.fields])
    columns = {field.id: [to_arrow_value(field, row.get(field.id)) for row in rows] for field in table.fields}
    return pa.Table.from_pydict(columns, schema=schema)


def _parse_json_text(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def _convert_number(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer() and abs(value) <= MAX_SAFE_INTEGER:
        return int(value)
    if isinstance(value, int) and abs(value) > MAX_SAFE_INTEGER:
        return str(value)
    return value


def from_duckdb_value(field: AppField, value: Any) -> Any:
    """Map a DuckDB result value back to the field's application value."""
    if value is None:
        return None
    match field.type:
        case FieldKind.DATE:
            if isinstance(value, datetime):
                return ensure_utc(value)
            if isinstance(value, int) and not isinstance(value, bool):
                return _EPOCH + timedelta(microseconds=value)
            return value
        case FieldKind.NUMBER:
            return _convert_number(value)
        case _ if field.is_structured and field.type == FieldKind.LIST:
            if isinstance(value, (list, tuple)):
                return [from_duckdb_value(field.child, item) for item in value]
            return _parse_json_text(value)
        case _ if field.is_structured:
            if not isinstance(value, dict):
                return _parse_json_text(value)
            result = {}
            for child in field.fields:
                converted = from_duckdb_value(child, value.get(child.id))
                if converted is not None:
                    result[child.id] = converted
            return result
        case FieldKind.JSON | FieldKind.LIST:
            if field.encrypted:
                return value
            return _parse_json_text(value)
        case _:
            if isinstance(value, int) and not isinstance(value, bool) and abs(value) > MAX_SAFE_INTEGER:
                return str(value)
            return value


def infer_format(location: str, declared: FileFormat | None) -> FileFormat:
    if declared is not None:
        return declared
    suffix = PurePosixPath(urlparse(location).path).suffix.lower()
    try:
        return _FORMAT_SUFFIXES[suffix]
    except KeyError:
        raise DataSourceError(f"Cannot infer the format of '{location}'.") from None


def sql_literal(location: str) -> str:
    """Embed a path or URL as a string literal, refusing quotes and control characters."""
    if _UNSAFE_LOCATION.search(location):
        raise DataSourceError("Data source location contains quotes or control characters.")
    return "'" + location.replace("'", "''") + "'"


@dataclass(frozen=True)
class _Materialized:
    """Rows or a relation expression, resolved before entering the worker thread."""

    rows: list[Row] | None = None
    relation_sql: str | None = None
    attach: ConnectionSource | None = None


class QueryEngine:
    """Executes QuerySpecs against connector-supplied data sources."""

    def __init__(
        self,
        database: duckdb.DuckDBPyConnection | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._database = database or duckdb.connect(":memory:")
        self._logger = logger or structlog.get_logger(__name__)

    async def query(self, table: AppTable, source: DataSource, spec: QuerySpec | None = None) -> list[Row]:
        """Filter, sort and paginate the rows of ``source`` as described by ``spec``.

        Raises:
            InvalidQueryError: If the spec references unknown fields or values
                that cannot be compared with the column.
            DataSourceError: If the source cannot be materialized.
        """
        spec = spec or QuerySpec()
        relation = f"tmp_{uuid4().hex}"
        compiled = build_query(relation, spec, {field.id: field for field in table.fields})

        if not table.fields:
            return []

        materialized = await self._materialize(source)
        rows = await asyncio.to_thread(self._execute, table, materialized, relation, compiled)

        self._logger.debug(
            "query_completed",
            table_id=table.id,
            source=type(source).__name__,
            filter_count=len(spec.filters),
            row_count=len(rows),
        )
        return rows

    def close(self) -> None:
        self._database.close()

    async def _materialize(self, source: DataSource) -> _Materialized:
        match source:
            case InlineSource(rows=rows):
                return _Materialized(rows=list(rows))
            case StreamSource(rows=stream):
                try:
                    return _Materialized(rows=[row async for row in stream])
                except Exception as e:
                    raise DataSourceError(f"Failed to read row stream: {e}") from e
            case FileSource(path=path, format=declared):
                file_format = infer_format(path, declared)
                return _Materialized(relation_sql=f"{_READERS[file_format]}({sql_literal(path)})")
            case UrlSource(url=url, format=declared):
                file_format = infer_format(url, declared)
                return _Materialized(relation_sql=f"{_READERS[file_format]}({sql_literal(url)})")
            case ConnectionSource():
                return _Materialized(attach=source)
            case _:
                assert_never(source)

    def _execute(
        self,
        table: AppTable,
        materialized: _Materialized,
        relation: str,
        compiled: CompiledQuery,
    ) -> list[Row]:
        cursor = self._database.cursor()
        alias = f"att_{uuid4().hex}"
        registered = False
        view_created = False
        attached = False
        try:
            try:
                if materialized.rows is not None:
                    cursor.register(relation, rows_to_arrow(table, materialized.rows))
                    registered = True
                else:
                    relation_sql = materialized.relation_sql
                    if materialized.attach is not None:
                        self._attach(cursor, materialized.attach, alias)
                        attached = True
                        relation_sql = f"{quote_identifier(alias)}.{quote_identifier(materialized.attach.table)}"
                    self._create_view(cursor, table, relation, relation_sql)
                    view_created = True
            except (duckdb.Error, pa.ArrowException) as e:
                raise DataSourceError(f"Failed to load data for table '{table.id}': {e}") from e

            try:
                result = cursor.execute(compiled.sql, compiled.params)
                columns = [description[0] for description in result.description]
                records = result.fetchall()
            except (duckdb.ConversionException, duckdb.BinderException) as e:
                raise InvalidQueryError(f"Query cannot be applied to table '{table.id}': {e}") from e
            except duckdb.Error as e:
                raise DataSourceError(f"Failed to read data for table '{table.id}': {e}") from e
        finally:
            if registered:
                cursor.unregister(relation)
            if view_created:
                cursor.execute(f"DROP VIEW IF EXISTS {quote_identifier(relation)}")
            if attached:
                cursor.execute(f"DETACH {quote_identifier(alias)}")
            cursor.close()

        fields = {field.id: field for field in table.fields}
        rows: list[Row] = []
        for record in records:
            row: Row = {}
            for column, value in zip(columns, record):
                field = fields.get(column)
                if field is None:
                    continue
                converted = from_duckdb_value(field, value)
                if converted is not None:
                    row[column] = converted
            rows.append(row)
        return rows

    @staticmethod
    def _attach(cursor: duckdb.DuckDBPyConnection, source: ConnectionSource, alias: str) -> None:
        options = ["READ_ONLY"]
        if source.kind != DatabaseKind.DUCKDB:
            options.insert(0, f"TYPE {source.kind.value.upper()}")
        cursor.execute(f"ATTACH {sql_literal(source.uri)} AS {quote_identifier(alias)} ({', '.join(options)})")

    @staticmethod
    def _create_view(cursor: duckdb.DuckDBPyConnection, table: AppTable, relation: str, relation_sql: str) -> None:
        described = cursor.execute(f"DESCRIBE SELECT * FROM {relation_sql}").fetchall()
        column_types = {str(name): str(column_type) for name, column_type, *_ in described}

        projections = []
        for field in table.fields:
            column = quote_identifier(field.id)
            target = duckdb_type(field)
            source_type = column_types.get(field.id)
            if source_type is None:
                projections.append(f"CAST(NULL AS {target}) AS {column}")
            elif target == "VARCHAR" and field.type in (FieldKind.JSON, FieldKind.LIST) and source_type != "VARCHAR":
                projections.append(f"CAST(to_json({column}) AS VARCHAR) AS {column}")
            else:
                projections.append(f"TRY_CAST({column} AS {target}) AS {column}")

        cursor.execute(
            f"CREATE TEMP VIEW {quote_identifier(relation)} AS SELECT {', '.join(projections)} FROM {relation_sql}"
        )


__all__ = [
    "MAX_SAFE_INTEGER",
    "QueryEngine",
    "arrow_type",
    "duckdb_type",
    "from_duckdb_value",
    "infer_format",
    "rows_to_arrow",
    "sql_literal",
    "to_arrow_value",
]
