"""Connector contract and the data source shapes connectors hand to the query engine.

A connector must implement namespace discovery (``list_tables``, ``get_table``).
Everything else is optional and detected with :meth:`Connector.supports`:

- ``get_data(table, auth=None) -> DataSource``
- ``get_data_stream(table, auth=None) -> AsyncIterator[Row]``
- ``add_row(table, row, auth=None)``
- ``update_row(table, key, row, auth=None)``
- ``delete_row(table, key, auth=None)``
- ``get_schema(app_id)``, ``save_schema(app_id, schema)``, ``delete_schema(app_id)``
- ``authorize(params)``, ``get_auth_url()``, ``revoke_auth(auth)``, ``test_auth(auth)``

A connector with neither ``get_data`` nor ``get_data_stream`` yields no rows.
Missing mutation operations turn the matching action into a no-op.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterable
from dataclasses import dataclass, field
from enum import StrEnum

import structlog

from schemafx.models.enums import FilterOperator
from schemafx.models.schema import AppTable, Row

DATA_OPERATIONS = ("get_data", "get_data_stream")
MUTATION_OPERATIONS = ("add_row", "update_row", "delete_row")


class FileFormat(StrEnum):
    CSV = "csv"
    JSON = "json"
    PARQUET = "parquet"


class DatabaseKind(StrEnum):
    DUCKDB = "duckdb"
    SQLITE = "sqlite"
    POSTGRES = "postgres"
    MYSQL = "mysql"


@dataclass(frozen=True)
class InlineSource:
    """Rows resident in memory."""

    rows: list[Row]


@dataclass(frozen=True)
class FileSource:
    """A local file DuckDB can read; the format is inferred from the suffix when omitted."""

    path: str
    format: FileFormat | None = None


@dataclass(frozen=True)
class UrlSource:
    url: str
    format: FileFormat | None = None


@dataclass(frozen=True)
class StreamSource:
    """Rows pushed by an async iterable, consumed once."""

    rows: AsyncIterable[Row]


@dataclass(frozen=True)
class ConnectionSource:
    """A table inside an external database attached read-only for the query."""

    uri: str
    table: str
    kind: DatabaseKind = DatabaseKind.DUCKDB


DataSource = InlineSource | FileSource | UrlSource | StreamSource | ConnectionSource


@dataclass(frozen=True)
class TableDescriptor:
    name: str
    path: list[str]
    final: bool = True


@dataclass(frozen=True)
class ConnectorCapabilities:
    """Pushdown support a connector declares for a table."""

    filter_operators: frozenset[FilterOperator] = field(default_factory=frozenset)
    supports_limit: bool = False
    supports_offset: bool = False
    streaming: bool = False


def matches_key(row: Row, key: Row) -> bool:
    """True when every key column of ``key`` equals the row's value."""
    return all(row.get(column) == value for column, value in key.items())


class Connector(ABC):
    """Pluggable backend adapter providing table discovery, rows and mutations."""

    def __init__(
        self,
        name: str,
        connector_id: str | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.name = name
        self.id = connector_id or name
        self._logger = logger or structlog.get_logger(__name__)

    @abstractmethod
    async def list_tables(self, path: list[str], auth: str | None = None) -> list[TableDescriptor]:
        """List tables available under ``path``."""

    @abstractmethod
    async def get_table(self, path: list[str], auth: str | None = None) -> AppTable | None:
        """Describe the table at ``path``, or None when it does not exist."""

    async def get_capabilities(self, table: AppTable | None = None) -> ConnectorCapabilities:
        return ConnectorCapabilities()

    def supports(self, operation: str) -> bool:
        return callable(getattr(self, operation, None))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"


__all__ = [
    "ConnectionSource",
    "Connector",
    "ConnectorCapabilities",
    "DataSource",
    "DatabaseKind",
    "FileFormat",
    "FileSource",
    "InlineSource",
    "StreamSource",
    "TableDescriptor",
    "UrlSource",
    "matches_key",
]
