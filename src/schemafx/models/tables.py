"""SQLModel table definitions backing the SQL connector.

Rows of every application table share one physical table: each record holds
the logical table path and the row itself as JSON. Schemas saved through the
connector's schema-store operations live in their own table. These records
are kept apart from the frozen domain models, which cannot serve as mutable
ORM objects.
"""

from typing import Any

from sqlalchemy import JSON
from sqlmodel import Field, SQLModel


class TableRowRecord(SQLModel, table=True):
    """One stored row of a logical table, in insertion order."""

    __tablename__ = "table_rows"

    row_id: int | None = Field(default=None, primary_key=True)
    table_path: str = Field(index=True)
    data: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)


class SchemaRecord(SQLModel, table=True):
    """A serialized application schema keyed by application id."""

    __tablename__ = "schemas"

    app_id: str = Field(primary_key=True)
    data: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
