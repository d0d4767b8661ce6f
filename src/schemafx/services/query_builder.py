"""Compile a QuerySpec into parameterized DuckDB SQL.

Identifiers are always double-quoted with embedded quotes doubled, and values
only ever travel as ``?`` parameters.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from schemafx.errors import InvalidQueryError
from schemafx.models.enums import FieldKind, FilterOperator, SortDirection
from schemafx.models.query import QueryFilter, QuerySpec
from schemafx.models.schema import AppField

_COMPARISONS = {
    FilterOperator.EQUALS: "=",
    FilterOperator.GREATER_THAN: ">",
    FilterOperator.GREATER_THAN_OR_EQUAL: ">=",
    FilterOperator.LESS_THAN: "<",
    FilterOperator.LESS_THAN_OR_EQUAL: "<=",
}


@dataclass(frozen=True)
class CompiledQuery:
    sql: str
    params: list[Any]


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _param_value(field: AppField | None, value: Any) -> Any:
    # TIMESTAMP columns hold naive UTC
    if field is not None and field.type == FieldKind.DATE:
        if isinstance(value, str):
            try:
                value = datetime.fromisoformat(value)
            except ValueError:
                return value
        if isinstance(value, datetime) and value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _compile_filter(query_filter: QueryFilter, field: AppField | None) -> tuple[str, Any]:
    column = quote_identifier(query_filter.field)
    if query_filter.operator == FilterOperator.CONTAINS:
        return f"CAST({column} AS VARCHAR) LIKE ?", f"%{query_filter.value}%"

    value = _param_value(field, query_filter.value)
    if query_filter.operator == FilterOperator.NOT_EQUALS:
        return f"NOT ({column} = ?)", value
    return f"{column} {_COMPARISONS[query_filter.operator]} ?", value


def build_query(
    relation: str,
    spec: QuerySpec | None = None,
    fields: Mapping[str, AppField] | None = None,
) -> CompiledQuery:
    """Translate ``spec`` into a SELECT over ``relation``.

    Args:
        relation: Name of the relation to select from.
        spec: Filters, ordering and pagination. None selects everything.
        fields: Table fields by id. When given, filters and ordering may only
            reference these fields, and date filter values are normalized.

    Raises:
        InvalidQueryError: If the spec references an unknown field.
    """
    spec = spec or QuerySpec()
    if fields is not None:
        unknown = [name for name in spec.referenced_fields() if name not in fields]
        if unknown:
            raise InvalidQueryError(f"Unknown field(s) in query: {', '.join(sorted(set(unknown)))}.")

    sql = f"SELECT * FROM {quote_identifier(relation)}"
    params: list[Any] = []

    if spec.filters:
        clauses = []
        for query_filter in spec.filters:
            field = fields.get(query_filter.field) if fields is not None else None
            clause, param = _compile_filter(query_filter, field)
            clauses.append(clause)
            params.append(param)
        sql += " WHERE " + " AND ".join(clauses)

    if spec.order_by is not None:
        direction = "DESC" if spec.order_by.direction == SortDirection.DESC else "ASC"
        sql += f" ORDER BY {quote_identifier(spec.order_by.column)} {direction}"

    if spec.limit is not None:
        sql += " LIMIT ?"
        params.append(spec.limit)

    if spec.offset is not None:
        sql += " OFFSET ?"
        params.append(spec.offset)

    return CompiledQuery(sql=sql, params=params)
