from datetime import datetime, timezone

import pytest

from schemafx.errors import InvalidQueryError
from schemafx.models import AppField, FieldKind, FilterOperator, OrderBy, QueryFilter, QuerySpec, SortDirection
from schemafx.services.query_builder import build_query, quote_identifier

FIELDS = {
    "id": AppField(id="id", name="ID", type=FieldKind.NUMBER),
    "name": AppField(id="name", name="Name"),
    "born": AppField(id="born", name="Born", type=FieldKind.DATE),
}


def test_quote_identifier_doubles_quotes() -> None:
    assert quote_identifier('we"ird') == '"we""ird"'


def test_empty_spec_selects_everything() -> None:
    compiled = build_query("rel")

    assert compiled.sql == 'SELECT * FROM "rel"'
    assert compiled.params == []


@pytest.mark.parametrize(
    ("operator", "clause", "param"),
    [
        (FilterOperator.EQUALS, '"name" = ?', "Ada"),
        (FilterOperator.NOT_EQUALS, 'NOT ("name" = ?)', "Ada"),
        (FilterOperator.GREATER_THAN, '"name" > ?', "Ada"),
        (FilterOperator.GREATER_THAN_OR_EQUAL, '"name" >= ?', "Ada"),
        (FilterOperator.LESS_THAN, '"name" < ?', "Ada"),
        (FilterOperator.LESS_THAN_OR_EQUAL, '"name" <= ?', "Ada"),
        (FilterOperator.CONTAINS, 'CAST("name" AS VARCHAR) LIKE ?', "%Ada%"),
    ],
)
def test_operators(operator: FilterOperator, clause: str, param: str) -> None:
    spec = QuerySpec(filters=[QueryFilter(field="name", operator=operator, value="Ada")])

    compiled = build_query("rel", spec, FIELDS)

    assert compiled.sql == f'SELECT * FROM "rel" WHERE {clause}'
    assert compiled.params == [param]


def test_full_spec() -> None:
    spec = QuerySpec(
        filters=[
            QueryFilter(field="id", operator=FilterOperator.GREATER_THAN, value=10),
            QueryFilter(field="name", value="Ada"),
        ],
        order_by=OrderBy(column="id", direction=SortDirection.DESC),
        limit=5,
        offset=10,
    )

    compiled = build_query("rel", spec, FIELDS)

    assert compiled.sql == (
        'SELECT * FROM "rel" WHERE "id" > ? AND "name" = ? ORDER BY "id" DESC LIMIT ? OFFSET ?'
    )
    assert compiled.params == [10, "Ada", 5, 10]


def test_values_never_appear_in_sql() -> None:
    spec = QuerySpec(filters=[QueryFilter(field="name", value="x'; DROP TABLE t; --")])

    compiled = build_query("rel", spec, FIELDS)

    assert "DROP" not in compiled.sql
    assert compiled.params == ["x'; DROP TABLE t; --"]


def test_unknown_fields_are_rejected() -> None:
    spec = QuerySpec(
        filters=[QueryFilter(field="zeta", value=1), QueryFilter(field="alpha", value=1)],
        order_by=OrderBy(column="zeta"),
    )

    with pytest.raises(InvalidQueryError, match=r"Unknown field\(s\) in query: alpha, zeta\."):
        build_query("rel", spec, FIELDS)


def test_fields_are_not_checked_without_a_field_map() -> None:
    spec = QuerySpec(filters=[QueryFilter(field="anything", value=1)])

    assert build_query("rel", spec).sql == 'SELECT * FROM "rel" WHERE "anything" = ?'


def test_date_values_become_naive_utc() -> None:
    spec = QuerySpec(
        filters=[
            QueryFilter(field="born", operator=FilterOperator.GREATER_THAN, value="2024-01-01T02:00:00+02:00"),
            QueryFilter(field="born", operator=FilterOperator.LESS_THAN, value=datetime(2025, 1, 1, tzinfo=timezone.utc)),
        ]
    )

    compiled = build_query("rel", spec, FIELDS)

    assert compiled.params == [datetime(2024, 1, 1, 0, 0), datetime(2025, 1, 1, 0, 0)]


def test_same_spec_compiles_identically() -> None:
    fields = {**FIELDS, 'od"d; --': AppField(id='od"d; --', name="Odd")}
    spec = QuerySpec(
        filters=[
            QueryFilter(field='od"d; --', operator=FilterOperator.CONTAINS, value="x"),
            QueryFilter(
                field="born", operator=FilterOperator.LESS_THAN, value=datetime(2000, 1, 1, tzinfo=timezone.utc)
            ),
            QueryFilter(field="id", operator=FilterOperator.NOT_EQUALS, value=3),
        ],
        order_by=OrderBy(column='od"d; --', direction=SortDirection.ASC),
        limit=20,
        offset=40,
    )

    first = build_query("rel", spec, fields)
    second = build_query("rel", spec, fields)

    assert first == second
    assert first.sql.count("?") == len(first.params) == 5
