from typing import Any

from pydantic import Field, field_validator

from schemafx.models.base import DomainModel, ensure_non_empty_text
from schemafx.models.enums import FilterOperator, SortDirection


class QueryFilter(DomainModel):
    field: str
    operator: FilterOperator = FilterOperator.EQUALS
    value: Any = None

    @field_validator("field")
    @classmethod
    def _validate_field(cls, value: str) -> str:
        return ensure_non_empty_text(value, "field")


class OrderBy(DomainModel):
    column: str
    direction: SortDirection = SortDirection.ASC

    @field_validator("column")
    @classmethod
    def _validate_column(cls, value: str) -> str:
        return ensure_non_empty_text(value, "column")


class QuerySpec(DomainModel):
    """Declarative filter / sort / paginate request against a single table."""

    filters: list[QueryFilter] = Field(default_factory=list)
    order_by: OrderBy | None = None
    limit: int | None = Field(default=None, ge=0)
    offset: int | None = Field(default=None, ge=0)

    @field_validator("filters", mode="before")
    @classmethod
    def _coerce_filters(cls, value: Any) -> Any:
        if value is None:
            return []
        return value

    def is_unconstrained(self) -> bool:
        return not self.filters and self.order_by is None and self.limit is None and self.offset is None

    def referenced_fields(self) -> list[str]:
        names = [query_filter.field for query_filter in self.filters]
        if self.order_by is not None:
            names.append(self.order_by.column)
        return names

    @classmethod
    def parse(cls, value: "QuerySpec | dict[str, Any] | str | None") -> "QuerySpec":
        """Accept a spec, its mapping form, or JSON text as sent over the wire."""
        if value is None:
            return cls()
        if isinstance(value, QuerySpec):
            return value
        if isinstance(value, str):
            return cls.model_validate_json(value)
        return cls.model_validate(value)


__all__ = ["OrderBy", "QueryFilter", "QuerySpec"]
