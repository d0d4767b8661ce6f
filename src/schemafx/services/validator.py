"""Compile table field metadata into row validators.

Each field becomes a pydantic annotation; the annotations are assembled into a
dynamic model that rejects unknown keys. Field ids travel as aliases, so any
id is accepted as a column name, including ones that clash with Python
keywords or pydantic internals.
"""

from collections.abc import Iterable, Mapping, MutableMapping
from datetime import datetime
from typing import Annotated, Any, Literal, Optional

import structlog
from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    PlainValidator,
    StrictBool,
    StringConstraints,
    ValidationError,
    create_model,
)
from pydantic_core import PydanticCustomError

from schemafx.errors import RowValidationError, Violation
from schemafx.models.base import ensure_utc
from schemafx.models.enums import FieldKind
from schemafx.models.schema import AppField, AppTable, Row

_ROW_MODEL_CONFIG = ConfigDict(extra="forbid", populate_by_name=False)

logger = structlog.get_logger(__name__)


def _number_validator(field: AppField):
    def validate(value: Any) -> int | float:
        # bool is an int subclass but never a number here
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise PydanticCustomError("number_type", "Input should be a number")
        if field.min_value is not None and value < field.min_value:
            raise PydanticCustomError(
                "greater_than_equal",
                "Input should be greater than or equal to {ge}",
                {"ge": field.min_value},
            )
        if field.max_value is not None and value > field.max_value:
            raise PydanticCustomError(
                "less_than_equal",
                "Input should be less than or equal to {le}",
                {"le": field.max_value},
            )
        return value

    return validate


def _date_validator(field: AppField):
    def validate(value: datetime) -> datetime:
        value = ensure_utc(value)
        if field.start_date is not None and value < field.start_date:
            raise PydanticCustomError(
                "date_too_early",
                "Date should be on or after {start}",
                {"start": field.start_date.isoformat()},
            )
        if field.end_date is not None and value > field.end_date:
            raise PydanticCustomError(
                "date_too_late",
                "Date should be on or before {end}",
                {"end": field.end_date.isoformat()},
            )
        return value

    return validate


def _reject_all(value: Any) -> Any:
    raise PydanticCustomError("dropdown_no_options", "Dropdown field has no options to choose from")


def field_annotation(field: AppField, model_name: str) -> Any:
    """Build the pydantic annotation describing one field's values."""
    match field.type:
        case FieldKind.TEXT:
            return Annotated[str, StringConstraints(min_length=field.min_length, max_length=field.max_length)]
        case FieldKind.NUMBER:
            return Annotated[int | float, PlainValidator(_number_validator(field))]
        case FieldKind.DATE:
            return Annotated[datetime, AfterValidator(_date_validator(field))]
        case FieldKind.EMAIL:
            return EmailStr
        case FieldKind.DROPDOWN:
            if not field.options:
                return Annotated[str, PlainValidator(_reject_all)]
            return Literal[tuple(field.options)]
        case FieldKind.BOOLEAN:
            return StrictBool
        case FieldKind.REFERENCE:
            return str
        case FieldKind.JSON:
            if not field.fields:
                return Any
            return build_row_model(field.fields, f"{model_name}_{field.id}")
        case FieldKind.LIST:
            if field.child is None:
                return list[Any]
            return list[field_annotation(field.child, f"{model_name}_{field.id}")]
    raise ValueError(f"unsupported field kind {field.type!r}")


def build_row_model(fields: Iterable[AppField], name: str) -> type[BaseModel]:
    """Assemble a strict model whose aliases are the field ids."""
    definitions: dict[str, Any] = {}
    for index, field in enumerate(fields):
        annotation = field_annotation(field, name)
        if field.is_required:
            definitions[f"f_{index}"] = (annotation, Field(alias=field.id))
        else:
            definitions[f"f_{index}"] = (Optional[annotation], Field(default=None, alias=field.id))
    return create_model(name, __config__=_ROW_MODEL_CONFIG, **definitions)


def _violations(error: ValidationError, row_index: int | None) -> list[Violation]:
    return [
        Violation(
            path=".".join(str(part) for part in detail["loc"]),
            message=detail["msg"],
            code=detail["type"],
            row=row_index,
        )
        for detail in error.errors()
    ]


class RowValidator:
    """Validates and normalizes rows for one table."""

    def __init__(self, model: type[BaseModel]) -> None:
        self._model = model

    @property
    def model(self) -> type[BaseModel]:
        return self._model

    def validate(self, row: Mapping[str, Any], row_index: int | None = None) -> Row:
        """Return the normalized row. Absent optional fields stay absent.

        Raises:
            RowValidationError: With one violation per failing field.
        """
        try:
            instance = self._model.model_validate(row)
        except ValidationError as e:
            raise RowValidationError(_violations(e, row_index)) from None
        return instance.model_dump(by_alias=True, exclude_unset=True)

    def validate_rows(self, rows: list[Mapping[str, Any]]) -> list[Row]:
        """Validate a batch, reporting violations from every failing row at once."""
        normalized: list[Row] = []
        violations: list[Violation] = []
        for index, row in enumerate(rows):
            try:
                normalized.append(self.validate(row, index))
            except RowValidationError as e:
                violations.extend(e.violations)
        if violations:
            raise RowValidationError(violations)
        return normalized


def compile_validator(fields: Iterable[AppField], name: str = "Row") -> RowValidator:
    return RowValidator(build_row_model(fields, name))


def validator_for_table(
    app_id: str,
    table: AppTable,
    cache: MutableMapping[tuple[str, str], RowValidator],
) -> RowValidator:
    """Return the cached validator of ``table``, compiling it on a miss."""
    key = (app_id, table.id)
    validator = cache.get(key)
    if validator is None:
        validator = compile_validator(table.fields, f"Row_{table.id}")
        cache[key] = validator
        logger.debug("validator_compiled", app_id=app_id, table_id=table.id)
    return validator
