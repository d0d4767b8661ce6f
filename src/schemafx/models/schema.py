"""Application schema models: schemas own tables and views, tables own fields and actions."""

from datetime import datetime
from typing import Any

from pydantic import Field, field_validator, model_validator

from schemafx.models.base import DomainModel, RecordModel, ensure_unique_ids, ensure_utc
from schemafx.models.enums import ActionType, FieldKind, ViewType


class AppField(DomainModel):
    """A typed table column. JSON fields own child fields, list fields one element field."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    type: FieldKind = FieldKind.TEXT
    is_required: bool = False
    is_key: bool = False
    encrypted: bool = False

    reference_to: str | None = None

    min_length: int | None = Field(default=None, ge=0)
    max_length: int | None = Field(default=None, ge=0)

    min_value: float | None = None
    max_value: float | None = None

    start_date: datetime | None = None
    end_date: datetime | None = None

    options: list[str] | None = None

    fields: list["AppField"] | None = None
    child: "AppField | None" = None

    @field_validator("start_date", "end_date")
    @classmethod
    def _normalize_dates(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        return ensure_utc(value)

    @model_validator(mode="after")
    def _validate_children(self) -> "AppField":
        if self.fields:
            ensure_unique_ids(self.fields, "field")
        return self

    @property
    def is_structured(self) -> bool:
        """True when values have a declared shape (JSON with children, list with child)."""
        if self.type == FieldKind.JSON:
            return bool(self.fields) and not self.encrypted
        if self.type == FieldKind.LIST:
            return self.child is not None
        return False


class AppAction(DomainModel):
    id: str = Field(min_length=1)
    name: str = ""
    type: ActionType
    config: dict[str, Any] = Field(default_factory=dict)

    @property
    def sub_actions(self) -> list[str]:
        """Ordered sub-action ids of a Process action."""
        actions = self.config.get("actions") or []
        return [str(action_id) for action_id in actions]


class AppTable(DomainModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    connector: str = Field(min_length=1)
    path: list[str] = Field(default_factory=list)
    connection_id: str | None = None
    fields: list[AppField] = Field(default_factory=list)
    actions: list[AppAction] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_members(self) -> "AppTable":
        ensure_unique_ids(self.fields, "field")
        ensure_unique_ids(self.actions, "action")
        return self

    @property
    def key_fields(self) -> list[AppField]:
        return [field for field in self.fields if field.is_key]

    def find_field(self, field_id: str) -> AppField | None:
        return next((field for field in self.fields if field.id == field_id), None)

    def find_action(self, action_id: str) -> AppAction | None:
        return next((action for action in self.actions if action.id == action_id), None)

    def requires_key(self) -> bool:
        """Tables declaring update or delete actions must identify rows by key."""
        return any(action.type in (ActionType.UPDATE, ActionType.DELETE) for action in self.actions)


class AppView(DomainModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    table_id: str
    type: ViewType = ViewType.TABLE
    fields: list[str] = Field(default_factory=list)


class AppSchema(RecordModel):
    """An application: ordered tables and the views rendering them."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    tables: list[AppTable] = Field(default_factory=list)
    views: list[AppView] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_references(self) -> "AppSchema":
        ensure_unique_ids(self.tables, "table")
        ensure_unique_ids(self.views, "view")
        table_ids = {table.id for table in self.tables}
        for view in self.views:
            if view.table_id not in table_ids:
                raise ValueError(f"view '{view.id}' references unknown table '{view.table_id}'")
        return self

    def find_table(self, table_id: str) -> AppTable | None:
        return next((table for table in self.tables if table.id == table_id), None)


AppField.model_rebuild()

Row = dict[str, Any]
