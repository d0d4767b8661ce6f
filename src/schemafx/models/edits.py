from enum import StrEnum
from typing import Any, Mapping

from pydantic import Field, model_validator

from schemafx.models.base import DomainModel
from schemafx.models.schema import AppAction, AppField, AppTable, AppView


class EditAction(StrEnum):
    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"
    REORDER = "reorder"


class SchemaPart(StrEnum):
    TABLES = "tables"
    VIEWS = "views"
    FIELDS = "fields"
    ACTIONS = "actions"

    @property
    def is_nested(self) -> bool:
        """Fields and actions live inside a parent table."""
        return self in (SchemaPart.FIELDS, SchemaPart.ACTIONS)


_PART_MODELS: dict[SchemaPart, type[DomainModel]] = {
    SchemaPart.TABLES: AppTable,
    SchemaPart.VIEWS: AppView,
    SchemaPart.FIELDS: AppField,
    SchemaPart.ACTIONS: AppAction,
}


class SchemaEdit(DomainModel):
    """A single schema editing operation on tables, views, fields or actions."""

    action: EditAction
    part_of: SchemaPart
    element: AppTable | AppView | AppField | AppAction | None = None
    element_id: str | None = None
    parent_id: str | None = None
    old_index: int | None = Field(default=None, ge=0)
    new_index: int | None = Field(default=None, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _coerce_element(cls, data: Any) -> Any:
        # The element's model depends on partOf, so it is resolved explicitly
        # instead of letting the union guess.
        if not isinstance(data, Mapping):
            return data
        part = data.get("partOf", data.get("part_of"))
        element = data.get("element")
        if isinstance(element, Mapping) and part in set(SchemaPart):
            data = dict(data)
            data["element"] = _PART_MODELS[SchemaPart(part)].model_validate(element)
        return data

    @model_validator(mode="after")
    def _validate_shape(self) -> "SchemaEdit":
        if self.action in (EditAction.ADD, EditAction.UPDATE):
            if self.element is None:
                raise ValueError(f"'{self.action}' edits require an element")
            if not isinstance(self.element, _PART_MODELS[self.part_of]):
                raise ValueError(f"element does not describe {self.part_of}")
        if self.action == EditAction.DELETE and not self.element_id:
            raise ValueError("'delete' edits require an elementId")
        if self.action == EditAction.REORDER and (self.old_index is None or self.new_index is None):
            raise ValueError("'reorder' edits require oldIndex and newIndex")
        if self.part_of.is_nested and not self.parent_id:
            raise ValueError(f"edits on {self.part_of} require a parentId")
        return self


__all__ = ["EditAction", "SchemaEdit", "SchemaPart"]
