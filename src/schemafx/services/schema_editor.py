"""Apply single edits to an application schema.

Edits never mutate the input schema; each returns a re-validated copy along
with the ids of the tables whose row validators the edit invalidates.
"""

from dataclasses import dataclass, field
from typing import TypeVar

from pydantic import ValidationError

from schemafx.errors import SchemaEditError, TableNotFoundError
from schemafx.models.edits import EditAction, SchemaEdit, SchemaPart
from schemafx.models.schema import AppAction, AppField, AppSchema, AppTable, AppView

T = TypeVar("T", AppTable, AppView, AppField, AppAction)


@dataclass(frozen=True)
class SchemaEditResult:
    schema: AppSchema
    touched_tables: set[str] = field(default_factory=set)


def reorder_element(items: list[T], old_index: int, new_index: int) -> list[T]:
    """Move the element at ``old_index`` to ``new_index``."""
    if old_index >= len(items) or new_index >= len(items):
        raise SchemaEditError(f"Cannot move element {old_index} to {new_index} in a list of {len(items)}.")
    reordered = list(items)
    reordered.insert(new_index, reordered.pop(old_index))
    return reordered


def validate_table_keys(table: AppTable) -> None:
    if table.requires_key() and not table.key_fields:
        raise SchemaEditError(f"Table {table.name} must have at least one key field.")


def _replace(items: list[T], element: T, label: str) -> list[T]:
    if not any(item.id == element.id for item in items):
        raise SchemaEditError(f"Cannot update unknown {label} '{element.id}'.")
    return [element if item.id == element.id else item for item in items]


def _edit_list(items: list[T], edit: SchemaEdit, label: str) -> list[T]:
    match edit.action:
        case EditAction.ADD:
            return [*items, edit.element]
        case EditAction.UPDATE:
            return _replace(items, edit.element, label)
        case EditAction.DELETE:
            return [item for item in items if item.id != edit.element_id]
        case EditAction.REORDER:
            return reorder_element(items, edit.old_index, edit.new_index)
    raise SchemaEditError(f"Unsupported edit action '{edit.action}'.")


def _sync_views_on_field_edit(views: list[AppView], table: AppTable, edit: SchemaEdit) -> list[AppView]:
    """Keep view field lists in step with the table's fields.

    Views showing every field pick up an added field; deleted fields drop out
    of every view of the table.
    """
    synced = []
    for view in views:
        if view.table_id != table.id:
            synced.append(view)
            continue
        if edit.action == EditAction.ADD and len(view.fields) == len(table.fields):
            view = view.model_copy(update={"fields": [*view.fields, edit.element.id]})
        elif edit.action == EditAction.DELETE:
            view = view.model_copy(update={"fields": [name for name in view.fields if name != edit.element_id]})
        synced.append(view)
    return synced


def apply_schema_edit(schema: AppSchema, edit: SchemaEdit) -> SchemaEditResult:
    """Return the schema with ``edit`` applied.

    Raises:
        TableNotFoundError: If a field or action edit names a missing parent table.
        SchemaEditError: If the edit is out of range, targets an unknown
            element, or leaves the schema invalid.
    """
    tables = list(schema.tables)
    views = list(schema.views)
    touched: set[str] = set()

    match edit.part_of:
        case SchemaPart.TABLES:
            if edit.action in (EditAction.ADD, EditAction.UPDATE):
                validate_table_keys(edit.element)
                touched.add(edit.element.id)
            elif edit.action == EditAction.DELETE:
                touched.add(edit.element_id)
                views = [view for view in views if view.table_id != edit.element_id]
            tables = _edit_list(tables, edit, "table")
        case SchemaPart.VIEWS:
            views = _edit_list(views, edit, "view")
        case SchemaPart.FIELDS | SchemaPart.ACTIONS:
            parent = schema.find_table(edit.parent_id)
            if parent is None:
                raise TableNotFoundError(edit.parent_id)
            if edit.part_of == SchemaPart.FIELDS:
                updated = parent.model_copy(update={"fields": _edit_list(parent.fields, edit, "field")})
                views = _sync_views_on_field_edit(views, parent, edit)
                touched.add(parent.id)
            else:
                updated = parent.model_copy(update={"actions": _edit_list(parent.actions, edit, "action")})
            validate_table_keys(updated)
            tables = [updated if table.id == parent.id else table for table in tables]

    try:
        edited = AppSchema.model_validate(
            schema.model_copy(update={"tables": tables, "views": views}).model_dump(by_alias=True)
        )
    except ValidationError as e:
        raise SchemaEditError(f"Edit leaves the schema invalid: {e.errors()[0]['msg']}") from None

    return SchemaEditResult(schema=edited, touched_tables=touched)
