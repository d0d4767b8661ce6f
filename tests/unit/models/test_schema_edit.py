import pytest
from pydantic import ValidationError

from schemafx.models import AppAction, AppField, AppTable, AppView, EditAction, SchemaEdit, SchemaPart

TABLE = {"id": "customers", "name": "Customers", "connector": "memory", "path": ["customers"]}


def test_element_model_follows_part_of() -> None:
    table_edit = SchemaEdit.model_validate({"action": "add", "partOf": "tables", "element": TABLE})
    field_edit = SchemaEdit.model_validate(
        {"action": "add", "partOf": "fields", "parentId": "customers", "element": {"id": "name", "name": "Name"}}
    )
    view_edit = SchemaEdit.model_validate(
        {"action": "update", "partOf": "views", "element": {"id": "v", "name": "V", "tableId": "customers"}}
    )
    action_edit = SchemaEdit.model_validate(
        {"action": "add", "partOf": "actions", "parentId": "customers", "element": {"id": "a", "type": "add"}}
    )

    assert isinstance(table_edit.element, AppTable)
    assert isinstance(field_edit.element, AppField)
    assert isinstance(view_edit.element, AppView)
    assert isinstance(action_edit.element, AppAction)


def test_element_must_match_part() -> None:
    with pytest.raises(ValidationError):
        SchemaEdit.model_validate(
            {"action": "add", "partOf": "tables", "element": {"id": "name", "name": "Name"}}
        )


def test_add_requires_element() -> None:
    with pytest.raises(ValidationError, match="require an element"):
        SchemaEdit(action=EditAction.ADD, part_of=SchemaPart.TABLES)


def test_delete_requires_element_id() -> None:
    with pytest.raises(ValidationError, match="elementId"):
        SchemaEdit(action=EditAction.DELETE, part_of=SchemaPart.VIEWS)


def test_reorder_requires_both_indices() -> None:
    with pytest.raises(ValidationError, match="oldIndex and newIndex"):
        SchemaEdit(action=EditAction.REORDER, part_of=SchemaPart.TABLES, old_index=0)


def test_nested_parts_require_parent() -> None:
    with pytest.raises(ValidationError, match="parentId"):
        SchemaEdit(action=EditAction.DELETE, part_of=SchemaPart.FIELDS, element_id="name")


def test_reorder_accepts_camel_case_indices() -> None:
    edit = SchemaEdit.model_validate({"action": "reorder", "partOf": "views", "oldIndex": 2, "newIndex": 0})

    assert edit.old_index == 2
    assert edit.new_index == 0


def test_only_fields_and_actions_are_nested() -> None:
    assert SchemaPart.FIELDS.is_nested
    assert SchemaPart.ACTIONS.is_nested
    assert not SchemaPart.TABLES.is_nested
    assert not SchemaPart.VIEWS.is_nested
