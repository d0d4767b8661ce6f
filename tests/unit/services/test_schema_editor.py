"""Unit tests for schema edits."""

import pytest

from schemafx.errors import SchemaEditError, TableNotFoundError
from schemafx.models import (
    ActionType,
    AppAction,
    AppField,
    AppSchema,
    AppTable,
    AppView,
    EditAction,
    SchemaEdit,
    SchemaPart,
)
from schemafx.services.schema_editor import apply_schema_edit, reorder_element, validate_table_keys


def _customers() -> AppTable:
    return AppTable(
        id="customers",
        name="Customers",
        connector="memory",
        fields=[AppField(id="id", name="ID", is_key=True), AppField(id="name", name="Name")],
        actions=[AppAction(id="update", type=ActionType.UPDATE)],
    )


@pytest.fixture
def schema() -> AppSchema:
    return AppSchema(
        id="crm",
        name="CRM",
        tables=[_customers(), AppTable(id="orders", name="Orders", connector="memory")],
        views=[
            AppView(id="all", name="All", table_id="customers", fields=["id", "name"]),
            AppView(id="names", name="Names", table_id="customers", fields=["name"]),
            AppView(id="orders", name="Orders", table_id="orders"),
        ],
    )


class TestTableEdits:
    def test_add_table(self, schema: AppSchema) -> None:
        table = AppTable(id="notes", name="Notes", connector="memory")

        result = apply_schema_edit(schema, SchemaEdit(action=EditAction.ADD, part_of=SchemaPart.TABLES, element=table))

        assert [t.id for t in result.schema.tables] == ["customers", "orders", "notes"]
        assert result.touched_tables == {"notes"}

    def test_input_schema_is_not_modified(self, schema: AppSchema) -> None:
        table = AppTable(id="notes", name="Notes", connector="memory")

        apply_schema_edit(schema, SchemaEdit(action=EditAction.ADD, part_of=SchemaPart.TABLES, element=table))

        assert len(schema.tables) == 2

    def test_add_duplicate_table_is_rejected(self, schema: AppSchema) -> None:
        table = AppTable(id="orders", name="Orders again", connector="memory")

        with pytest.raises(SchemaEditError, match="duplicate table id"):
            apply_schema_edit(schema, SchemaEdit(action=EditAction.ADD, part_of=SchemaPart.TABLES, element=table))

    def test_update_table(self, schema: AppSchema) -> None:
        renamed = _customers().model_copy(update={"name": "Clients"})

        result = apply_schema_edit(
            schema, SchemaEdit(action=EditAction.UPDATE, part_of=SchemaPart.TABLES, element=renamed)
        )

        assert result.schema.find_table("customers").name == "Clients"

    def test_update_unknown_table(self, schema: AppSchema) -> None:
        ghost = AppTable(id="ghost", name="Ghost", connector="memory")

        with pytest.raises(SchemaEditError, match="unknown table"):
            apply_schema_edit(schema, SchemaEdit(action=EditAction.UPDATE, part_of=SchemaPart.TABLES, element=ghost))

    def test_keyless_table_with_update_action_is_rejected(self, schema: AppSchema) -> None:
        table = AppTable(
            id="logs",
            name="Logs",
            connector="memory",
            fields=[AppField(id="line", name="Line")],
            actions=[AppAction(id="delete", type=ActionType.DELETE)],
        )

        with pytest.raises(SchemaEditError, match="Table Logs must have at least one key field."):
            apply_schema_edit(schema, SchemaEdit(action=EditAction.ADD, part_of=SchemaPart.TABLES, element=table))

    def test_delete_table_drops_its_views(self, schema: AppSchema) -> None:
        result = apply_schema_edit(
            schema, SchemaEdit(action=EditAction.DELETE, part_of=SchemaPart.TABLES, element_id="customers")
        )

        assert [t.id for t in result.schema.tables] == ["orders"]
        assert [v.id for v in result.schema.views] == ["orders"]
        assert result.touched_tables == {"customers"}

    def test_delete_missing_table_is_a_noop(self, schema: AppSchema) -> None:
        result = apply_schema_edit(
            schema, SchemaEdit(action=EditAction.DELETE, part_of=SchemaPart.TABLES, element_id="ghost")
        )

        assert result.schema == schema

    def test_reorder_tables(self, schema: AppSchema) -> None:
        result = apply_schema_edit(
            schema, SchemaEdit(action=EditAction.REORDER, part_of=SchemaPart.TABLES, old_index=1, new_index=0)
        )

        assert [t.id for t in result.schema.tables] == ["orders", "customers"]
        assert result.touched_tables == set()


class TestFieldEdits:
    def test_added_field_joins_views_showing_every_field(self, schema: AppSchema) -> None:
        edit = SchemaEdit(
            action=EditAction.ADD,
            part_of=SchemaPart.FIELDS,
            parent_id="customers",
            element=AppField(id="email", name="Email"),
        )

        result = apply_schema_edit(schema, edit)
        views = {view.id: view.fields for view in result.schema.views}

        assert [f.id for f in result.schema.find_table("customers").fields] == ["id", "name", "email"]
        assert views["all"] == ["id", "name", "email"]
        assert views["names"] == ["name"]
        assert result.touched_tables == {"customers"}

    def test_deleted_field_leaves_every_view(self, schema: AppSchema) -> None:
        edit = SchemaEdit(action=EditAction.DELETE, part_of=SchemaPart.FIELDS, parent_id="customers", element_id="name")

        result = apply_schema_edit(schema, edit)
        views = {view.id: view.fields for view in result.schema.views}

        assert views["all"] == ["id"]
        assert views["names"] == []

    def test_deleting_the_last_key_field_is_rejected(self, schema: AppSchema) -> None:
        edit = SchemaEdit(action=EditAction.DELETE, part_of=SchemaPart.FIELDS, parent_id="customers", element_id="id")

        with pytest.raises(SchemaEditError, match="at least one key field"):
            apply_schema_edit(schema, edit)

    def test_missing_parent_table(self, schema: AppSchema) -> None:
        edit = SchemaEdit(
            action=EditAction.ADD,
            part_of=SchemaPart.FIELDS,
            parent_id="ghost",
            element=AppField(id="x", name="X"),
        )

        with pytest.raises(TableNotFoundError):
            apply_schema_edit(schema, edit)

    def test_reorder_out_of_range(self, schema: AppSchema) -> None:
        edit = SchemaEdit(
            action=EditAction.REORDER,
            part_of=SchemaPart.FIELDS,
            parent_id="customers",
            old_index=0,
            new_index=5,
        )

        with pytest.raises(SchemaEditError):
            apply_schema_edit(schema, edit)


class TestActionAndViewEdits:
    def test_add_action_does_not_touch_validators(self, schema: AppSchema) -> None:
        edit = SchemaEdit(
            action=EditAction.ADD,
            part_of=SchemaPart.ACTIONS,
            parent_id="customers",
            element=AppAction(id="add", type=ActionType.ADD),
        )

        result = apply_schema_edit(schema, edit)

        assert [a.id for a in result.schema.find_table("customers").actions] == ["update", "add"]
        assert result.touched_tables == set()

    def test_adding_delete_action_to_keyless_table_is_rejected(self, schema: AppSchema) -> None:
        edit = SchemaEdit(
            action=EditAction.ADD,
            part_of=SchemaPart.ACTIONS,
            parent_id="orders",
            element=AppAction(id="delete", type=ActionType.DELETE),
        )

        with pytest.raises(SchemaEditError, match="Table Orders must have at least one key field."):
            apply_schema_edit(schema, edit)

    def test_view_on_unknown_table_is_rejected(self, schema: AppSchema) -> None:
        edit = SchemaEdit(
            action=EditAction.ADD,
            part_of=SchemaPart.VIEWS,
            element=AppView(id="ghosts", name="Ghosts", table_id="ghost"),
        )

        with pytest.raises(SchemaEditError, match="unknown table"):
            apply_schema_edit(schema, edit)


def test_reorder_element() -> None:
    assert reorder_element(["a", "b", "c"], 0, 2) == ["b", "c", "a"]
    assert reorder_element(["a", "b", "c"], 2, 0) == ["c", "a", "b"]


def test_validate_table_keys_ignores_tables_without_row_actions() -> None:
    validate_table_keys(AppTable(id="t", name="T", connector="memory", actions=[AppAction(id="a", type=ActionType.ADD)]))
