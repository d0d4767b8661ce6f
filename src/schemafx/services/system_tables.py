"""Connector-backed tables storing schemas, connections and permissions.

These tables are declared with fixed field lists and go through the same
query and action engines as application tables. Their validators live under
the reserved ``_system`` application id.
"""

from dataclasses import dataclass, field

from schemafx.models.enums import ActionType, FieldKind, PermissionLevel, PermissionTargetType
from schemafx.models.schema import AppAction, AppField, AppTable

SYSTEM_APP_ID = "_system"

ADD_ACTION = "add"
UPDATE_ACTION = "update"
DELETE_ACTION = "delete"


@dataclass(frozen=True)
class StoreLocation:
    """Where a system table lives: a connector id, a path in its namespace and
    optionally the credentials handed to the connector."""

    connector: str
    path: list[str] = field(default_factory=list)
    auth: str | None = None


def _crud_actions() -> list[AppAction]:
    return [
        AppAction(id=ADD_ACTION, type=ActionType.ADD),
        AppAction(id=UPDATE_ACTION, type=ActionType.UPDATE),
        AppAction(id=DELETE_ACTION, type=ActionType.DELETE),
    ]


def _system_table(table_id: str, location: StoreLocation, fields: list[AppField]) -> AppTable:
    return AppTable(
        id=table_id,
        name=table_id,
        connector=location.connector,
        path=list(location.path) or [table_id],
        fields=fields,
        actions=_crud_actions(),
    )


def schemas_table(location: StoreLocation) -> AppTable:
    return _system_table(
        "schemas",
        location,
        [
            AppField(id="id", name="ID", is_key=True, is_required=True),
            AppField(id="name", name="Name", is_required=True),
            AppField(id="tables", name="Tables", type=FieldKind.JSON),
            AppField(id="views", name="Views", type=FieldKind.JSON),
        ],
    )


def connections_table(location: StoreLocation) -> AppTable:
    return _system_table(
        "connections",
        location,
        [
            AppField(id="id", name="ID", is_key=True, is_required=True),
            AppField(id="name", name="Name", is_required=True),
            AppField(id="connector", name="Connector", is_required=True),
            AppField(id="content", name="Content", encrypted=True),
        ],
    )


def permissions_table(location: StoreLocation) -> AppTable:
    return _system_table(
        "permissions",
        location,
        [
            AppField(id="id", name="ID", is_key=True, is_required=True),
            AppField(
                id="targetType",
                name="Target Type",
                type=FieldKind.DROPDOWN,
                is_required=True,
                options=[target_type.value for target_type in PermissionTargetType],
            ),
            AppField(id="targetId", name="Target ID", is_required=True),
            AppField(id="email", name="Email", is_required=True),
            AppField(
                id="level",
                name="Level",
                type=FieldKind.DROPDOWN,
                is_required=True,
                options=[level.value for level in PermissionLevel],
            ),
        ],
    )
