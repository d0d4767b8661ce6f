from schemafx.models.edits import EditAction, SchemaEdit, SchemaPart
from schemafx.models.enums import (
    ActionType,
    FieldKind,
    FilterOperator,
    PermissionLevel,
    PermissionTargetType,
    SortDirection,
    ViewType,
)
from schemafx.models.permission import AppConnection, AppPermission, PermissionTarget
from schemafx.models.query import OrderBy, QueryFilter, QuerySpec
from schemafx.models.schema import AppAction, AppField, AppSchema, AppTable, AppView, Row


__all__ = [
    "ActionType",
    "AppAction",
    "AppConnection",
    "AppField",
    "AppPermission",
    "AppSchema",
    "AppTable",
    "AppView",
    "EditAction",
    "FieldKind",
    "FilterOperator",
    "OrderBy",
    "PermissionLevel",
    "PermissionTarget",
    "PermissionTargetType",
    "QueryFilter",
    "QuerySpec",
    "Row",
    "SchemaEdit",
    "SchemaPart",
    "SortDirection",
    "ViewType",
]
