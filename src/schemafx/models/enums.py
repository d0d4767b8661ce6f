from enum import StrEnum


class FieldKind(StrEnum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    EMAIL = "email"
    DROPDOWN = "dropdown"
    BOOLEAN = "boolean"
    REFERENCE = "reference"
    JSON = "json"
    LIST = "list"


class ActionType(StrEnum):
    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"
    PROCESS = "process"


class ViewType(StrEnum):
    TABLE = "table"
    FORM = "form"


class FilterOperator(StrEnum):
    EQUALS = "eq"
    NOT_EQUALS = "ne"
    GREATER_THAN = "gt"
    GREATER_THAN_OR_EQUAL = "gte"
    LESS_THAN = "lt"
    LESS_THAN_OR_EQUAL = "lte"
    CONTAINS = "contains"


class SortDirection(StrEnum):
    ASC = "asc"
    DESC = "desc"


class PermissionTargetType(StrEnum):
    APP = "app"
    CONNECTION = "connection"


class PermissionLevel(StrEnum):
    READ = "read"
    WRITE = "write"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _PERMISSION_RANKS[self]


_PERMISSION_RANKS = {
    PermissionLevel.READ: 1,
    PermissionLevel.WRITE: 2,
    PermissionLevel.ADMIN: 3,
}
