"""Error taxonomy for the data service.

Every error carries a machine-readable ``kind`` and a human message so the
transport layer can map it to a response without inspecting the class.
"""

from dataclasses import dataclass
from typing import Any


class SchemaFXError(Exception):
    """Base class for all data service errors."""

    kind: str = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.kind, "message": self.message}


class NotFoundError(SchemaFXError):
    """Raised when a schema, table, connector or action cannot be resolved."""

    kind = "not_found"


class SchemaNotFoundError(NotFoundError):
    def __init__(self, app_id: str) -> None:
        super().__init__(f"Application '{app_id}' not found.")
        self.app_id = app_id


class TableNotFoundError(NotFoundError):
    def __init__(self, table_id: str) -> None:
        super().__init__(f"Table '{table_id}' not found.")
        self.table_id = table_id


class ConnectorNotFoundError(NotFoundError):
    def __init__(self, connector_id: str) -> None:
        super().__init__(f"Connector '{connector_id}' not found.")
        self.connector_id = connector_id


class ActionNotFoundError(NotFoundError):
    def __init__(self, action_id: str) -> None:
        super().__init__(f"Action '{action_id}' not found.")
        self.action_id = action_id


class DuplicateConnectorError(SchemaFXError):
    kind = "duplicate_connector"

    def __init__(self, connector_id: str) -> None:
        super().__init__(f'Duplicated connector "{connector_id}".')
        self.connector_id = connector_id


class ConnectorContractError(SchemaFXError):
    """Raised when a connector lacks an operation the service depends on."""

    kind = "connector_contract"

    def __init__(self, connector_id: str, operation: str) -> None:
        super().__init__(f"Connector '{connector_id}' does not implement '{operation}'.")
        self.connector_id = connector_id
        self.operation = operation


@dataclass(frozen=True)
class Violation:
    """A single field-level validation failure."""

    path: str
    message: str
    code: str
    row: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"field": self.path, "message": self.message, "code": self.code}
        if self.row is not None:
            data["row"] = self.row
        return data


class RowValidationError(SchemaFXError):
    """Raised when a row fails its compiled validator."""

    kind = "validation_error"

    def __init__(self, violations: list[Violation], message: str = "Row validation failed.") -> None:
        super().__init__(message)
        self.violations = violations

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["details"] = [violation.to_dict() for violation in self.violations]
        return payload


class InvalidQueryError(SchemaFXError):
    kind = "invalid_query"


class SchemaEditError(SchemaFXError):
    kind = "invalid_schema_edit"


class RecursionLimitError(SchemaFXError):
    """Raised when Process actions nest deeper than the configured ceiling."""

    kind = "recursion_limit"

    def __init__(self, max_depth: int) -> None:
        super().__init__(f"Max recursion depth exceeded ({max_depth}).")
        self.max_depth = max_depth


class DecryptionError(SchemaFXError):
    kind = "decryption_error"


class DataSourceError(SchemaFXError):
    """Raised when connector data cannot be materialized for querying."""

    kind = "data_source_error"
