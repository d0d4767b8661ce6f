"""Execute declarative table actions against a connector.

Process actions fan out to sub-actions through an explicit work stack of
``(action_id, depth)`` frames, so nesting depth is bounded by configuration
rather than by the interpreter's recursion limit.
"""

from collections.abc import MutableMapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from schemafx.connectors.base import Connector
from schemafx.errors import ActionNotFoundError, RecursionLimitError
from schemafx.models.enums import ActionType
from schemafx.models.schema import AppTable, Row
from schemafx.services.codec import FieldCodec
from schemafx.services.validator import RowValidator, validator_for_table


@dataclass(frozen=True)
class ActionInvocation:
    table: AppTable
    action_id: str
    rows: list[Row] = field(default_factory=list)
    depth: int = 0


def extract_key(row: Row, key_fields: list[str]) -> Row:
    """Key values present in ``row``. None counts as absent."""
    return {name: row[name] for name in key_fields if row.get(name) is not None}


class ActionExecutor:
    """Runs Add, Update, Delete and Process actions for a table."""

    def __init__(
        self,
        codec: FieldCodec,
        validators: MutableMapping[tuple[str, str], RowValidator],
        max_recursive_depth: int = 100,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._codec = codec
        self._validators = validators
        self._max_recursive_depth = max_recursive_depth
        self._logger = logger or structlog.get_logger(__name__)

    async def execute(
        self,
        invocation: ActionInvocation,
        connector: Connector,
        app_id: str,
        auth: Any = None,
    ) -> None:
        """Run the invoked action and, for Process actions, every nested sub-action.

        Raises:
            ActionNotFoundError: If an action id is not declared on the table.
            RecursionLimitError: If Process actions nest deeper than allowed.
            RowValidationError: If a row fails the table's validator.
        """
        table = invocation.table
        stack: list[tuple[str, int]] = [(invocation.action_id, invocation.depth)]

        while stack:
            action_id, depth = stack.pop()
            if depth > self._max_recursive_depth:
                raise RecursionLimitError(self._max_recursive_depth)

            action = table.find_action(action_id)
            if action is None:
                raise ActionNotFoundError(action_id)

            match action.type:
                case ActionType.ADD:
                    await self._add(table, invocation.rows, connector, app_id, auth)
                case ActionType.UPDATE:
                    await self._update(table, invocation.rows, connector, app_id, auth)
                case ActionType.DELETE:
                    await self._delete(table, invocation.rows, connector, auth)
                case ActionType.PROCESS:
                    # reversed so the first sub-action is popped first
                    for sub_action_id in reversed(action.sub_actions):
                        stack.append((sub_action_id, depth + 1))

            self._logger.debug(
                "action_executed",
                table_id=table.id,
                action_id=action_id,
                action_type=action.type.value,
                depth=depth,
            )

    async def _add(self, table: AppTable, rows: list[Row], connector: Connector, app_id: str, auth: Any) -> None:
        if not self._supported(connector, "add_row", table):
            return
        validator = validator_for_table(app_id, table, self._validators)
        normalized = validator.validate_rows(rows)
        for row in normalized:
            await connector.add_row(table, self._codec.encode_row(row, table), auth)

    async def _update(self, table: AppTable, rows: list[Row], connector: Connector, app_id: str, auth: Any) -> None:
        if not self._supported(connector, "update_row", table):
            return
        validator = validator_for_table(app_id, table, self._validators)
        key_fields = [key_field.id for key_field in table.key_fields]
        for index, row in enumerate(rows):
            if not extract_key(row, key_fields):
                self._logger.debug("action_row_skipped_no_key", table_id=table.id, row=index)
                continue
            normalized = validator.validate(row, index)
            key = extract_key(normalized, key_fields)
            await connector.update_row(table, key, self._codec.encode_row(normalized, table), auth)

    async def _delete(self, table: AppTable, rows: list[Row], connector: Connector, auth: Any) -> None:
        if not self._supported(connector, "delete_row", table):
            return
        key_fields = [key_field.id for key_field in table.key_fields]
        for index, row in enumerate(rows):
            key = extract_key(row, key_fields)
            if not key:
                self._logger.debug("action_row_skipped_no_key", table_id=table.id, row=index)
                continue
            await connector.delete_row(table, key, auth)

    def _supported(self, connector: Connector, operation: str, table: AppTable) -> bool:
        if connector.supports(operation):
            return True
        self._logger.warning(
            "connector_operation_missing",
            connector=connector.id,
            operation=operation,
            table_id=table.id,
        )
        return False
