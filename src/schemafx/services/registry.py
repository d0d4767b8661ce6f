"""Connector lookup by id."""

from collections.abc import Iterable

import structlog

from schemafx.connectors.base import Connector
from schemafx.errors import ConnectorContractError, ConnectorNotFoundError, DuplicateConnectorError


class ConnectorRegistry:
    """Maps connector ids to connector instances. Ids must be unique."""

    def __init__(
        self,
        connectors: Iterable[Connector],
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._logger = logger or structlog.get_logger(__name__)
        self._connectors: dict[str, Connector] = {}
        for connector in connectors:
            if connector.id in self._connectors:
                raise DuplicateConnectorError(connector.id)
            self._connectors[connector.id] = connector

        self._logger.debug("connectors_registered", connector_ids=list(self._connectors))

    def get(self, connector_id: str) -> Connector:
        try:
            return self._connectors[connector_id]
        except KeyError:
            raise ConnectorNotFoundError(connector_id) from None

    def require(self, connector_id: str, *operations: str) -> Connector:
        """Resolve a connector and check it implements every named operation.

        Raises:
            ConnectorNotFoundError: If no connector has this id.
            ConnectorContractError: If an operation is missing.
        """
        connector = self.get(connector_id)
        for operation in operations:
            if not connector.supports(operation):
                raise ConnectorContractError(connector_id, operation)
        return connector

    def __contains__(self, connector_id: object) -> bool:
        return connector_id in self._connectors

    def __iter__(self):
        return iter(self._connectors.values())

    def __len__(self) -> int:
        return len(self._connectors)
