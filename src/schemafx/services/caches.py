"""TTL caches shared by the data service and their eviction helpers.

Caches are only touched from the event loop thread. Every operation is
synchronous, so no coroutine can observe a half-finished eviction.
"""

from collections.abc import Iterable

import structlog
from cachetools import TTLCache

from schemafx.config import DataServiceSettings
from schemafx.models.permission import AppConnection, AppPermission, PermissionTarget
from schemafx.models.schema import AppSchema
from schemafx.services.validator import RowValidator


class ServiceCaches:
    """Schemas by app id, connections by id, validators by (app id, table id)
    and permission lists by (target type, target id)."""

    def __init__(
        self,
        settings: DataServiceSettings | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        settings = settings or DataServiceSettings()
        self._logger = logger or structlog.get_logger(__name__)
        self.schemas: TTLCache[str, AppSchema] = TTLCache(
            maxsize=settings.schema_cache_max, ttl=settings.schema_cache_ttl
        )
        self.connections: TTLCache[str, AppConnection] = TTLCache(
            maxsize=settings.connections_cache_max, ttl=settings.connections_cache_ttl
        )
        self.validators: TTLCache[tuple[str, str], RowValidator] = TTLCache(
            maxsize=settings.validator_cache_max, ttl=settings.validator_cache_ttl
        )
        self.permissions: TTLCache[tuple[str, str], list[AppPermission]] = TTLCache(
            maxsize=settings.permissions_cache_max, ttl=settings.permissions_cache_ttl
        )

    def evict_schema(self, app_id: str) -> None:
        self.schemas.pop(app_id, None)
        self._logger.debug("schema_cache_evicted", app_id=app_id)

    def evict_validator(self, app_id: str, table_id: str) -> None:
        self.validators.pop((app_id, table_id), None)

    def evict_validators(self, app_id: str, table_ids: Iterable[str]) -> None:
        for table_id in table_ids:
            self.evict_validator(app_id, table_id)

    def evict_app_validators(self, app_id: str) -> None:
        """Drop every validator compiled for tables of ``app_id``."""
        for key in [key for key in list(self.validators.keys()) if key[0] == app_id]:
            self.validators.pop(key, None)
        self._logger.debug("validator_cache_evicted", app_id=app_id)

    def evict_permissions(self, target: PermissionTarget) -> None:
        self.permissions.pop(target.cache_key, None)
        self._logger.debug(
            "permissions_cache_evicted",
            target_type=target.target_type.value,
            target_id=target.target_id,
        )

    def evict_connection(self, connection_id: str) -> None:
        self.connections.pop(connection_id, None)

    def clear(self) -> None:
        self.schemas.clear()
        self.connections.clear()
        self.validators.clear()
        self.permissions.clear()
