"""Data service orchestrating schemas, queries, actions and permissions.

Coordinates table resolution, validator compilation, field encryption, the
DuckDB query engine and the action engine behind one async API. Schemas,
connections and permissions are themselves rows of connector-backed system
tables. All dependencies are injected via constructor for testability.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

import structlog
from pydantic import ValidationError

from schemafx.config import DataServiceSettings, get_settings
from schemafx.connectors.base import DATA_OPERATIONS, MUTATION_OPERATIONS, Connector, DataSource, StreamSource
from schemafx.errors import (
    ConnectorContractError,
    InvalidQueryError,
    SchemaEditError,
    SchemaNotFoundError,
    TableNotFoundError,
)
from schemafx.models.edits import SchemaEdit
from schemafx.models.enums import FilterOperator, PermissionLevel, PermissionTargetType
from schemafx.models.permission import AppConnection, AppPermission, PermissionTarget, normalize_email
from schemafx.models.query import QueryFilter, QuerySpec
from schemafx.models.schema import AppSchema, AppTable, Row
from schemafx.services.actions import ActionExecutor, ActionInvocation
from schemafx.services.caches import ServiceCaches
from schemafx.services.codec import FieldCodec
from schemafx.services.query_engine import QueryEngine
from schemafx.services.registry import ConnectorRegistry
from schemafx.services.schema_editor import apply_schema_edit, validate_table_keys
from schemafx.services.system_tables import (
    ADD_ACTION,
    DELETE_ACTION,
    SYSTEM_APP_ID,
    UPDATE_ACTION,
    StoreLocation,
    connections_table,
    permissions_table,
    schemas_table,
)


@dataclass(frozen=True)
class ResolvedTable:
    schema: AppSchema
    table: AppTable
    connector: Connector


def _key_spec(field_id: str, value: Any) -> QuerySpec:
    return QuerySpec(filters=[QueryFilter(field=field_id, value=value)], limit=1)


class DataService:
    """Uniform async CRUD and query API over pluggable connectors.

    Schemas, connections and permissions are read and written through system
    tables placed on the given store locations. Connections and permissions
    default to the schema store's connector.
    """

    def __init__(
        self,
        connectors: Iterable[Connector],
        schema_store: StoreLocation,
        connections_store: StoreLocation | None = None,
        permissions_store: StoreLocation | None = None,
        settings: DataServiceSettings | None = None,
        caches: ServiceCaches | None = None,
        query_engine: QueryEngine | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._logger = logger or structlog.get_logger(__name__)
        self._registry = ConnectorRegistry(connectors, logger=self._logger)
        self._caches = caches or ServiceCaches(self._settings, logger=self._logger)
        self._codec = FieldCodec(self._settings.encryption_key)
        self._query_engine = query_engine or QueryEngine(logger=self._logger)
        self._executor = ActionExecutor(
            codec=self._codec,
            validators=self._caches.validators,
            max_recursive_depth=self._settings.max_recursive_depth,
            logger=self._logger,
        )

        connections_store = connections_store or StoreLocation(schema_store.connector, auth=schema_store.auth)
        permissions_store = permissions_store or StoreLocation(schema_store.connector, auth=schema_store.auth)
        self.schemas_table = schemas_table(schema_store)
        self.connections_table = connections_table(connections_store)
        self.permissions_table = permissions_table(permissions_store)
        self._store_auth = {
            self.schemas_table.id: schema_store.auth,
            self.connections_table.id: connections_store.auth,
            self.permissions_table.id: permissions_store.auth,
        }

        for table in (self.schemas_table, self.connections_table, self.permissions_table):
            self._require_store(table)

    @property
    def registry(self) -> ConnectorRegistry:
        return self._registry

    @property
    def caches(self) -> ServiceCaches:
        return self._caches

    @property
    def codec(self) -> FieldCodec:
        return self._codec

    async def aclose(self) -> None:
        """Release connector resources and the embedded database."""
        for connector in self._registry:
            if connector.supports("dispose"):
                await connector.dispose()
        self._query_engine.close()

    async def __aenter__(self) -> "DataService":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # Schemas

    async def get_schema(self, app_id: str) -> AppSchema | None:
        cached = self._caches.schemas.get(app_id)
        if cached is not None:
            return cached

        rows = await self._read_system(self.schemas_table, _key_spec("id", app_id))
        if not rows:
            return None

        schema = AppSchema.from_record(rows[0])
        self._caches.schemas[app_id] = schema
        return schema

    async def require_schema(self, app_id: str) -> AppSchema:
        schema = await self.get_schema(app_id)
        if schema is None:
            raise SchemaNotFoundError(app_id)
        return schema

    async def set_schema(self, schema: AppSchema, owner: str | None = None) -> AppSchema:
        """Create or replace a schema. A new schema grants ``owner`` Admin on the app."""
        for table in schema.tables:
            validate_table_keys(table)

        existing = await self.get_schema(schema.id)
        await self._write_system_row(
            self.schemas_table,
            UPDATE_ACTION if existing else ADD_ACTION,
            schema.to_record(),
        )
        self._caches.evict_app_validators(schema.id)
        self._caches.schemas[schema.id] = schema

        self._logger.info("schema_saved", app_id=schema.id, created=existing is None)

        if existing is None and owner:
            await self._grant_owner(PermissionTargetType.APP, schema.id, owner)
        return schema

    async def delete_schema(self, app_id: str) -> bool:
        schema = await self.get_schema(app_id)
        if schema is None:
            self._caches.evict_schema(app_id)
            return False

        await self._write_system_row(self.schemas_table, DELETE_ACTION, {"id": app_id})
        self._caches.evict_schema(app_id)
        self._caches.evict_app_validators(app_id)
        self._logger.info("schema_deleted", app_id=app_id)
        return True

    async def mutate_schema(self, app_id: str, edit: SchemaEdit | Mapping[str, Any]) -> AppSchema:
        """Apply one schema edit and persist the result.

        Raises:
            SchemaNotFoundError: If the app has no schema.
            SchemaEditError: If the edit is malformed or leaves the schema invalid.
        """
        if not isinstance(edit, SchemaEdit):
            try:
                edit = SchemaEdit.model_validate(edit)
            except ValidationError as e:
                raise SchemaEditError(f"Malformed schema edit: {e.errors()[0]['msg']}") from None

        schema = await self.require_schema(app_id)
        result = apply_schema_edit(schema, edit)
        await self._write_system_row(self.schemas_table, UPDATE_ACTION, result.schema.to_record())

        self._caches.evict_schema(app_id)
        self._caches.evict_validators(app_id, result.touched_tables)

        self._logger.info(
            "schema_edited",
            app_id=app_id,
            action=edit.action.value,
            part_of=edit.part_of.value,
            touched_tables=sorted(result.touched_tables),
        )
        return result.schema

    # Tables and rows

    async def resolve_table(self, app_id: str, table_id: str) -> ResolvedTable:
        """Find a table in the app's schema along with its connector.

        Raises:
            SchemaNotFoundError: If the app has no schema.
            TableNotFoundError: If the schema has no such table.
            ConnectorNotFoundError: If the table's connector is not registered.
        """
        schema = await self.require_schema(app_id)
        table = schema.find_table(table_id)
        if table is None:
            raise TableNotFoundError(table_id)
        return ResolvedTable(schema=schema, table=table, connector=self._registry.get(table.connector))

    async def query_data(
        self,
        app_id: str,
        table_id: str,
        spec: QuerySpec | Mapping[str, Any] | str | None = None,
    ) -> list[Row]:
        """Filter, sort and paginate a table's rows, decrypting encrypted fields."""
        try:
            query_spec = QuerySpec.parse(spec)
        except ValidationError as e:
            raise InvalidQueryError(f"Malformed query: {e.errors()[0]['msg']}") from None

        resolved = await self.resolve_table(app_id, table_id)
        return await self.get_data(resolved.table, query_spec)

    async def execute_action(self, app_id: str, table_id: str, action_id: str, rows: list[Row]) -> None:
        resolved = await self.resolve_table(app_id, table_id)
        auth = await self._connection_auth(resolved.table)
        await self._executor.execute(
            ActionInvocation(table=resolved.table, action_id=action_id, rows=list(rows)),
            resolved.connector,
            app_id,
            auth,
        )
        self._logger.info(
            "action_completed",
            app_id=app_id,
            table_id=table_id,
            action_id=action_id,
            row_count=len(rows),
        )

    async def get_data(self, table: AppTable, spec: QuerySpec | None = None) -> list[Row]:
        """Read a table's rows through the query engine.

        Connectors offering neither ``get_data`` nor ``get_data_stream``
        yield no rows.
        """
        return await self._read(table, spec, await self._connection_auth(table))

    # Connections

    async def get_connection(self, connection_id: str | None) -> AppConnection | None:
        if not connection_id:
            return None
        cached = self._caches.connections.get(connection_id)
        if cached is not None:
            return cached

        rows = await self._read_system(self.connections_table, _key_spec("id", connection_id))
        if not rows:
            return None

        connection = AppConnection.from_record(rows[0])
        self._caches.connections[connection_id] = connection
        return connection

    async def get_connections(self) -> list[AppConnection]:
        return [AppConnection.from_record(row) for row in await self._read_system(self.connections_table)]

    async def set_connection(self, connection: AppConnection, owner: str | None = None) -> AppConnection:
        """Create or replace a connection. A new connection grants ``owner`` Admin on it."""
        existing = await self.get_connection(connection.id)
        await self._write_system_row(
            self.connections_table,
            UPDATE_ACTION if existing else ADD_ACTION,
            connection.to_record(),
        )
        self._caches.connections[connection.id] = connection

        self._logger.info("connection_saved", connection_id=connection.id, created=existing is None)

        if existing is None and owner:
            await self._grant_owner(PermissionTargetType.CONNECTION, connection.id, owner)
        return connection

    async def delete_connection(self, connection_id: str) -> bool:
        connection = await self.get_connection(connection_id)
        if connection is None:
            self._caches.evict_connection(connection_id)
            return False

        await self._write_system_row(self.connections_table, DELETE_ACTION, {"id": connection_id})
        self._caches.evict_connection(connection_id)
        self._logger.info("connection_deleted", connection_id=connection_id)
        return True

    # Permissions

    async def get_permissions(self, target: PermissionTarget) -> list[AppPermission]:
        cached = self._caches.permissions.get(target.cache_key)
        if cached is not None:
            return list(cached)

        spec = QuerySpec(
            filters=[
                QueryFilter(field="targetType", value=target.target_type.value),
                QueryFilter(field="targetId", value=target.target_id),
            ]
        )
        permissions = [AppPermission.from_record(row) for row in await self._read_system(self.permissions_table, spec)]
        self._caches.permissions[target.cache_key] = permissions
        return list(permissions)

    async def get_permission(self, permission_id: str) -> AppPermission | None:
        rows = await self._read_system(self.permissions_table, _key_spec("id", permission_id))
        return AppPermission.from_record(rows[0]) if rows else None

    async def get_user_permission(self, target: PermissionTarget, email: str) -> AppPermission | None:
        email = normalize_email(email)
        permissions = await self.get_permissions(target)
        return next((permission for permission in permissions if permission.email == email), None)

    async def get_permissions_by_user(
        self,
        email: str,
        target_type: PermissionTargetType | None = None,
    ) -> list[AppPermission]:
        filters = [QueryFilter(field="email", operator=FilterOperator.EQUALS, value=normalize_email(email))]
        if target_type is not None:
            filters.append(QueryFilter(field="targetType", value=target_type.value))
        rows = await self._read_system(self.permissions_table, QuerySpec(filters=filters))
        return [AppPermission.from_record(row) for row in rows]

    async def has_permission(self, target: PermissionTarget, email: str, level: PermissionLevel) -> bool:
        """True when ``email`` holds ``level`` or higher on ``target`` (read < write < admin)."""
        permission = await self.get_user_permission(target, email)
        return permission is not None and permission.grants(level)

    async def set_permission(self, permission: AppPermission) -> AppPermission:
        """Create or replace a permission.

        When an existing permission moves to another target, the cached
        lists of both the old and the new target are evicted.
        """
        existing = await self.get_permission(permission.id)
        await self._write_system_row(
            self.permissions_table,
            UPDATE_ACTION if existing else ADD_ACTION,
            permission.to_record(),
        )

        self._caches.evict_permissions(permission.target)
        if existing is not None and existing.target != permission.target:
            self._caches.evict_permissions(existing.target)

        self._logger.info(
            "permission_saved",
            permission_id=permission.id,
            target_type=permission.target_type.value,
            target_id=permission.target_id,
            level=permission.level.value,
        )
        return permission

    async def delete_permission(self, permission_id: str) -> bool:
        permission = await self.get_permission(permission_id)
        if permission is None:
            return False

        await self._write_system_row(self.permissions_table, DELETE_ACTION, {"id": permission_id})
        self._caches.evict_permissions(permission.target)
        self._logger.info("permission_deleted", permission_id=permission_id)
        return True

    async def delete_permissions(self, target: PermissionTarget) -> None:
        permissions = await self.get_permissions(target)
        if permissions:
            await self._write_system_rows(
                self.permissions_table,
                DELETE_ACTION,
                [{"id": permission.id} for permission in permissions],
            )
        self._caches.evict_permissions(target)

    # Internals

    async def _grant_owner(self, target_type: PermissionTargetType, target_id: str, owner: str) -> None:
        await self.set_permission(
            AppPermission(
                id=str(uuid4()),
                target_type=target_type,
                target_id=target_id,
                email=owner,
                level=PermissionLevel.ADMIN,
            )
        )

    async def _write_system_row(self, table: AppTable, action_id: str, row: Row) -> None:
        await self._write_system_rows(table, action_id, [row])

    async def _write_system_rows(self, table: AppTable, action_id: str, rows: list[Row]) -> None:
        await self._executor.execute(
            ActionInvocation(table=table, action_id=action_id, rows=rows),
            self._registry.get(table.connector),
            SYSTEM_APP_ID,
            self._store_auth[table.id],
        )

    async def _read_system(self, table: AppTable, spec: QuerySpec | None = None) -> list[Row]:
        return await self._read(table, spec, self._store_auth[table.id])

    async def _read(self, table: AppTable, spec: QuerySpec | None, auth: str | None) -> list[Row]:
        connector = self._registry.get(table.connector)
        source = await self._data_source(connector, table, auth)
        if source is None:
            return []
        rows = await self._query_engine.query(self._codec.stored_table(table), source, spec)
        return [self._codec.decode_row(row, table) for row in rows]

    async def _connection_auth(self, table: AppTable) -> str | None:
        connection = await self.get_connection(table.connection_id)
        return connection.content if connection is not None else None

    async def _data_source(self, connector: Connector, table: AppTable, auth: str | None) -> DataSource | None:
        if connector.supports("get_data"):
            return await connector.get_data(table, auth)
        if connector.supports("get_data_stream"):
            return StreamSource(rows=connector.get_data_stream(table, auth))

        self._logger.warning("connector_has_no_data", connector=connector.id, table_id=table.id)
        return None

    def _require_store(self, table: AppTable) -> None:
        connector = self._registry.require(table.connector, *MUTATION_OPERATIONS)
        if not any(connector.supports(operation) for operation in DATA_OPERATIONS):
            raise ConnectorContractError(connector.id, "get_data")
