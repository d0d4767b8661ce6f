"""Factory functions for creating and wiring data services.

Provides a production factory that persists system tables to a JSON file or a
SQLite database, and a test factory backed by an in-memory connector.
"""

from collections.abc import Iterable
from pathlib import Path

import structlog

from schemafx.config import DataServiceSettings
from schemafx.connectors.base import Connector
from schemafx.connectors.file import FileConnector
from schemafx.connectors.memory import MemoryConnector
from schemafx.connectors.sql import SqlConnector, create_async_engine_from_path
from schemafx.services.data_service import DataService
from schemafx.services.system_tables import StoreLocation

STORE_CONNECTOR_ID = "store"


def create_store_connector(db_path: Path, logger: structlog.stdlib.BoundLogger | None = None) -> Connector:
    """A JSON file connector for ``.json`` paths, SQLite otherwise."""
    if db_path.suffix.lower() == ".json":
        return FileConnector(name=STORE_CONNECTOR_ID, file_path=db_path, logger=logger)

    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_async_engine_from_path(str(db_path))
    return SqlConnector(engine=engine, name=STORE_CONNECTOR_ID, logger=logger)


def create_data_service(
    db_path: Path,
    connectors: Iterable[Connector] = (),
    settings: DataServiceSettings | None = None,
) -> DataService:
    """Create a production DataService whose system tables persist to ``db_path``.

    The store connector is registered under the id ``store``, so application
    tables can keep their rows there too.

    Args:
        db_path: JSON file or SQLite database holding schemas, connections,
            permissions and any rows written to the store connector.
        connectors: Additional connectors for application tables.
        settings: Service settings. Defaults to the environment.

    Returns:
        Configured DataService ready for use.
    """
    logger = structlog.get_logger(__name__)

    store = create_store_connector(Path(db_path), logger=logger)

    return DataService(
        connectors=[store, *connectors],
        schema_store=StoreLocation(connector=store.id),
        settings=settings,
        logger=logger,
    )


def create_test_data_service(
    connectors: Iterable[Connector] = (),
    settings: DataServiceSettings | None = None,
) -> DataService:
    """Create a DataService with in-memory storage for testing.

    Each call creates independent storage, so tests don't interfere. The
    in-memory connector is registered under the id ``memory``.

    Args:
        connectors: Additional connectors for application tables.
        settings: Service settings. Defaults to built-in defaults without
            reading a .env file.

    Returns:
        Configured DataService with in-memory storage.
    """
    logger = structlog.get_logger(__name__)

    store = MemoryConnector(logger=logger)

    return DataService(
        connectors=[store, *connectors],
        schema_store=StoreLocation(connector=store.id),
        settings=settings or DataServiceSettings(_env_file=None),
        logger=logger,
    )
