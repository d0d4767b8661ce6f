from schemafx.connectors.base import (
    ConnectionSource,
    Connector,
    ConnectorCapabilities,
    DatabaseKind,
    DataSource,
    FileFormat,
    FileSource,
    InlineSource,
    StreamSource,
    TableDescriptor,
    UrlSource,
)
from schemafx.connectors.file import FileConnector
from schemafx.connectors.inference import infer_table
from schemafx.connectors.memory import MemoryConnector
from schemafx.connectors.sql import SqlConnector, create_async_engine_from_path

__all__ = [
    "ConnectionSource",
    "Connector",
    "ConnectorCapabilities",
    "DataSource",
    "DatabaseKind",
    "FileConnector",
    "FileFormat",
    "FileSource",
    "InlineSource",
    "MemoryConnector",
    "SqlConnector",
    "StreamSource",
    "TableDescriptor",
    "UrlSource",
    "create_async_engine_from_path",
    "infer_table",
]
