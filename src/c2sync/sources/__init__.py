"""Component2020 source access: contracts, row models and readers."""

from c2sync.sources.base import (
    ConnectionInfo,
    ConnectionProvider,
    DeltaReader,
    RawRow,
    SnapshotReader,
)
from c2sync.sources.connection import DatabaseConnectionProvider
from c2sync.sources.export import ExportDeltaReader, ExportSnapshotReader

__all__ = [
    "ConnectionInfo",
    "ConnectionProvider",
    "DatabaseConnectionProvider",
    "DeltaReader",
    "ExportDeltaReader",
    "ExportSnapshotReader",
    "RawRow",
    "SnapshotReader",
]
