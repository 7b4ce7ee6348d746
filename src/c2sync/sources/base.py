"""Collaborator contracts for reading the Component2020 source."""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Protocol

RawRow = dict[str, Any]


@dataclass(frozen=True)
class ConnectionInfo:
    """Resolved connection details for one Component2020 source."""

    id: str
    name: str
    source_path: str
    login: str | None = None
    password: str | None = None


class ConnectionProvider(Protocol):
    """Resolves and tests source connections."""

    async def get_connection(self, connection_id: str) -> ConnectionInfo:
        """Resolve a connection.

        Raises:
            ConnectivityError: If the connection is unknown or inactive.
        """
        ...

    async def test_connection(self, connection_id: str) -> bool:
        """Return True if the source is reachable."""
        ...


class SnapshotReader(Protocol):
    """Reads a full snapshot of one source entity."""

    def read_snapshot(self, connection: ConnectionInfo, source_entity: str) -> AsyncIterator[RawRow]:
        """Iterate over every row of ``source_entity``.

        The iterator is finite, lazy and not restartable. Each row carries a
        stable external identifier under the ``id`` key.
        """
        ...


class DeltaReader(Protocol):
    """Reads the rows of one source entity added after a cursor."""

    def read_delta(
        self,
        connection: ConnectionInfo,
        source_entity: str,
        last_key: str | None,
    ) -> AsyncIterator[RawRow]:
        """Iterate over rows whose key sorts after ``last_key``.

        A ``last_key`` of None means a full read. Rows are returned in key
        order.
        """
        ...
