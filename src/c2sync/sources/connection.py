"""Connection provider backed by the local connection table."""

import os
from pathlib import Path

import structlog
from sqlalchemy import Engine

from c2sync.db.engine import get_session
from c2sync.db.repositories.connection import SourceConnectionRepository
from c2sync.sources.base import ConnectionInfo
from c2sync.utils.exceptions import ConnectivityError
from c2sync.utils.timeutil import utcnow

logger = structlog.get_logger(__name__)


class DatabaseConnectionProvider:
    """Resolves connections stored in ``c2sync_source_connections``.

    A connection is reachable when its export directory exists and is
    readable.
    """

    def __init__(self, engine: Engine) -> None:
        """Initialize provider.

        Args:
            engine: SQLAlchemy engine holding the connection table.
        """
        self.engine = engine

    async def get_connection(self, connection_id: str) -> ConnectionInfo:
        """Resolve a connection by id.

        Args:
            connection_id: Connection id.

        Returns:
            Connection details.

        Raises:
            ConnectivityError: If the connection is unknown or inactive.
        """
        with get_session(self.engine) as session:
            connection = SourceConnectionRepository(session).get_by_id(connection_id)
            if connection is None:
                raise ConnectivityError(
                    f"Component2020 connection {connection_id} not found",
                    connection_id=connection_id,
                )
            if not connection.is_active:
                raise ConnectivityError(
                    f"Component2020 connection {connection_id} is inactive",
                    connection_id=connection_id,
                )
            return ConnectionInfo(
                id=connection.id,
                name=connection.name,
                source_path=connection.source_path,
                login=connection.login,
                password=connection.password,
            )

    async def test_connection(self, connection_id: str) -> bool:
        """Check that the connection's export directory is readable.

        The outcome is recorded on the connection row.

        Args:
            connection_id: Connection id.

        Returns:
            True if the source is reachable.
        """
        info = await self.get_connection(connection_id)
        path = Path(info.source_path)

        if not path.is_dir():
            ok, message = False, f"Source path {path} is not a directory"
        elif not os.access(path, os.R_OK):
            ok, message = False, f"Source path {path} is not readable"
        else:
            ok, message = True, "Connection successful"

        with get_session(self.engine) as session:
            SourceConnectionRepository(session).record_test_result(connection_id, message, utcnow())

        logger.info(
            "Tested connection",
            connection_id=connection_id,
            reachable=ok,
            message=message,
        )
        return ok
