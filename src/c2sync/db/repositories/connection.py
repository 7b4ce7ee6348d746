"""Source connection repository."""

from datetime import datetime

from sqlalchemy import select

from c2sync.db.models.connection import SourceConnection
from c2sync.db.repositories.base import BaseRepository


class SourceConnectionRepository(BaseRepository[SourceConnection]):
    """Repository for SourceConnection operations."""

    model = SourceConnection

    def get_by_name(self, name: str) -> SourceConnection | None:
        stmt = select(SourceConnection).where(SourceConnection.name == name)
        return self.session.scalar(stmt)

    def list_all(self) -> list[SourceConnection]:
        stmt = select(SourceConnection).order_by(SourceConnection.name)
        return self._list(stmt)

    def record_test_result(self, connection_id: str, message: str, tested_at: datetime) -> None:
        """Store the outcome of a connectivity test.

        Args:
            connection_id: Connection id.
            message: Human-readable test result.
            tested_at: Test time.
        """
        connection = self.get_by_id(connection_id)
        if connection is None:
            return
        connection.last_tested_at = tested_at
        connection.last_test_message = message[:1000]
        self.session.flush()
