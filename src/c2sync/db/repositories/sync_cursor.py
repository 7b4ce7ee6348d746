"""Sync cursor repository."""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from c2sync.db.models.sync_cursor import SyncCursor
from c2sync.db.repositories.base import BaseRepository
from c2sync.utils.timeutil import utcnow


class SyncCursorRepository(BaseRepository[SyncCursor]):
    """Repository for SyncCursor operations."""

    model = SyncCursor

    def get(self, connection_id: str, source_entity: str) -> SyncCursor | None:
        """Get the cursor row for a connection and source entity.

        Args:
            connection_id: Source connection id.
            source_entity: Source entity name (e.g. ``Units``).

        Returns:
            SyncCursor or None when no baseline exists yet.
        """
        stmt = select(SyncCursor).where(
            SyncCursor.connection_id == connection_id,
            SyncCursor.source_entity == source_entity,
        )
        return self.session.scalar(stmt)

    def get_last_processed_key(self, connection_id: str, source_entity: str) -> str | None:
        """Get the last processed external key, or None for a full read."""
        cursor = self.get(connection_id, source_entity)
        return cursor.last_processed_key if cursor else None

    def list_for_connection(self, connection_id: str) -> list[SyncCursor]:
        stmt = (
            select(SyncCursor)
            .where(SyncCursor.connection_id == connection_id)
            .order_by(SyncCursor.source_entity)
        )
        return self._list(stmt)

    def upsert(
        self,
        connection_id: str,
        source_entity: str,
        last_processed_key: str | None,
        updated_at: datetime | None = None,
    ) -> SyncCursor:
        """Insert or update a cursor in a single statement.

        Args:
            connection_id: Source connection id.
            source_entity: Source entity name.
            last_processed_key: Key to store. Callers are responsible for
                never passing a key lower than the stored one.
            updated_at: Timestamp of the read; defaults to now.

        Returns:
            The upserted cursor.
        """
        data = {
            "connection_id": connection_id,
            "source_entity": source_entity,
            "last_processed_key": last_processed_key,
            "updated_at": updated_at or utcnow(),
        }

        dialect = self.session.bind.dialect.name if self.session.bind else "sqlite"

        update_set = {k: v for k, v in data.items() if k not in ("connection_id", "source_entity")}

        if dialect == "postgresql":
            stmt = pg_insert(SyncCursor).values(**data)
            stmt = stmt.on_conflict_do_update(
                constraint="uq_sync_cursor",
                set_=update_set,
            )
        elif dialect in ("mysql", "mariadb"):
            stmt = mysql_insert(SyncCursor).values(**data)
            stmt = stmt.on_duplicate_key_update(**update_set)
        else:
            stmt = sqlite_insert(SyncCursor).values(**data)
            stmt = stmt.on_conflict_do_update(
                index_elements=["connection_id", "source_entity"],
                set_=update_set,
            )

        self.session.execute(stmt)
        self.session.flush()

        cursor = self.get(connection_id, source_entity)
        # The ORM identity map may hold a stale copy from an earlier read
        self.session.refresh(cursor)  # type: ignore[arg-type]
        return cursor  # type: ignore[return-value]
