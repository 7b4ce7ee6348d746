"""Sync cursor ORM model for delta reads."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from c2sync.db.base import Base
from c2sync.utils.timeutil import utcnow


class SyncCursor(Base):
    """Last processed external key per connection and source entity."""

    __tablename__ = "c2sync_sync_cursors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    connection_id: Mapped[str] = mapped_column(String(36), nullable=False)
    source_entity: Mapped[str] = mapped_column(String(100), nullable=False)
    last_processed_key: Mapped[str | None] = mapped_column(String(200), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        UniqueConstraint("connection_id", "source_entity", name="uq_sync_cursor"),
    )

    def __repr__(self) -> str:
        return (
            f"<SyncCursor(connection={self.connection_id}, entity={self.source_entity}, "
            f"key={self.last_processed_key})>"
        )
