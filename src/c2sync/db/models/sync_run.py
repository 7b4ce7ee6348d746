"""Sync run ledger ORM models."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from c2sync.db.base import Base, new_id
from c2sync.utils.timeutil import utcnow


class SyncRun(Base):
    """One execution of the synchronization pipeline.

    A run is created in the Running state and moves to exactly one terminal
    state (Success, Partial, Failed) when it is completed. Runs are never
    deleted.
    """

    __tablename__ = "c2sync_sync_runs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    started_by_user_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    connection_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    scope: Mapped[str] = mapped_column(String(50), nullable=False)
    mode: Mapped[str] = mapped_column(String(20), nullable=False)
    dry_run: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Running", index=True)
    processed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    counters_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)

    errors: Mapped[list["SyncError"]] = relationship(
        "SyncError",
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="SyncError.id",
    )

    def __repr__(self) -> str:
        return f"<SyncRun(id={self.id}, scope={self.scope}, status={self.status})>"


class SyncError(Base):
    """A single row-level (or run-level) failure recorded against a run."""

    __tablename__ = "c2sync_sync_errors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("c2sync_sync_runs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False)
    external_entity: Mapped[str | None] = mapped_column(String(100), nullable=True)
    external_key: Mapped[str | None] = mapped_column(String(200), nullable=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    run: Mapped["SyncRun"] = relationship("SyncRun", back_populates="errors")

    def __repr__(self) -> str:
        return f"<SyncError(run={self.run_id}, entity={self.entity_type}, key={self.external_key})>"
