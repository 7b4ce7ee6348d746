"""Sync schedule ORM model."""

from collections.abc import Callable
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from c2sync.db.base import Base, TimestampMixin, new_id

NextRunFn = Callable[[str, datetime], datetime]


class SyncSchedule(Base, TimestampMixin):
    """A recurring synchronization job."""

    __tablename__ = "c2sync_sync_schedules"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    cron_expression: Mapped[str] = mapped_column(String(100), nullable=False)
    scope: Mapped[str] = mapped_column(String(50), nullable=False)
    mode: Mapped[str] = mapped_column(String(20), nullable=False, default="Delta")
    connection_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    last_run_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    next_run_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def mark_run(self, now: datetime, next_run: NextRunFn) -> None:
        """Record an execution and compute the following occurrence.

        Args:
            now: Time the schedule ran.
            next_run: Callable computing the next occurrence from
                ``(cron_expression, now)``.
        """
        self.last_run_at = now
        self.next_run_at = next_run(self.cron_expression, now)

    def activate(self, now: datetime, next_run: NextRunFn) -> None:
        self.is_active = True
        self.next_run_at = next_run(self.cron_expression, now)

    def deactivate(self) -> None:
        self.is_active = False
        self.next_run_at = None

    def __repr__(self) -> str:
        return f"<SyncSchedule(name={self.name}, scope={self.scope}, next={self.next_run_at})>"
