"""Sync schedule repository."""

from datetime import datetime

from sqlalchemy import exists, select, update

from c2sync.db.models.sync_schedule import SyncSchedule
from c2sync.db.repositories.base import BaseRepository


class SyncScheduleRepository(BaseRepository[SyncSchedule]):
    """Repository for SyncSchedule operations."""

    model = SyncSchedule

    def get_by_name(self, name: str) -> SyncSchedule | None:
        stmt = select(SyncSchedule).where(SyncSchedule.name == name)
        return self.session.scalar(stmt)

    def list_all(self) -> list[SyncSchedule]:
        stmt = select(SyncSchedule).order_by(SyncSchedule.name)
        return self._list(stmt)

    def list_active(self) -> list[SyncSchedule]:
        """Get all active schedules ordered by next run."""
        stmt = (
            select(SyncSchedule)
            .where(SyncSchedule.is_active.is_(True))
            .order_by(SyncSchedule.next_run_at, SyncSchedule.id)
        )
        return self._list(stmt)

    def has_active(self) -> bool:
        """Check whether any schedule is currently active."""
        stmt = select(exists().where(SyncSchedule.is_active.is_(True)))
        return bool(self.session.scalar(stmt))

    def claim(
        self,
        schedule_id: str,
        expected_next_run_at: datetime | None,
        now: datetime,
        new_next_run_at: datetime | None,
    ) -> bool:
        """Claim a due schedule with a compare-and-swap update.

        The update only applies when ``next_run_at`` still holds the value the
        caller read. Concurrent scheduler instances racing for the same
        occurrence therefore see exactly one successful claim.

        Args:
            schedule_id: Schedule id.
            expected_next_run_at: ``next_run_at`` as read by the caller.
            now: Claim time, stored as ``last_run_at``.
            new_next_run_at: Following occurrence to store.

        Returns:
            True if this caller won the claim.
        """
        if expected_next_run_at is None:
            next_run_matches = SyncSchedule.next_run_at.is_(None)
        else:
            next_run_matches = SyncSchedule.next_run_at == expected_next_run_at

        stmt = (
            update(SyncSchedule)
            .where(
                SyncSchedule.id == schedule_id,
                SyncSchedule.is_active.is_(True),
                next_run_matches,
            )
            .values(last_run_at=now, next_run_at=new_next_run_at)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        self.session.flush()
        return result.rowcount == 1
