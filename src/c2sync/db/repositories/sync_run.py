"""Sync run ledger repository."""

from datetime import datetime

from sqlalchemy import select, update

from c2sync.db.models.sync_run import SyncError, SyncRun
from c2sync.db.repositories.base import BaseRepository
from c2sync.utils.exceptions import RunAlreadyCompletedError
from c2sync.utils.timeutil import utcnow

RUNNING = "Running"


class SyncRunRepository(BaseRepository[SyncRun]):
    """Repository for the run ledger (SyncRun and SyncError)."""

    model = SyncRun

    def open_run(
        self,
        scope: str,
        mode: str,
        dry_run: bool = False,
        started_by_user_id: str | None = None,
        connection_id: str | None = None,
    ) -> SyncRun:
        """Create a new run in the Running state.

        Args:
            scope: Sync scope value.
            mode: Sync mode value.
            dry_run: Whether the run stages writes without committing them.
            started_by_user_id: Initiating user, None for system runs.
            connection_id: Source connection the run reads from.

        Returns:
            The new run.
        """
        run = SyncRun(
            scope=scope,
            mode=mode,
            dry_run=dry_run,
            started_by_user_id=started_by_user_id,
            connection_id=connection_id,
            status=RUNNING,
            started_at=utcnow(),
            processed_count=0,
            error_count=0,
        )
        return self.add(run)

    def complete(
        self,
        run_id: str,
        status: str,
        processed_count: int,
        error_count: int,
        counters: dict[str, int] | None = None,
        summary: str | None = None,
        finished_at: datetime | None = None,
    ) -> None:
        """Move a Running run to its terminal state.

        This is the only mutation allowed on a run after creation. The update
        is conditional on the run still being Running, so a run can be
        completed at most once.

        Raises:
            RunAlreadyCompletedError: If the run is unknown or already completed.
        """
        stmt = (
            update(SyncRun)
            .where(SyncRun.id == run_id, SyncRun.status == RUNNING)
            .values(
                status=status,
                processed_count=processed_count,
                error_count=error_count,
                counters_json=counters or {},
                summary=summary,
                finished_at=finished_at or utcnow(),
            )
            .execution_options(synchronize_session="fetch")
        )
        result = self.session.execute(stmt)
        if result.rowcount == 0:
            raise RunAlreadyCompletedError(run_id)
        self.session.flush()

    def append_errors(self, run_id: str, errors: list[SyncError]) -> None:
        """Attach row-level errors to a run.

        Args:
            run_id: Parent run id.
            errors: Unsaved SyncError instances; their run_id is set here.
        """
        for error in errors:
            error.run_id = run_id
        self.session.add_all(errors)
        self.session.flush()

    def get_errors(self, run_id: str) -> list[SyncError]:
        """Get a run's errors in creation order."""
        stmt = (
            select(SyncError)
            .where(SyncError.run_id == run_id)
            .order_by(SyncError.created_at, SyncError.id)
        )
        return self._list(stmt)

    def list_runs(
        self,
        since: datetime | None = None,
        status: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[SyncRun], int]:
        """List runs newest first.

        Args:
            since: Only runs started at or after this time.
            status: Only runs in this status.
            page: 1-based page number.
            page_size: Runs per page.

        Returns:
            Tuple of (runs on the requested page, total matching runs).
        """
        conditions = []
        if since is not None:
            conditions.append(SyncRun.started_at >= since)
        if status is not None:
            conditions.append(SyncRun.status == status)

        total = self.count(*conditions)

        page = max(page, 1)
        stmt = (
            select(SyncRun)
            .where(*conditions)
            .order_by(SyncRun.started_at.desc(), SyncRun.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return self._list(stmt), total

    def get_last_successful(self, scope: str | None = None) -> SyncRun | None:
        """Get the most recent Success run, optionally for one scope."""
        stmt = select(SyncRun).where(SyncRun.status == "Success")
        if scope is not None:
            stmt = stmt.where(SyncRun.scope == scope)
        stmt = stmt.order_by(SyncRun.started_at.desc()).limit(1)
        return self.session.scalar(stmt)

    def list_running(self) -> list[SyncRun]:
        stmt = select(SyncRun).where(SyncRun.status == RUNNING).order_by(SyncRun.started_at)
        return self._list(stmt)

    def reclaim_stale(self, older_than: datetime, now: datetime | None = None) -> int:
        """Fail runs that have been Running since before ``older_than``.

        Args:
            older_than: Cut-off start time.
            now: Completion timestamp to record.

        Returns:
            Number of runs reclaimed.
        """
        stmt = (
            update(SyncRun)
            .where(SyncRun.status == RUNNING, SyncRun.started_at < older_than)
            .values(
                status="Failed",
                finished_at=now or utcnow(),
                summary="Reclaimed by watchdog: run exceeded the stale-run timeout",
            )
            .execution_options(synchronize_session="fetch")
        )
        result = self.session.execute(stmt)
        self.session.flush()
        return result.rowcount
