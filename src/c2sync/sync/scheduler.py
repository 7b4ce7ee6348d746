"""Polling scheduler for recurring sync runs."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import structlog
from sqlalchemy import Engine

from c2sync.config.settings import Settings
from c2sync.db.engine import get_session
from c2sync.db.models.sync_schedule import SyncSchedule
from c2sync.db.repositories.sync_run import SyncRunRepository
from c2sync.db.repositories.sync_schedule import SyncScheduleRepository
from c2sync.sync.next_run import NextRunStrategy, get_next_run_strategy
from c2sync.sync.orchestrator import RunOutcome, SyncOrchestrator
from c2sync.sync.types import SyncMode, SyncScope, parse_mode, parse_scope
from c2sync.utils.exceptions import ConfigurationError
from c2sync.utils.timeutil import as_utc, utcnow

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ScheduleSnapshot:
    """Detached copy of a schedule row as read at the start of a tick."""

    id: str
    name: str
    cron_expression: str
    scope: str
    mode: str
    connection_id: str | None
    is_active: bool
    last_run_at: datetime | None
    next_run_at: datetime | None
    # Exactly as stored, for the compare-and-swap claim
    raw_next_run_at: datetime | None = field(default=None, repr=False, compare=False)

    @classmethod
    def from_model(cls, schedule: SyncSchedule) -> "ScheduleSnapshot":
        return cls(
            id=schedule.id,
            name=schedule.name,
            cron_expression=schedule.cron_expression,
            scope=schedule.scope,
            mode=schedule.mode,
            connection_id=schedule.connection_id,
            is_active=schedule.is_active,
            last_run_at=as_utc(schedule.last_run_at),
            next_run_at=as_utc(schedule.next_run_at),
            raw_next_run_at=schedule.next_run_at,
        )

    def is_due(self, now: datetime) -> bool:
        return self.is_active and self.next_run_at is not None and self.next_run_at <= now


@dataclass
class TickResult:
    """What happened during one scheduler tick."""

    reclaimed_runs: int = 0
    due: int = 0
    claimed: int = 0
    outcomes: list[RunOutcome] = field(default_factory=list)


class SyncScheduler:
    """Runs due schedules, coordinating replicas through a CAS claim.

    Each due schedule is claimed with a conditional update on its
    ``next_run_at``. Only the instance whose update matched runs it.
    """

    def __init__(
        self,
        engine: Engine,
        settings: Settings,
        orchestrator: SyncOrchestrator,
        next_run: NextRunStrategy | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the scheduler.

        Args:
            engine: SQLAlchemy engine.
            settings: Application settings.
            orchestrator: Orchestrator used to execute runs.
            next_run: Next-run strategy; defaults to the one in settings.
            clock: Source of the current UTC time.
        """
        self.engine = engine
        self.settings = settings
        self.orchestrator = orchestrator
        self.next_run = next_run or get_next_run_strategy(settings)
        self.clock = clock

    async def tick(self, now: datetime | None = None) -> TickResult:
        """Run every schedule that is due.

        Args:
            now: Evaluation time; defaults to the clock.

        Returns:
            Summary of the tick.

        Raises:
            Exception: Whatever the orchestrator raised for a claimed
                schedule. The claim is not reset.
        """
        now = now or self.clock()
        result = TickResult()

        if self.settings.stale_run_timeout_minutes > 0:
            result.reclaimed_runs = self.reclaim_stale(now)

        with get_session(self.engine) as session:
            snapshots = [
                ScheduleSnapshot.from_model(s) for s in SyncScheduleRepository(session).list_active()
            ]

        for snapshot in snapshots:
            if not snapshot.is_due(now):
                continue
            result.due += 1
            outcome = await self.run_schedule(snapshot, now)
            if outcome is not None:
                result.claimed += 1
                result.outcomes.append(outcome)

        logger.debug(
            "Scheduler tick complete",
            active=len(snapshots),
            due=result.due,
            claimed=result.claimed,
            reclaimed=result.reclaimed_runs,
        )
        return result

    async def run_schedule(self, snapshot: ScheduleSnapshot, now: datetime) -> RunOutcome | None:
        """Claim and execute one due schedule.

        Args:
            snapshot: Schedule as read at the start of the tick.
            now: Claim time.

        Returns:
            Run outcome, or None if another instance claimed the schedule.
        """
        next_run_at = self.next_run(snapshot.cron_expression, now)

        with get_session(self.engine) as session:
            claimed = SyncScheduleRepository(session).claim(
                snapshot.id,
                snapshot.raw_next_run_at,
                now,
                next_run_at,
            )

        if not claimed:
            logger.info("Schedule claimed by another instance", schedule=snapshot.name)
            return None

        connection_id = snapshot.connection_id or self.settings.connection_id
        if not connection_id:
            raise ConfigurationError(
                f"Schedule {snapshot.name} has no connection id and none is configured"
            )

        logger.info(
            "Running scheduled sync",
            schedule=snapshot.name,
            scope=snapshot.scope,
            mode=snapshot.mode,
        )
        outcome = await self.orchestrator.run_sync(
            connection_id=connection_id,
            scope=snapshot.scope,
            mode=snapshot.mode,
            dry_run=False,
            started_by_user_id=None,
        )

        with get_session(self.engine) as session:
            repo = SyncScheduleRepository(session)
            schedule = repo.get_by_id(snapshot.id)
            if schedule is not None and schedule.is_active:
                schedule.mark_run(max(self.clock(), now), self.next_run)
                repo.save(schedule)

        return outcome

    def reclaim_stale(self, now: datetime | None = None) -> int:
        """Fail runs stuck in Running beyond the configured timeout.

        Returns:
            Number of runs reclaimed.
        """
        now = now or self.clock()
        cutoff = now - timedelta(minutes=self.settings.stale_run_timeout_minutes)
        with get_session(self.engine) as session:
            reclaimed = SyncRunRepository(session).reclaim_stale(cutoff, now)
        if reclaimed:
            logger.warning("Reclaimed stale sync runs", count=reclaimed, cutoff=cutoff.isoformat())
        return reclaimed

    async def run_forever(self, stop_event: asyncio.Event | None = None) -> None:
        """Poll until ``stop_event`` is set.

        Errors raised by a tick are logged and the loop continues.

        Args:
            stop_event: Event that stops the loop.
        """
        stop_event = stop_event or asyncio.Event()
        logger.info("Scheduler started", poll_seconds=self.settings.scheduler_poll_seconds)

        while not stop_event.is_set():
            try:
                await self.tick()
            except Exception as e:
                logger.error("Error in scheduler tick", error=str(e), error_type=type(e).__name__)

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.settings.scheduler_poll_seconds)
            except asyncio.TimeoutError:
                pass

        logger.info("Scheduler stopped")

    def add_schedule(
        self,
        name: str,
        cron_expression: str,
        scope: SyncScope | str,
        mode: SyncMode | str = SyncMode.DELTA,
        connection_id: str | None = None,
        is_active: bool = True,
    ) -> ScheduleSnapshot:
        """Create a schedule.

        Raises:
            ConfigurationError: If the expression, scope or mode is invalid,
                or the name is taken.
        """
        scope = scope if isinstance(scope, SyncScope) else parse_scope(scope)
        mode = mode if isinstance(mode, SyncMode) else parse_mode(mode)
        self.next_run.validate(cron_expression)

        with get_session(self.engine) as session:
            repo = SyncScheduleRepository(session)
            if repo.get_by_name(name) is not None:
                raise ConfigurationError(f"Schedule {name!r} already exists")
            schedule = SyncSchedule(
                name=name,
                cron_expression=cron_expression,
                scope=scope.value,
                mode=mode.value,
                connection_id=connection_id,
                is_active=False,
            )
            if is_active:
                schedule.activate(self.clock(), self.next_run)
            repo.add(schedule)
            snapshot = ScheduleSnapshot.from_model(schedule)

        logger.info("Schedule added", schedule=name, scope=scope.value, next_run_at=snapshot.next_run_at)
        return snapshot

    def set_schedule_active(self, schedule_id: str, active: bool) -> ScheduleSnapshot:
        """Enable or disable a schedule.

        Raises:
            ConfigurationError: If the schedule does not exist.
        """
        with get_session(self.engine) as session:
            repo = SyncScheduleRepository(session)
            schedule = repo.get_by_id(schedule_id) or repo.get_by_name(schedule_id)
            if schedule is None:
                raise ConfigurationError(f"Schedule {schedule_id} not found")
            if active:
                schedule.activate(self.clock(), self.next_run)
            else:
                schedule.deactivate()
            repo.save(schedule)
            return ScheduleSnapshot.from_model(schedule)

    def list_schedules(self) -> list[ScheduleSnapshot]:
        with get_session(self.engine) as session:
            return [ScheduleSnapshot.from_model(s) for s in SyncScheduleRepository(session).list_all()]
