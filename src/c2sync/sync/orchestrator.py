"""Sync orchestrator to coordinate Component2020 synchronization runs."""

import asyncio
import json
import traceback
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import BaseModel, ValidationError
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from c2sync.config.logging import OperationTimer, run_context
from c2sync.config.settings import Settings
from c2sync.db.engine import get_session, rollback_session
from c2sync.db.models.sync_run import SyncError
from c2sync.db.repositories.sync_cursor import SyncCursorRepository
from c2sync.db.repositories.sync_run import SyncRunRepository
from c2sync.db.repositories.sync_schedule import SyncScheduleRepository
from c2sync.sources.base import ConnectionInfo, ConnectionProvider, DeltaReader, SnapshotReader
from c2sync.sync.reconciler import Reconciler
from c2sync.sync.strategies import BaseSyncStrategy, get_strategy_class
from c2sync.sync.types import RunStatus, SyncMode, SyncScope, expand_scope, resolve_status
from c2sync.utils.exceptions import ConfigurationError, ConnectivityError, ReconciliationError
from c2sync.utils.ordering import max_key
from c2sync.utils.retry import RetryPolicy
from c2sync.utils.timeutil import as_utc, utcnow

logger = structlog.get_logger(__name__)


class RunSyncRequest(BaseModel):
    """Manual trigger request."""

    connection_id: str | None = None
    scope: SyncScope = SyncScope.ALL
    mode: SyncMode = SyncMode.DELTA
    dry_run: bool = False
    started_by_user_id: str | None = None


@dataclass
class RunOutcome:
    """Result of one sync run."""

    run_id: str
    status: RunStatus
    processed_count: int
    error_count: int
    counters: dict[str, int]
    error_message: str | None = None


@dataclass
class ScopeResult:
    """Rows reconciled for one scope within a run."""

    scope: SyncScope
    processed: int = 0
    created: int = 0
    updated: int = 0
    deactivated: int = 0
    cursor_key: str | None = None
    cancelled: bool = False


@dataclass
class _RunState:
    processed: int = 0
    counters: dict[str, int] = field(default_factory=dict)
    errors: list[SyncError] = field(default_factory=list)
    cancelled: bool = False

    def merge(self, strategy: BaseSyncStrategy, result: ScopeResult, mode: SyncMode) -> None:
        name = strategy.data_type
        self.processed += result.processed
        self.counters[name] = self.counters.get(name, 0) + result.processed
        self.counters[f"{name}Created"] = self.counters.get(f"{name}Created", 0) + result.created
        self.counters[f"{name}Updated"] = self.counters.get(f"{name}Updated", 0) + result.updated
        if mode == SyncMode.OVERWRITE:
            key = f"{name}Deactivated"
            self.counters[key] = self.counters.get(key, 0) + result.deactivated
        if result.cancelled:
            self.cancelled = True


class SyncOrchestrator:
    """Runs sync scopes against a Component2020 source and records the outcome."""

    def __init__(
        self,
        engine: Engine,
        settings: Settings,
        connection_provider: ConnectionProvider,
        snapshot_reader: SnapshotReader,
        delta_reader: DeltaReader,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            engine: SQLAlchemy engine.
            settings: Application settings.
            connection_provider: Resolves and tests source connections.
            snapshot_reader: Reader for full snapshots.
            delta_reader: Reader for rows after a cursor.
        """
        self.engine = engine
        self.settings = settings
        self.connection_provider = connection_provider
        self.snapshot_reader = snapshot_reader
        self.delta_reader = delta_reader

    async def run_now(
        self,
        request: RunSyncRequest,
        cancel_event: asyncio.Event | None = None,
    ) -> RunOutcome:
        """Execute a manually triggered run.

        Args:
            request: Manual trigger request.
            cancel_event: Set by the caller to stop the run between rows.

        Returns:
            Outcome of the run.
        """
        return await self.run_sync(
            connection_id=request.connection_id,
            scope=request.scope,
            mode=request.mode,
            dry_run=request.dry_run,
            started_by_user_id=request.started_by_user_id,
            cancel_event=cancel_event,
        )

    async def run_sync(
        self,
        connection_id: str | None,
        scope: SyncScope | str,
        mode: SyncMode | str = SyncMode.DELTA,
        dry_run: bool = False,
        started_by_user_id: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> RunOutcome:
        """Run one or more scopes as a single recorded run.

        The run is always completed, whatever happens while it executes.
        Non-recoverable errors are logged and reported through
        ``RunOutcome.error_message`` with status Failed.

        Args:
            connection_id: Source connection id; falls back to settings.
            scope: Scope to run; ``All`` runs every scope in dependency order.
            mode: Delta, SnapshotUpsert or Overwrite.
            dry_run: Stage all writes and roll them back.
            started_by_user_id: Initiating user, None for system runs.
            cancel_event: Checked between rows; when set the run stops early.

        Returns:
            Outcome of the run.

        Raises:
            ConfigurationError: If no connection id is available or the scope
                is not supported.
            asyncio.CancelledError: After completing the run, if the task was
                cancelled.
            KeyboardInterrupt: After completing the run as Failed. SystemExit is
                handled the same way.
        """
        scope = SyncScope(scope)
        mode = SyncMode(mode)
        connection_id = connection_id or self.settings.connection_id
        if not connection_id:
            raise ConfigurationError("No Component2020 connection id configured")
        scopes = expand_scope(scope)

        with get_session(self.engine) as session:
            run = SyncRunRepository(session).open_run(
                scope=scope.value,
                mode=mode.value,
                dry_run=dry_run,
                started_by_user_id=started_by_user_id,
                connection_id=connection_id,
            )
            run_id = run.id

        log = logger.bind(run_id=run_id, scope=scope.value, mode=mode.value, dry_run=dry_run)
        log.info("Sync run started", connection_id=connection_id)

        state = _RunState()
        failure: str | None = None
        outcome: RunOutcome | None = None

        # Reconciler and strategy log events carry the run id too
        with run_context(run_id=run_id):
            try:
                connection = await self._connect(connection_id)

                if dry_run:
                    with rollback_session(self.engine) as session:
                        for item in scopes:
                            if state.cancelled:
                                break
                            strategy = get_strategy_class(item)(session, self.settings)
                            result = await self._sync_scope(
                                session, strategy, connection, item, mode, True, state, cancel_event, run_id
                            )
                            state.merge(strategy, result, mode)
                else:
                    for item in scopes:
                        if state.cancelled:
                            break
                        with get_session(self.engine) as session:
                            strategy = get_strategy_class(item)(session, self.settings)
                            result = await self._sync_scope(
                                session, strategy, connection, item, mode, False, state, cancel_event, run_id
                            )
                        state.merge(strategy, result, mode)

            except asyncio.CancelledError:
                state.cancelled = True
                log.warning("Sync run cancelled", processed=state.processed)
                raise
            except Exception as e:
                failure = str(e) or type(e).__name__
                log.error("Sync run failed", error=failure, error_type=type(e).__name__)
            except BaseException as e:
                # KeyboardInterrupt or SystemExit; the open scope was rolled back
                failure = f"Interrupted by {type(e).__name__}"
                log.error("Sync run interrupted", error_type=type(e).__name__, processed=state.processed)
                raise
            finally:
                outcome = self._complete_run(run_id, state, failure)
                log.info(
                    "Sync run completed",
                    status=outcome.status.value,
                    processed=outcome.processed_count,
                    errors=outcome.error_count,
                )

        return outcome

    async def _connect(self, connection_id: str) -> ConnectionInfo:
        """Resolve and test the connection, retrying transient failures.

        Raises:
            ConnectivityError: If the connection is unknown or unreachable.
        """
        connection = await self.connection_provider.get_connection(connection_id)

        async def test() -> None:
            if not await self.connection_provider.test_connection(connection_id):
                raise ConnectivityError(
                    f"Component2020 connection {connection_id} is not reachable",
                    connection_id=connection_id,
                )

        await RetryPolicy.from_settings(self.settings).call(
            test, "test connection", connection_id=connection_id
        )
        return connection

    async def _sync_scope(
        self,
        session: Session,
        strategy: BaseSyncStrategy,
        connection: ConnectionInfo,
        scope: SyncScope,
        mode: SyncMode,
        dry_run: bool,
        state: _RunState,
        cancel_event: asyncio.Event | None,
        run_id: str,
    ) -> ScopeResult:
        """Reconcile every row of one scope.

        Row failures are recorded on ``state`` and never propagate.
        """
        result = ScopeResult(scope=scope)
        cursor_repo = SyncCursorRepository(session)
        reconciler = Reconciler(strategy)
        seen: set[str] = set()
        rows_read = 0

        with OperationTimer(
            f"sync {scope.value}",
            logger,
            run_id=run_id,
            source_entity=strategy.source_entity,
        ) as timer:
            if mode == SyncMode.DELTA:
                last_key = cursor_repo.get_last_processed_key(connection.id, strategy.source_entity)
                rows = self.delta_reader.read_delta(connection, strategy.source_entity, last_key)
            else:
                last_key = None
                rows = self.snapshot_reader.read_snapshot(connection, strategy.source_entity)

            async for raw in rows:
                if cancel_event is not None and cancel_event.is_set():
                    result.cancelled = True
                    break

                rows_read += 1
                external_id = _external_key(raw)
                if external_id is not None:
                    seen.add(external_id)

                try:
                    with session.begin_nested():
                        upserted = reconciler.upsert(raw)
                except Exception as e:
                    state.errors.append(self._row_error(strategy, external_id, e))
                    logger.warning(
                        "Row reconciliation failed",
                        run_id=run_id,
                        entity_type=strategy.entity_type,
                        external_key=external_id,
                        error=str(e),
                    )
                    continue

                result.processed += 1
                if upserted.created:
                    result.created += 1
                else:
                    result.updated += 1
                result.cursor_key = max_key(result.cursor_key, upserted.external_id)

            if mode == SyncMode.OVERWRITE and not result.cancelled:
                if rows_read == 0:
                    state.errors.append(
                        SyncError(
                            entity_type=strategy.entity_type,
                            external_entity=strategy.external_entity,
                            message=(
                                "Overwrite requested, but source returned 0 rows; "
                                "deactivation skipped"
                            ),
                            created_at=utcnow(),
                        )
                    )
                else:
                    result.deactivated = reconciler.deactivate_missing(seen)

            timer.add(rows=rows_read, cancelled=result.cancelled)

            # A cancelled snapshot may have skipped lower keys
            advance_cursor = not (result.cancelled and mode != SyncMode.DELTA)
            if not dry_run and advance_cursor:
                stored_key = cursor_repo.get_last_processed_key(connection.id, strategy.source_entity)
                cursor_repo.upsert(
                    connection.id,
                    strategy.source_entity,
                    max_key(stored_key, result.cursor_key),
                )

        logger.info(
            "Scope reconciled",
            run_id=run_id,
            scope=scope.value,
            rows=rows_read,
            processed=result.processed,
            created=result.created,
            updated=result.updated,
            deactivated=result.deactivated,
            cursor=result.cursor_key,
        )
        return result

    def _row_error(
        self,
        strategy: BaseSyncStrategy,
        external_id: str | None,
        exc: Exception,
    ) -> SyncError:
        """Build a SyncError for a failed row."""
        limit = self.settings.error_details_max_length

        if isinstance(exc, ValidationError):
            first = exc.errors(include_url=False)[0]
            location = ".".join(str(part) for part in first["loc"]) or "row"
            message = f"Invalid {strategy.data_type} row: {location}: {first['msg']}"
            details = json.dumps(exc.errors(include_url=False), default=str)
        elif isinstance(exc, ReconciliationError):
            message = str(exc)
            details = exc.details
        else:
            message = str(exc) or type(exc).__name__
            details = "".join(traceback.format_exception(exc))

        return SyncError(
            entity_type=strategy.entity_type,
            external_entity=strategy.external_entity,
            external_key=external_id,
            message=message,
            details=details[:limit] if details else None,
            created_at=utcnow(),
        )

    def _complete_run(self, run_id: str, state: _RunState, failure: str | None) -> RunOutcome:
        """Persist errors and the terminal status of a run."""
        error_count = len(state.errors)
        status = resolve_status(
            state.processed,
            error_count,
            cancelled=state.cancelled,
            failed=failure is not None,
        )

        if failure is not None:
            summary = f"Failed: {failure}"
        elif state.cancelled:
            summary = f"Cancelled after {state.processed} rows with {error_count} errors"
        else:
            summary = f"Processed {state.processed} rows with {error_count} errors"

        with get_session(self.engine) as session:
            repo = SyncRunRepository(session)
            if state.errors:
                repo.append_errors(run_id, state.errors)
            repo.complete(
                run_id,
                status=status.value,
                processed_count=state.processed,
                error_count=error_count,
                counters=dict(state.counters),
                summary=summary,
            )

        return RunOutcome(
            run_id=run_id,
            status=status,
            processed_count=state.processed,
            error_count=error_count,
            counters=dict(state.counters),
            error_message=failure,
        )

    async def get_sync_status(self, connection_id: str | None = None) -> dict[str, Any]:
        """Get connectivity, scheduler and last-success status.

        Args:
            connection_id: Connection to test; falls back to settings.

        Returns:
            Status dictionary.
        """
        connection_id = connection_id or self.settings.connection_id
        is_connected = False
        if connection_id:
            try:
                is_connected = await self.connection_provider.test_connection(connection_id)
            except ConnectivityError as e:
                logger.warning("Connection test failed", connection_id=connection_id, error=str(e))

        with get_session(self.engine) as session:
            scheduler_active = SyncScheduleRepository(session).has_active()
            last = SyncRunRepository(session).get_last_successful()
            last_successful = None
            if last is not None:
                last_successful = {
                    "run_id": last.id,
                    "scope": last.scope,
                    "mode": last.mode,
                    "started_at": as_utc(last.started_at),
                    "finished_at": as_utc(last.finished_at),
                    "processed_count": last.processed_count,
                }

        return {
            "connection_id": connection_id,
            "is_connected": is_connected,
            "scheduler_active": scheduler_active,
            "last_successful": last_successful,
        }


def _external_key(raw: dict[str, Any]) -> str | None:
    value = raw.get("id")
    if value is None:
        return None
    key = str(value).strip()
    return key or None
