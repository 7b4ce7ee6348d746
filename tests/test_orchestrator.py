"""Tests for the sync orchestrator."""

import asyncio

import pytest
from sqlalchemy import func, select

from c2sync.db.engine import get_session
from c2sync.db.models import ExternalEntityLink, Item, SyncRun, UnitOfMeasure
from c2sync.db.repositories import SyncCursorRepository, SyncRunRepository
from c2sync.sync.orchestrator import RunSyncRequest
from c2sync.sync.types import RunStatus, SyncMode, SyncScope
from c2sync.utils.exceptions import ConfigurationError


def count_rows(engine, model, *conditions) -> int:
    with get_session(engine) as session:
        return session.scalar(select(func.count()).select_from(model).where(*conditions))


def cursor_key(engine, source_entity: str, connection_id: str = "C1") -> str | None:
    with get_session(engine) as session:
        return SyncCursorRepository(session).get_last_processed_key(connection_id, source_entity)


def active_unit_symbols(engine) -> set[str]:
    with get_session(engine) as session:
        return set(
            session.scalars(select(UnitOfMeasure.symbol).where(UnitOfMeasure.is_active.is_(True)))
        )


def numbered_units(count: int, failing: set[int] = frozenset()) -> list[dict]:
    """Unit rows U1..U<count>; rows in ``failing`` have an empty symbol."""
    return [
        {"id": f"U{n}", "name": f"Unit {n}", "symbol": "" if n in failing else f"u{n}"}
        for n in range(1, count + 1)
    ]


class TestDeltaSync:
    """Test Delta runs over a single scope."""

    @pytest.mark.asyncio
    async def test_delta_units_success(self, orchestrator, source, sample_units, test_engine):
        """Test a clean delta run creates units, links and the cursor."""
        source.tables["Units"] = sample_units

        outcome = await orchestrator.run_sync("C1", SyncScope.UNITS, SyncMode.DELTA)

        assert outcome.status == RunStatus.SUCCESS
        assert outcome.processed_count == 3
        assert outcome.error_count == 0
        assert outcome.counters["Unit"] == 3
        assert outcome.counters["UnitCreated"] == 3
        assert "UnitDeactivated" not in outcome.counters
        assert count_rows(test_engine, UnitOfMeasure) == 3
        assert count_rows(test_engine, ExternalEntityLink) == 3
        assert cursor_key(test_engine, "Units") == "U3"

        with get_session(test_engine) as session:
            run = SyncRunRepository(session).get_by_id(outcome.run_id)
            assert run.status == "Success"
            assert run.scope == "Units"
            assert run.mode == "Delta"
            assert run.dry_run is False
            assert run.finished_at is not None
            assert run.processed_count == 3
            assert run.counters_json["Unit"] == 3

    @pytest.mark.asyncio
    async def test_invalid_row_gives_partial(self, orchestrator, source, sample_units, test_engine):
        """Test that one malformed row is recorded and the rest still land."""
        sample_units[1]["symbol"] = ""
        source.tables["Units"] = sample_units

        outcome = await orchestrator.run_sync("C1", "Units", "Delta")

        assert outcome.status == RunStatus.PARTIAL
        assert outcome.processed_count == 2
        assert outcome.error_count == 1
        assert count_rows(test_engine, UnitOfMeasure) == 2
        assert cursor_key(test_engine, "Units") == "U3"

        with get_session(test_engine) as session:
            errors = SyncRunRepository(session).get_errors(outcome.run_id)
            assert len(errors) == 1
            assert errors[0].external_key == "U2"
            assert errors[0].entity_type == "UnitOfMeasure"
            assert errors[0].message.startswith("Invalid Unit row: symbol:")

    @pytest.mark.asyncio
    async def test_delta_resumes_from_cursor(self, orchestrator, source, sample_units, test_engine):
        """Test that the next delta only reads keys after the cursor."""
        source.tables["Units"] = sample_units
        await orchestrator.run_sync("C1", SyncScope.UNITS)

        source.tables["Units"].append({"id": "U4", "name": "Liter", "symbol": "l"})
        outcome = await orchestrator.run_sync("C1", SyncScope.UNITS)

        assert source.delta_calls == [("Units", None), ("Units", "U3")]
        assert outcome.processed_count == 1
        assert outcome.counters["UnitCreated"] == 1
        assert cursor_key(test_engine, "Units") == "U4"

    @pytest.mark.asyncio
    async def test_cursor_uses_natural_order(self, orchestrator, source, test_engine):
        """Test that U10 sorts after U9."""
        source.tables["Units"] = [
            {"id": "U10", "symbol": "a"},
            {"id": "U9", "symbol": "b"},
        ]

        await orchestrator.run_sync("C1", SyncScope.UNITS)

        assert cursor_key(test_engine, "Units") == "U10"

    @pytest.mark.asyncio
    async def test_cursor_never_moves_backward(self, orchestrator, source, sample_units, test_engine):
        """Test that a snapshot with lower keys keeps the stored cursor."""
        with get_session(test_engine) as session:
            SyncCursorRepository(session).upsert("C1", "Units", "U9")
        source.tables["Units"] = sample_units

        outcome = await orchestrator.run_sync("C1", SyncScope.UNITS, SyncMode.SNAPSHOT_UPSERT)

        assert outcome.status == RunStatus.SUCCESS
        assert cursor_key(test_engine, "Units") == "U9"

    @pytest.mark.asyncio
    async def test_cursor_skips_failed_last_row(self, orchestrator, source, test_engine):
        """Test the cursor stops at the last row that reconciled, not the last row read."""
        source.tables["Units"] = numbered_units(10, failing={3, 7, 10})

        outcome = await orchestrator.run_sync("C1", SyncScope.UNITS, SyncMode.DELTA)

        assert outcome.status == RunStatus.PARTIAL
        assert outcome.processed_count == 7
        assert outcome.error_count == 3
        assert cursor_key(test_engine, "Units") == "U9"

    @pytest.mark.asyncio
    async def test_cursor_passes_failed_middle_rows(self, orchestrator, source, test_engine):
        """Test failed rows before the last success do not hold the cursor back."""
        source.tables["Units"] = numbered_units(10, failing={3, 7})

        outcome = await orchestrator.run_sync("C1", SyncScope.UNITS, SyncMode.DELTA)

        assert outcome.status == RunStatus.PARTIAL
        assert outcome.processed_count == 8
        assert outcome.error_count == 2
        assert cursor_key(test_engine, "Units") == "U10"
        with get_session(test_engine) as session:
            errors = SyncRunRepository(session).get_errors(outcome.run_id)
            assert sorted(e.external_key for e in errors) == ["U3", "U7"]

    @pytest.mark.asyncio
    async def test_missing_reference_gives_partial(self, orchestrator, source, test_engine):
        """Test that a row referencing an unknown unit fails alone."""
        source.tables["Units"] = [{"id": 1, "symbol": "pcs"}]
        source.tables["Items"] = [
            {"id": 10, "name": "Resistor", "unit_id": 1},
            {"id": 11, "name": "Capacitor", "unit_id": 99},
        ]
        await orchestrator.run_sync("C1", SyncScope.UNITS)

        outcome = await orchestrator.run_sync("C1", SyncScope.ITEMS)

        assert outcome.status == RunStatus.PARTIAL
        assert outcome.processed_count == 1
        assert count_rows(test_engine, Item) == 1
        with get_session(test_engine) as session:
            (error,) = SyncRunRepository(session).get_errors(outcome.run_id)
            assert error.external_key == "11"
            assert error.message == "Unit 99 not found"


class TestSnapshotModes:
    """Test SnapshotUpsert and Overwrite runs."""

    @pytest.mark.asyncio
    async def test_snapshot_upsert_is_idempotent(self, orchestrator, source, sample_units, test_engine):
        """Test that repeating a snapshot updates instead of duplicating."""
        source.tables["Units"] = sample_units

        first = await orchestrator.run_sync("C1", SyncScope.UNITS, SyncMode.SNAPSHOT_UPSERT)
        second = await orchestrator.run_sync("C1", SyncScope.UNITS, SyncMode.SNAPSHOT_UPSERT)

        assert first.counters["UnitCreated"] == 3
        assert second.counters["UnitCreated"] == 0
        assert second.counters["UnitUpdated"] == 3
        assert count_rows(test_engine, UnitOfMeasure) == 3
        assert count_rows(test_engine, ExternalEntityLink) == 3
        assert source.snapshot_calls == ["Units", "Units"]

    @pytest.mark.asyncio
    async def test_overwrite_deactivates_missing(self, orchestrator, source, sample_units, test_engine):
        """Test that Overwrite soft-deactivates unseen entities and reactivates them later."""
        source.tables["Units"] = list(sample_units)
        await orchestrator.run_sync("C1", SyncScope.UNITS, SyncMode.SNAPSHOT_UPSERT)

        source.tables["Units"] = sample_units[:2]
        outcome = await orchestrator.run_sync("C1", SyncScope.UNITS, SyncMode.OVERWRITE)

        assert outcome.status == RunStatus.SUCCESS
        assert outcome.counters["UnitDeactivated"] == 1
        assert active_unit_symbols(test_engine) == {"pcs", "kg"}
        assert count_rows(test_engine, UnitOfMeasure) == 3

        source.tables["Units"] = list(sample_units)
        await orchestrator.run_sync("C1", SyncScope.UNITS, SyncMode.SNAPSHOT_UPSERT)

        assert active_unit_symbols(test_engine) == {"pcs", "kg", "m"}

    @pytest.mark.asyncio
    async def test_overwrite_keeps_failed_rows(self, orchestrator, source, sample_units, test_engine):
        """Test that a row that fails validation is not deactivated."""
        source.tables["Units"] = list(sample_units)
        await orchestrator.run_sync("C1", SyncScope.UNITS, SyncMode.SNAPSHOT_UPSERT)

        broken = dict(sample_units[2], symbol="")
        source.tables["Units"] = [sample_units[0], sample_units[1], broken]
        outcome = await orchestrator.run_sync("C1", SyncScope.UNITS, SyncMode.OVERWRITE)

        assert outcome.status == RunStatus.PARTIAL
        assert outcome.counters["UnitDeactivated"] == 0
        assert active_unit_symbols(test_engine) == {"pcs", "kg", "m"}

    @pytest.mark.asyncio
    async def test_empty_overwrite_skips_deactivation(self, orchestrator, source, sample_units, test_engine):
        """Test that an empty snapshot never wipes the local store."""
        source.tables["Units"] = sample_units
        await orchestrator.run_sync("C1", SyncScope.UNITS, SyncMode.SNAPSHOT_UPSERT)

        source.tables["Units"] = []
        outcome = await orchestrator.run_sync("C1", SyncScope.UNITS, SyncMode.OVERWRITE)

        assert outcome.status == RunStatus.FAILED
        assert outcome.error_count == 1
        assert len(active_unit_symbols(test_engine)) == 3
        with get_session(test_engine) as session:
            (error,) = SyncRunRepository(session).get_errors(outcome.run_id)
            assert error.message == (
                "Overwrite requested, but source returned 0 rows; deactivation skipped"
            )

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, orchestrator, source, sample_units, test_engine):
        """Test that a dry run reports counts but commits only the run record."""
        source.tables["Units"] = sample_units

        outcome = await orchestrator.run_sync(
            "C1", SyncScope.UNITS, SyncMode.OVERWRITE, dry_run=True
        )

        assert outcome.status == RunStatus.SUCCESS
        assert outcome.processed_count == 3
        assert outcome.counters["UnitDeactivated"] == 0
        assert count_rows(test_engine, UnitOfMeasure) == 0
        assert count_rows(test_engine, ExternalEntityLink) == 0
        assert cursor_key(test_engine, "Units") is None
        assert count_rows(test_engine, SyncRun, SyncRun.dry_run.is_(True)) == 1


class TestRunFailures:
    """Test non-recoverable failures."""

    @pytest.mark.asyncio
    async def test_unreachable_source(self, orchestrator, source, fake_provider, sample_units, test_engine):
        """Test that an unreachable source is retried and then fails the run."""
        fake_provider.reachable = False
        source.tables["Units"] = sample_units

        outcome = await orchestrator.run_sync("C1", SyncScope.UNITS)

        assert outcome.status == RunStatus.FAILED
        assert "not reachable" in outcome.error_message
        # One attempt plus max_retries
        assert fake_provider.test_calls == 3
        assert source.delta_calls == []
        with get_session(test_engine) as session:
            run = SyncRunRepository(session).get_by_id(outcome.run_id)
            assert run.status == "Failed"
            assert run.summary.startswith("Failed:")

    @pytest.mark.asyncio
    async def test_unknown_connection(self, orchestrator, fake_provider):
        """Test that an unknown connection fails the run without testing it."""
        outcome = await orchestrator.run_sync("nope", SyncScope.UNITS)

        assert outcome.status == RunStatus.FAILED
        assert "not found" in outcome.error_message
        assert fake_provider.test_calls == 0

    @pytest.mark.asyncio
    async def test_no_connection_id(self, orchestrator, test_engine):
        """Test that a missing connection id is rejected before a run is opened."""
        with pytest.raises(ConfigurationError):
            await orchestrator.run_sync(None, SyncScope.UNITS)

        assert count_rows(test_engine, SyncRun) == 0

    @pytest.mark.asyncio
    async def test_connection_id_from_settings(self, orchestrator, test_settings, source, sample_units):
        """Test that the configured connection is used by default."""
        test_settings.connection_id = "C1"
        source.tables["Units"] = sample_units

        outcome = await orchestrator.run_sync(None, SyncScope.UNITS)

        assert outcome.status == RunStatus.SUCCESS


class TestCancellation:
    """Test cooperative and task cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_event_stops_between_rows(self, orchestrator, source, sample_units, test_engine):
        """Test that setting the cancel event ends the run as Partial."""
        source.tables["Units"] = sample_units
        cancel_event = asyncio.Event()

        async def cancel_before_third(index: int) -> None:
            if index == 2:
                cancel_event.set()

        source.on_row = cancel_before_third

        outcome = await orchestrator.run_sync(
            "C1", SyncScope.UNITS, SyncMode.DELTA, cancel_event=cancel_event
        )

        assert outcome.status == RunStatus.PARTIAL
        assert outcome.processed_count == 2
        assert count_rows(test_engine, UnitOfMeasure) == 2
        assert cursor_key(test_engine, "Units") == "U2"

    @pytest.mark.asyncio
    async def test_cancel_event_before_first_row(self, orchestrator, source, sample_units):
        """Test that a run cancelled before any row is Failed."""
        source.tables["Units"] = sample_units
        cancel_event = asyncio.Event()
        cancel_event.set()

        outcome = await orchestrator.run_sync("C1", SyncScope.UNITS, cancel_event=cancel_event)

        assert outcome.status == RunStatus.FAILED
        assert outcome.processed_count == 0

    @pytest.mark.asyncio
    async def test_task_cancellation_completes_run(self, orchestrator, source, sample_units, test_engine):
        """Test that a cancelled task still leaves a completed run behind."""
        source.tables["Units"] = sample_units
        reached = asyncio.Event()

        async def block_on_second(index: int) -> None:
            if index == 1:
                reached.set()
                await asyncio.sleep(3600)

        source.on_row = block_on_second

        task = asyncio.create_task(orchestrator.run_sync("C1", SyncScope.UNITS))
        await reached.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert count_rows(test_engine, UnitOfMeasure) == 0
        assert cursor_key(test_engine, "Units") is None
        with get_session(test_engine) as session:
            (run,) = SyncRunRepository(session).get_all()
            assert run.status == "Failed"
            assert run.finished_at is not None
            assert run.summary.startswith("Cancelled")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("interrupt", [KeyboardInterrupt, SystemExit])
    async def test_interrupt_fails_run(self, orchestrator, source, sample_units, test_engine, interrupt):
        """Test that an interrupt mid-scope completes the run as Failed and propagates."""
        source.tables["Units"] = sample_units

        async def interrupt_before_third(index: int) -> None:
            if index == 2:
                raise interrupt()

        source.on_row = interrupt_before_third

        with pytest.raises(interrupt):
            await orchestrator.run_sync("C1", SyncScope.UNITS)

        assert count_rows(test_engine, UnitOfMeasure) == 0
        assert cursor_key(test_engine, "Units") is None
        with get_session(test_engine) as session:
            (run,) = SyncRunRepository(session).get_all()
            assert run.status == "Failed"
            assert run.finished_at is not None
            assert run.summary == f"Failed: Interrupted by {interrupt.__name__}"


class TestAllScopes:
    """Test runs that cover every scope."""

    @pytest.mark.asyncio
    async def test_all_runs_every_scope_in_order(self, orchestrator, source, full_dataset, test_engine):
        """Test that All reconciles every scope within one run."""
        source.tables = full_dataset

        outcome = await orchestrator.run_sync("C1", SyncScope.ALL, SyncMode.DELTA)

        assert outcome.status == RunStatus.SUCCESS
        assert outcome.processed_count == 16
        assert outcome.counters["Unit"] == 2
        assert outcome.counters["Counterparty"] == 2
        assert outcome.counters["Item"] == 2
        assert outcome.counters["Product"] == 1
        assert outcome.counters["BomLine"] == 2
        assert outcome.counters["CustomerOrder"] == 1
        assert [call[0] for call in source.delta_calls] == [
            "Units",
            "Currencies",
            "Manufacturers",
            "BodyTypes",
            "TechnicalParameters",
            "ParameterSets",
            "Symbols",
            "Providers",
            "Items",
            "Products",
            "Bom",
            "CustomerOrders",
        ]
        assert count_rows(test_engine, SyncRun) == 1
        assert count_rows(test_engine, Item) == 3
        assert cursor_key(test_engine, "Bom") == "2"

    @pytest.mark.asyncio
    async def test_suppliers_share_providers_cursor(self, orchestrator, source, full_dataset, test_engine):
        """Test that Suppliers advances the Providers cursor."""
        source.tables = full_dataset

        outcome = await orchestrator.run_sync("C1", SyncScope.SUPPLIERS)

        assert outcome.counters["Counterparty"] == 2
        assert cursor_key(test_engine, "Providers") == "2"

        again = await orchestrator.run_sync("C1", SyncScope.COUNTERPARTIES)
        assert again.processed_count == 0
        assert source.delta_calls[-1] == ("Providers", "2")


class TestManualTrigger:
    """Test run_now and status reporting."""

    @pytest.mark.asyncio
    async def test_run_now(self, orchestrator, source, sample_units, test_engine):
        """Test a manual trigger records the initiating user."""
        source.tables["Units"] = sample_units

        outcome = await orchestrator.run_now(
            RunSyncRequest(connection_id="C1", scope="Units", started_by_user_id="admin")
        )

        assert outcome.status == RunStatus.SUCCESS
        with get_session(test_engine) as session:
            run = SyncRunRepository(session).get_by_id(outcome.run_id)
            assert run.started_by_user_id == "admin"
            assert run.connection_id == "C1"

    @pytest.mark.asyncio
    async def test_run_now_honours_cancel_event(self, orchestrator, source, sample_units, test_engine):
        """Test a manual run stops between rows when its cancel event is set."""
        source.tables["Units"] = sample_units
        cancel_event = asyncio.Event()

        async def cancel_before_second(index: int) -> None:
            if index == 1:
                cancel_event.set()

        source.on_row = cancel_before_second

        outcome = await orchestrator.run_now(
            RunSyncRequest(connection_id="C1", scope="Units"), cancel_event=cancel_event
        )

        assert outcome.status == RunStatus.PARTIAL
        assert outcome.processed_count == 1
        assert count_rows(test_engine, UnitOfMeasure) == 1
        with get_session(test_engine) as session:
            run = SyncRunRepository(session).get_by_id(outcome.run_id)
            assert run.status == "Partial"
            assert run.summary.startswith("Cancelled")

    @pytest.mark.asyncio
    async def test_run_now_cancelled_before_start(self, orchestrator, source, sample_units):
        """Test a manual run cancelled before any row is Failed."""
        source.tables["Units"] = sample_units
        cancel_event = asyncio.Event()
        cancel_event.set()

        outcome = await orchestrator.run_now(RunSyncRequest(connection_id="C1", scope="Units"), cancel_event)

        assert outcome.status == RunStatus.FAILED
        assert outcome.processed_count == 0

    @pytest.mark.asyncio
    async def test_get_sync_status(self, orchestrator, source, sample_units):
        """Test status reports connectivity and the last successful run."""
        status = await orchestrator.get_sync_status("C1")
        assert status["is_connected"] is True
        assert status["scheduler_active"] is False
        assert status["last_successful"] is None

        source.tables["Units"] = sample_units
        outcome = await orchestrator.run_sync("C1", SyncScope.UNITS)

        status = await orchestrator.get_sync_status("C1")
        assert status["last_successful"]["run_id"] == outcome.run_id
        assert status["last_successful"]["processed_count"] == 3
