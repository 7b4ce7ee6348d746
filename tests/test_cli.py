"""Tests for the command-line interface."""

import asyncio
import json
import os
import signal
import sys

import pytest
from click.testing import CliRunner

from c2sync.cli import cancel_on_interrupt, cli
from c2sync.config.settings import get_settings
from c2sync.db.engine import create_engine, get_session
from c2sync.db.repositories import SourceConnectionRepository, SyncRunRepository
from c2sync.sync.types import RunStatus, SyncMode, SyncScope


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Point the CLI at a temporary database and keep logging unconfigured."""
    monkeypatch.setenv("C2SYNC_DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setenv("C2SYNC_RETRY_DELAY", "0")
    monkeypatch.setenv("C2SYNC_MAX_RETRIES", "0")
    monkeypatch.delenv("C2SYNC_CONNECTION_ID", raising=False)
    monkeypatch.setattr("c2sync.config.logging.configure_logging", lambda settings: None)
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


def add_connection(runner, export_dir) -> str:
    result = runner.invoke(cli, ["connection", "add", "main", str(export_dir)])
    assert result.exit_code == 0, result.output
    engine = create_engine(get_settings())
    with get_session(engine) as session:
        connection_id = SourceConnectionRepository(session).get_by_name("main").id
    engine.dispose()
    return connection_id


@pytest.fixture
def export_dir(cli_env):
    directory = cli_env / "export"
    directory.mkdir()
    rows = [{"ID": 1, "Name": "Piece", "Symbol": "pcs"}, {"ID": 2, "Name": "Kilogram", "Symbol": ""}]
    (directory / "Units.jsonl").write_text("\n".join(json.dumps(r) for r in rows), encoding="utf-8")
    return directory


class TestCli:
    """Test CLI commands."""

    def test_init_db(self, runner, cli_env):
        """Test schema initialization."""
        result = runner.invoke(cli, ["init-db"])

        assert result.exit_code == 0
        assert "Database initialized successfully" in result.output

    def test_connection_add_and_list(self, runner, export_dir):
        """Test registering and listing connections."""
        add_connection(runner, export_dir)

        result = runner.invoke(cli, ["connection", "list"])
        assert result.exit_code == 0
        assert "Component2020 Connections" in result.output

        duplicate = runner.invoke(cli, ["connection", "add", "main", str(export_dir)])
        assert duplicate.exit_code == 1

    def test_connection_test(self, runner, export_dir):
        """Test the connection test command."""
        connection_id = add_connection(runner, export_dir)

        result = runner.invoke(cli, ["connection", "test", connection_id])

        assert result.exit_code == 0
        assert "Connection successful" in result.output

    def test_sync_partial_run(self, runner, export_dir):
        """Test a manual sync reports a partial run and its errors."""
        connection_id = add_connection(runner, export_dir)

        result = runner.invoke(
            cli, ["sync", "--scope", "Units", "--connection", connection_id, "--user", "admin"]
        )

        assert result.exit_code == 0, result.output
        assert "Partial" in result.output
        assert "processed=1 errors=1" in result.output

        engine = create_engine(get_settings())
        with get_session(engine) as session:
            runs, total = SyncRunRepository(session).list_runs()
            assert total == 1
            assert runs[0].started_by_user_id == "admin"
            run_id = runs[0].id
        engine.dispose()

        errors = runner.invoke(cli, ["errors", run_id, "--details"])
        assert errors.exit_code == 0
        assert "symbol" in errors.output

    def test_sync_without_connection_fails(self, runner, cli_env):
        """Test sync exits non-zero without a connection id."""
        result = runner.invoke(cli, ["sync", "--scope", "Units"])

        assert result.exit_code == 1
        assert "Sync failed" in result.output

    def test_sync_unknown_connection_fails(self, runner, cli_env):
        """Test a Failed run gives a non-zero exit code."""
        result = runner.invoke(cli, ["sync", "--scope", "Units", "--connection", "missing"])

        assert result.exit_code == 1
        assert "Failed" in result.output

    def test_errors_unknown_run(self, runner, cli_env):
        """Test showing errors for a missing run."""
        runner.invoke(cli, ["init-db"])

        result = runner.invoke(cli, ["errors", "nope"])

        assert result.exit_code == 1

    def test_schedule_commands(self, runner, cli_env):
        """Test adding, listing and disabling schedules."""
        result = runner.invoke(cli, ["schedule", "add", "nightly", "0 2 * * *", "--scope", "All"])
        assert result.exit_code == 0, result.output

        invalid = runner.invoke(cli, ["schedule", "add", "broken", "whenever"])
        assert invalid.exit_code == 1
        assert "Invalid schedule" in invalid.output

        listed = runner.invoke(cli, ["schedule", "list"])
        assert listed.exit_code == 0
        assert "Sync Schedules" in listed.output

        disabled = runner.invoke(cli, ["schedule", "disable", "nightly"])
        assert disabled.exit_code == 0
        assert "disabled" in disabled.output

    def test_reclaim_stale(self, runner, cli_env):
        """Test the watchdog command."""
        runner.invoke(cli, ["init-db"])

        result = runner.invoke(cli, ["reclaim-stale", "--minutes", "30"])

        assert result.exit_code == 0
        assert "Reclaimed 0 stale run(s)" in result.output


class TestCliHelpers:
    """Test CLI option choices and interrupt handling."""

    def test_choices_follow_enums(self):
        """Test scope, mode and status options accept exactly the enum values."""
        params = {p.name: p for p in cli.commands["sync"].params}
        runs_params = {p.name: p for p in cli.commands["runs"].params}

        assert list(params["scope"].type.choices) == [s.value for s in SyncScope]
        assert list(params["mode"].type.choices) == [m.value for m in SyncMode]
        assert list(runs_params["status_filter"].type.choices) == [s.value for s in RunStatus]

    def test_unknown_scope_rejected(self, runner, cli_env):
        """Test a scope outside the enum is a usage error."""
        result = runner.invoke(cli, ["sync", "--scope", "Widgets"])

        assert result.exit_code == 2

    @pytest.mark.skipif(sys.platform == "win32", reason="loop signal handlers need Unix")
    def test_sigint_sets_cancel_event(self):
        """Test Ctrl+C during a sync only requests cancellation."""
        loop = asyncio.new_event_loop()
        cancel_event = asyncio.Event()
        try:
            with cancel_on_interrupt(loop, cancel_event):
                loop.call_soon(os.kill, os.getpid(), signal.SIGINT)
                loop.run_until_complete(asyncio.wait_for(cancel_event.wait(), timeout=5))
        finally:
            loop.close()

        assert cancel_event.is_set()
