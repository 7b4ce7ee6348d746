"""Command-line interface for the Component2020 sync engine."""

import asyncio
import signal
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

import click
from rich.console import Console
from rich.table import Table

from c2sync.sync.types import RunStatus, SyncMode, SyncScope

console = Console()

SCOPE_CHOICES = [s.value for s in SyncScope]
MODE_CHOICES = [m.value for m in SyncMode]
STATUS_CHOICES = [s.value for s in RunStatus]

STATUS_STYLES = {
    "Success": "[green]Success[/green]",
    "Partial": "[yellow]Partial[/yellow]",
    "Failed": "[red]Failed[/red]",
    "Running": "[cyan]Running[/cyan]",
}


def get_event_loop() -> asyncio.AbstractEventLoop:
    """Get or create an event loop."""
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.new_event_loop()


def run_async(coro):
    """Run an async coroutine."""
    loop = get_event_loop()
    return loop.run_until_complete(coro)


@contextmanager
def cancel_on_interrupt(loop: asyncio.AbstractEventLoop, cancel_event: asyncio.Event) -> Iterator[None]:
    """Turn Ctrl+C into a request to stop between rows.

    The running sync sees ``cancel_event`` and completes its run as
    Partial or Failed instead of being torn down mid-row.
    """

    def request_cancel() -> None:
        console.print("\n[yellow]Cancelling after the current row...[/yellow]")
        cancel_event.set()

    try:
        loop.add_signal_handler(signal.SIGINT, request_cancel)
        installed = True
    except (NotImplementedError, RuntimeError):
        # No loop signal support (Windows, or not the main thread)
        installed = False

    try:
        yield
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


def load_settings(config_path: str | None = None):
    """Load and validate settings.

    Args:
        config_path: Optional path to .env file.

    Returns:
        Validated Settings object.
    """
    from c2sync.config.logging import configure_logging
    from c2sync.config.settings import Settings, get_settings

    # Clear cached settings to pick up new env file
    get_settings.cache_clear()

    try:
        settings = Settings(_env_file=config_path) if config_path else get_settings()
        configure_logging(settings)
        return settings
    except Exception as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        console.print("\n[yellow]Hint:[/yellow] Set C2SYNC_DATABASE_URL and C2SYNC_CONNECTION_ID in a .env file")
        raise SystemExit(1) from None


def build_orchestrator(settings):
    """Create the engine and an orchestrator wired to the export readers.

    Returns:
        Tuple of (engine, orchestrator).
    """
    from c2sync.db.engine import create_engine, create_tables
    from c2sync.sources.connection import DatabaseConnectionProvider
    from c2sync.sources.export import ExportDeltaReader, ExportSnapshotReader
    from c2sync.sync.orchestrator import SyncOrchestrator

    engine = create_engine(settings)
    create_tables(engine)  # Ensure tables exist

    orchestrator = SyncOrchestrator(
        engine=engine,
        settings=settings,
        connection_provider=DatabaseConnectionProvider(engine),
        snapshot_reader=ExportSnapshotReader(),
        delta_reader=ExportDeltaReader(),
    )
    return engine, orchestrator


def format_dt(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    help="Path to .env configuration file",
)
@click.pass_context
def cli(ctx: click.Context, config: str | None) -> None:
    """Component2020 Sync - Reconcile legacy Component2020 data into the local store."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config


@cli.command()
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Initialize the database schema."""
    from c2sync.config.logging import get_logger
    from c2sync.db.engine import create_engine, create_tables

    settings = load_settings(ctx.obj.get("config_path"))
    logger = get_logger(__name__)

    console.print("[bold]Initializing database...[/bold]")

    try:
        engine = create_engine(settings)
        create_tables(engine)
        console.print("[green]Database initialized successfully![/green]")
        logger.info("Database initialized", url=settings.database_url)
    except Exception as e:
        console.print(f"[red]Failed to initialize database:[/red] {e}")
        logger.error("Database initialization failed", error=str(e))
        raise SystemExit(1) from None


@cli.group()
def connection() -> None:
    """Manage Component2020 source connections."""
    pass


@connection.command("add")
@click.argument("name")
@click.argument("source_path", type=click.Path(file_okay=False))
@click.option("--login", help="Database login")
@click.option("--password", help="Database password")
@click.pass_context
def connection_add(
    ctx: click.Context, name: str, source_path: str, login: str | None, password: str | None
) -> None:
    """Register a connection to a Component2020 export directory."""
    from c2sync.db.engine import create_engine, create_tables, get_session
    from c2sync.db.models.connection import SourceConnection
    from c2sync.db.repositories.connection import SourceConnectionRepository

    settings = load_settings(ctx.obj.get("config_path"))
    engine = create_engine(settings)
    create_tables(engine)

    with get_session(engine) as session:
        repo = SourceConnectionRepository(session)
        if repo.get_by_name(name) is not None:
            console.print(f"[red]Connection {name!r} already exists[/red]")
            raise SystemExit(1)
        conn = repo.add(
            SourceConnection(name=name, source_path=source_path, login=login, password=password)
        )
        connection_id = conn.id

    console.print(f"[green]Connection added:[/green] {connection_id}")


@connection.command("list")
@click.pass_context
def connection_list(ctx: click.Context) -> None:
    """List configured connections."""
    from c2sync.db.engine import create_engine, get_session
    from c2sync.db.repositories.connection import SourceConnectionRepository

    settings = load_settings(ctx.obj.get("config_path"))
    engine = create_engine(settings)

    with get_session(engine) as session:
        connections = SourceConnectionRepository(session).list_all()

        if not connections:
            console.print("[yellow]No connections configured. Run 'c2sync connection add' first.[/yellow]")
            return

        table = Table(title="Component2020 Connections")
        table.add_column("ID", style="cyan")
        table.add_column("Name", style="green")
        table.add_column("Source Path")
        table.add_column("Active")
        table.add_column("Last Tested")
        table.add_column("Last Result")

        for conn in connections:
            table.add_row(
                conn.id,
                conn.name,
                conn.source_path,
                "yes" if conn.is_active else "no",
                format_dt(conn.last_tested_at),
                conn.last_test_message or "-",
            )

    console.print(table)


@connection.command("test")
@click.argument("connection_id", required=False)
@click.pass_context
def connection_test(ctx: click.Context, connection_id: str | None) -> None:
    """Test that a connection's source is reachable."""
    from c2sync.sources.connection import DatabaseConnectionProvider
    from c2sync.utils.exceptions import ConnectivityError

    settings = load_settings(ctx.obj.get("config_path"))
    connection_id = connection_id or settings.connection_id
    if not connection_id:
        console.print("[red]No connection id given and C2SYNC_CONNECTION_ID is not set[/red]")
        raise SystemExit(1)

    engine, _ = build_orchestrator(settings)

    try:
        ok = run_async(DatabaseConnectionProvider(engine).test_connection(connection_id))
    except ConnectivityError as e:
        console.print(f"[red]Connection test failed:[/red] {e}")
        raise SystemExit(1) from None

    if ok:
        console.print("[green]Connection successful[/green]")
    else:
        console.print("[red]Connection unreachable[/red]")
        raise SystemExit(1)


@cli.command()
@click.option("--scope", "-s", type=click.Choice(SCOPE_CHOICES), default="All", help="Scope to synchronize")
@click.option("--mode", "-m", type=click.Choice(MODE_CHOICES), default="Delta", help="Sync mode")
@click.option("--dry-run", is_flag=True, help="Compute changes without writing them")
@click.option("--connection", "connection_id", help="Connection id (defaults to C2SYNC_CONNECTION_ID)")
@click.option("--user", "user_id", help="Initiating user id recorded on the run")
@click.pass_context
def sync(
    ctx: click.Context,
    scope: str,
    mode: str,
    dry_run: bool,
    connection_id: str | None,
    user_id: str | None,
) -> None:
    """Run a synchronization now."""
    from c2sync.config.logging import get_logger
    from c2sync.sync.orchestrator import RunSyncRequest

    settings = load_settings(ctx.obj.get("config_path"))
    logger = get_logger(__name__)

    label = f"{scope} / {mode}" + (" (dry run)" if dry_run else "")
    console.print(f"[bold]Starting sync: {label}...[/bold]")

    try:
        _, orchestrator = build_orchestrator(settings)
        request = RunSyncRequest(
            connection_id=connection_id,
            scope=scope,
            mode=mode,
            dry_run=dry_run,
            started_by_user_id=user_id,
        )
        loop = get_event_loop()
        cancel_event = asyncio.Event()
        with cancel_on_interrupt(loop, cancel_event):
            outcome = loop.run_until_complete(orchestrator.run_now(request, cancel_event))
    except Exception as e:
        console.print(f"[red]Sync failed:[/red] {e}")
        logger.error("Sync failed", error=str(e))
        raise SystemExit(1) from None

    table = Table(title=f"Run {outcome.run_id}")
    table.add_column("Counter", style="cyan")
    table.add_column("Value", justify="right")
    for name, value in sorted(outcome.counters.items()):
        table.add_row(name, str(value))
    console.print(table)

    console.print(
        f"\n[bold]Status:[/bold] {STATUS_STYLES.get(outcome.status.value, outcome.status.value)}  "
        f"processed={outcome.processed_count} errors={outcome.error_count}"
    )
    if outcome.error_message:
        console.print(f"[red]Error:[/red] {outcome.error_message}")
    if outcome.error_count:
        console.print(f"Run 'c2sync errors {outcome.run_id}' for details.")

    if outcome.status.value == "Failed":
        raise SystemExit(1)


@cli.command()
@click.option("--since", type=click.DateTime(), help="Only runs started on or after this date")
@click.option("--status", "status_filter", type=click.Choice(STATUS_CHOICES), help="Filter by status")
@click.option("--page", type=int, default=1, show_default=True, help="Page number")
@click.option("--page-size", type=int, default=20, show_default=True, help="Runs per page")
@click.pass_context
def runs(
    ctx: click.Context,
    since: datetime | None,
    status_filter: str | None,
    page: int,
    page_size: int,
) -> None:
    """List sync runs, newest first."""
    from c2sync.db.engine import create_engine, get_session
    from c2sync.db.repositories.sync_run import SyncRunRepository
    from c2sync.utils.timeutil import as_utc

    settings = load_settings(ctx.obj.get("config_path"))
    engine = create_engine(settings)

    with get_session(engine) as session:
        items, total = SyncRunRepository(session).list_runs(
            since=as_utc(since), status=status_filter, page=page, page_size=page_size
        )

        if not items:
            console.print("[yellow]No sync runs found.[/yellow]")
            return

        table = Table(title=f"Sync Runs (page {page}, {total} total)")
        table.add_column("Run ID", style="cyan")
        table.add_column("Started")
        table.add_column("Finished")
        table.add_column("Scope")
        table.add_column("Mode")
        table.add_column("Status")
        table.add_column("Processed", justify="right")
        table.add_column("Errors", justify="right")

        for run in items:
            mode = run.mode + (" (dry)" if run.dry_run else "")
            table.add_row(
                run.id,
                format_dt(run.started_at),
                format_dt(run.finished_at),
                run.scope,
                mode,
                STATUS_STYLES.get(run.status, run.status),
                str(run.processed_count),
                str(run.error_count),
            )

    console.print(table)


@cli.command()
@click.argument("run_id")
@click.option("--details", is_flag=True, help="Show error details")
@click.pass_context
def errors(ctx: click.Context, run_id: str, details: bool) -> None:
    """Show the errors recorded for a run."""
    from c2sync.db.engine import create_engine, get_session
    from c2sync.db.repositories.sync_run import SyncRunRepository

    settings = load_settings(ctx.obj.get("config_path"))
    engine = create_engine(settings)

    with get_session(engine) as session:
        repo = SyncRunRepository(session)
        run = repo.get_by_id(run_id)
        if run is None:
            console.print(f"[red]Run {run_id} not found[/red]")
            raise SystemExit(1)

        console.print(f"[bold]Run {run.id}[/bold] {run.scope}/{run.mode}: {run.summary or run.status}")
        run_errors = repo.get_errors(run_id)

        if not run_errors:
            console.print("[green]No errors recorded.[/green]")
            return

        table = Table()
        table.add_column("Time")
        table.add_column("Entity")
        table.add_column("Source")
        table.add_column("Key", style="cyan")
        table.add_column("Message")

        for error in run_errors:
            table.add_row(
                format_dt(error.created_at),
                error.entity_type,
                error.external_entity or "-",
                error.external_key or "-",
                error.message,
            )
        console.print(table)

        if details:
            for error in run_errors:
                if error.details:
                    console.print(f"\n[bold]{error.external_key or error.entity_type}[/bold]")
                    console.print(error.details, markup=False)


@cli.command()
@click.option("--connection", "connection_id", help="Connection id (defaults to C2SYNC_CONNECTION_ID)")
@click.pass_context
def status(ctx: click.Context, connection_id: str | None) -> None:
    """Show connectivity, scheduler and last successful run."""
    from c2sync.config.logging import get_logger

    settings = load_settings(ctx.obj.get("config_path"))
    logger = get_logger(__name__)

    try:
        _, orchestrator = build_orchestrator(settings)
        info = run_async(orchestrator.get_sync_status(connection_id))
    except Exception as e:
        console.print(f"[red]Failed to get status:[/red] {e}")
        logger.error("Status check failed", error=str(e))
        raise SystemExit(1) from None

    table = Table(title="Component2020 Sync Status")
    table.add_column("Item", style="cyan")
    table.add_column("Value")

    table.add_row("Connection", info["connection_id"] or "-")
    table.add_row("Connected", "[green]yes[/green]" if info["is_connected"] else "[red]no[/red]")
    table.add_row("Scheduler active", "yes" if info["scheduler_active"] else "no")

    last = info["last_successful"]
    if last:
        table.add_row("Last successful run", last["run_id"])
        table.add_row("Last successful scope", f"{last['scope']} / {last['mode']}")
        table.add_row("Last successful finish", format_dt(last["finished_at"]))
    else:
        table.add_row("Last successful run", "-")

    console.print(table)


@cli.group()
def schedule() -> None:
    """Manage recurring sync schedules."""
    pass


def _build_scheduler(settings):
    from c2sync.sync.scheduler import SyncScheduler

    engine, orchestrator = build_orchestrator(settings)
    return SyncScheduler(engine, settings, orchestrator)


@schedule.command("add")
@click.argument("name")
@click.argument("cron_expression")
@click.option("--scope", "-s", type=click.Choice(SCOPE_CHOICES), default="All", help="Scope to synchronize")
@click.option("--mode", "-m", type=click.Choice(MODE_CHOICES), default="Delta", help="Sync mode")
@click.option("--connection", "connection_id", help="Connection id (defaults to C2SYNC_CONNECTION_ID)")
@click.option("--inactive", is_flag=True, help="Create the schedule disabled")
@click.pass_context
def schedule_add(
    ctx: click.Context,
    name: str,
    cron_expression: str,
    scope: str,
    mode: str,
    connection_id: str | None,
    inactive: bool,
) -> None:
    """Create a schedule, e.g. c2sync schedule add nightly "0 2 * * *"."""
    from c2sync.utils.exceptions import ConfigurationError

    settings = load_settings(ctx.obj.get("config_path"))
    scheduler = _build_scheduler(settings)

    try:
        created = scheduler.add_schedule(
            name=name,
            cron_expression=cron_expression,
            scope=scope,
            mode=mode,
            connection_id=connection_id,
            is_active=not inactive,
        )
    except ConfigurationError as e:
        console.print(f"[red]Invalid schedule:[/red] {e}")
        raise SystemExit(1) from None

    console.print(f"[green]Schedule added:[/green] {created.id} next run {format_dt(created.next_run_at)}")


@schedule.command("list")
@click.pass_context
def schedule_list(ctx: click.Context) -> None:
    """List schedules."""
    settings = load_settings(ctx.obj.get("config_path"))
    schedules = _build_scheduler(settings).list_schedules()

    if not schedules:
        console.print("[yellow]No schedules defined.[/yellow]")
        return

    table = Table(title="Sync Schedules")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Cron")
    table.add_column("Scope")
    table.add_column("Mode")
    table.add_column("Active")
    table.add_column("Last Run")
    table.add_column("Next Run")

    for item in schedules:
        table.add_row(
            item.id,
            item.name,
            item.cron_expression,
            item.scope,
            item.mode,
            "yes" if item.is_active else "no",
            format_dt(item.last_run_at),
            format_dt(item.next_run_at),
        )

    console.print(table)


@schedule.command("enable")
@click.argument("schedule_id")
@click.pass_context
def schedule_enable(ctx: click.Context, schedule_id: str) -> None:
    """Enable a schedule (by id or name)."""
    _set_schedule_active(ctx, schedule_id, True)


@schedule.command("disable")
@click.argument("schedule_id")
@click.pass_context
def schedule_disable(ctx: click.Context, schedule_id: str) -> None:
    """Disable a schedule (by id or name)."""
    _set_schedule_active(ctx, schedule_id, False)


def _set_schedule_active(ctx: click.Context, schedule_id: str, active: bool) -> None:
    from c2sync.utils.exceptions import ConfigurationError

    settings = load_settings(ctx.obj.get("config_path"))
    try:
        updated = _build_scheduler(settings).set_schedule_active(schedule_id, active)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1) from None

    state = "enabled" if active else "disabled"
    console.print(f"[green]Schedule {updated.name} {state}[/green] next run {format_dt(updated.next_run_at)}")


@cli.command()
@click.option("--once", is_flag=True, help="Run a single tick and exit")
@click.pass_context
def scheduler(ctx: click.Context, once: bool) -> None:
    """Run the background scheduler loop."""
    from c2sync.config.logging import get_logger

    settings = load_settings(ctx.obj.get("config_path"))
    logger = get_logger(__name__)
    sync_scheduler = _build_scheduler(settings)

    if once:
        try:
            result = run_async(sync_scheduler.tick())
        except Exception as e:
            console.print(f"[red]Scheduler tick failed:[/red] {e}")
            logger.error("Scheduler tick failed", error=str(e))
            raise SystemExit(1) from None
        console.print(
            f"Due: {result.due}, claimed: {result.claimed}, reclaimed stale runs: {result.reclaimed_runs}"
        )
        for outcome in result.outcomes:
            console.print(f"  {outcome.run_id}: {STATUS_STYLES.get(outcome.status.value, outcome.status.value)}")
        return

    console.print(
        f"[bold]Scheduler running[/bold] (polling every {settings.scheduler_poll_seconds}s, Ctrl+C to stop)"
    )
    try:
        run_async(sync_scheduler.run_forever())
    except KeyboardInterrupt:
        console.print("\n[yellow]Scheduler stopped[/yellow]")


@cli.command("reclaim-stale")
@click.option("--minutes", type=int, help="Stale threshold (defaults to C2SYNC_STALE_RUN_TIMEOUT_MINUTES)")
@click.pass_context
def reclaim_stale(ctx: click.Context, minutes: int | None) -> None:
    """Mark runs stuck in Running as Failed."""
    settings = load_settings(ctx.obj.get("config_path"))
    if minutes is not None:
        settings = settings.model_copy(update={"stale_run_timeout_minutes": minutes})

    reclaimed = _build_scheduler(settings).reclaim_stale()
    console.print(f"Reclaimed {reclaimed} stale run(s)")


if __name__ == "__main__":
    cli()
