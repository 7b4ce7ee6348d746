"""Logging configuration using structlog, with run context and operation timing."""

import asyncio
import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog

from c2sync.config.settings import Settings


class OperationTimer:
    """Context manager that logs the start, outcome and duration of an operation.

    Context added with :meth:`add` while the operation runs is included in
    the final event, so counts known only at the end can be reported.
    """

    def __init__(self, operation_name: str, logger: Any = None, **context: Any) -> None:
        """Initialize timer.

        Args:
            operation_name: Name of the operation being timed.
            logger: Optional logger to use.
            **context: Key/value pairs logged with every event.
        """
        self.operation_name = operation_name
        self.logger = logger or structlog.get_logger()
        self.context = context
        self.started_at: float | None = None
        self.finished_at: float | None = None

    def add(self, **context: Any) -> None:
        """Attach context to the completion event."""
        self.context.update(context)

    def __enter__(self) -> "OperationTimer":
        self.started_at = time.monotonic()
        self.logger.info(f"Starting {self.operation_name}", operation=self.operation_name, **self.context)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.finished_at = time.monotonic()
        fields = {
            "operation": self.operation_name,
            "duration_seconds": round(self.duration, 3),
            **self.context,
        }

        if exc_type is None:
            self.logger.info(f"Completed {self.operation_name}", **fields)
        elif issubclass(exc_type, asyncio.CancelledError):
            self.logger.warning(f"Cancelled {self.operation_name}", **fields)
        else:
            self.logger.error(f"Failed {self.operation_name}", error=str(exc_val), **fields)

    @property
    def duration(self) -> float:
        """Elapsed seconds, up to now if still running."""
        if self.started_at is None:
            return 0.0
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return end - self.started_at


@contextmanager
def run_context(**context: Any) -> Iterator[None]:
    """Bind key/value pairs to every log event emitted inside the block.

    Uses structlog contextvars, so the binding follows the current asyncio
    task and is undone on exit.
    """
    tokens = structlog.contextvars.bind_contextvars(**context)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)


def _build_handlers(settings: Settings, level: int) -> list[logging.Handler]:
    # Console always, rotating file when configured
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                filename=log_path,
                maxBytes=settings.log_max_bytes,
                backupCount=settings.log_backup_count,
            )
        )

    for handler in handlers:
        handler.setLevel(level)
    return handlers


def _build_processors(json_output: bool) -> list[structlog.types.Processor]:
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
    ]
    if json_output:
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    return processors


def configure_logging(settings: Settings) -> None:
    """Configure structlog and standard logging.

    Output is coloured on a terminal and JSON otherwise (services, cron).

    Args:
        settings: Application settings containing logging configuration.
    """
    level = getattr(logging, settings.log_level)

    logging.basicConfig(
        level=level,
        handlers=_build_handlers(settings, level),
        format="%(message)s",
        force=True,
    )

    structlog.configure(
        processors=_build_processors(json_output=not sys.stdout.isatty()),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, typically with ``__name__``."""
    return structlog.get_logger(name)
