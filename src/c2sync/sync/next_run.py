"""Next-run computation for sync schedules."""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from croniter import croniter

from c2sync.config.settings import Settings
from c2sync.utils.exceptions import ConfigurationError
from c2sync.utils.timeutil import as_utc


class NextRunStrategy(ABC):
    """Computes a schedule's next occurrence."""

    @abstractmethod
    def validate(self, expression: str) -> None:
        """Raise ConfigurationError if the expression cannot be scheduled."""
        pass

    @abstractmethod
    def next_run(self, expression: str, after: datetime) -> datetime:
        """Get the first occurrence strictly after ``after`` (UTC)."""
        pass

    def __call__(self, expression: str, after: datetime) -> datetime:
        return self.next_run(expression, after)


class CronNextRun(NextRunStrategy):
    """Standard five-field cron expressions evaluated in UTC."""

    def validate(self, expression: str) -> None:
        if not croniter.is_valid(expression):
            raise ConfigurationError(f"Invalid cron expression: {expression!r}")

    def next_run(self, expression: str, after: datetime) -> datetime:
        self.validate(expression)
        return as_utc(croniter(expression, as_utc(after)).get_next(datetime))  # type: ignore[return-value]


class IntervalNextRun(NextRunStrategy):
    """Fixed interval after the previous run; the expression is ignored."""

    def __init__(self, interval: timedelta) -> None:
        if interval <= timedelta(0):
            raise ConfigurationError("Schedule interval must be positive")
        self.interval = interval

    def validate(self, expression: str) -> None:
        pass

    def next_run(self, expression: str, after: datetime) -> datetime:
        return as_utc(after) + self.interval  # type: ignore[operator]


def get_next_run_strategy(settings: Settings) -> NextRunStrategy:
    """Build the next-run strategy selected in settings."""
    if settings.schedule_strategy == "interval":
        return IntervalNextRun(timedelta(minutes=settings.schedule_interval_minutes))
    return CronNextRun()
