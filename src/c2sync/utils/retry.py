"""Retry policy with exponential backoff for transient source failures."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import structlog

from c2sync.config.settings import Settings
from c2sync.utils.exceptions import ConnectivityError

T = TypeVar("T")

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how patiently an operation is retried.

    Attributes:
        max_retries: Retries after the first attempt.
        base_delay: Delay before the first retry; doubles each time.
        max_delay: Upper bound for a single delay.
        retry_on: Exception types considered transient.
    """

    max_retries: int = 3
    base_delay: float = 2.0
    max_delay: float = 60.0
    retry_on: tuple[type[Exception], ...] = (ConnectivityError,)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(max_retries=settings.max_retries, base_delay=settings.retry_delay)

    def delay_for(self, attempt: int) -> float:
        """Delay in seconds before retry number ``attempt`` (0-based)."""
        return min(self.base_delay * (2**attempt), self.max_delay)

    async def call(
        self,
        func: Callable[[], Awaitable[T]],
        operation: str,
        **context: Any,
    ) -> T:
        """Await ``func`` until it succeeds or the retries are used up.

        Args:
            func: Zero-argument coroutine factory.
            operation: Name used in log events.
            **context: Extra key/value pairs for log events.

        Returns:
            Whatever ``func`` returned.

        Raises:
            Exception: The last transient error once retries are exhausted,
                or any non-transient error immediately.
        """
        attempt = 0
        while True:
            try:
                return await func()
            except self.retry_on as e:
                if attempt >= self.max_retries:
                    logger.error(
                        "Giving up after retries",
                        operation=operation,
                        attempts=attempt + 1,
                        error=str(e),
                        **context,
                    )
                    raise

                delay = self.delay_for(attempt)
                logger.warning(
                    "Transient failure, retrying",
                    operation=operation,
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                    delay=delay,
                    error=str(e),
                    **context,
                )
                await asyncio.sleep(delay)
                attempt += 1
