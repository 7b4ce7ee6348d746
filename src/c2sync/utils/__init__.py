"""Utility modules."""

from c2sync.utils.exceptions import (
    ConfigurationError,
    ConnectivityError,
    DatabaseError,
    IntegrityViolationError,
    ReconciliationError,
    RunAlreadyCompletedError,
    SyncEngineError,
)
from c2sync.utils.ordering import max_key, natural_key
from c2sync.utils.retry import RetryPolicy
from c2sync.utils.timeutil import as_utc, utcnow

__all__ = [
    "ConfigurationError",
    "ConnectivityError",
    "DatabaseError",
    "IntegrityViolationError",
    "ReconciliationError",
    "RetryPolicy",
    "RunAlreadyCompletedError",
    "SyncEngineError",
    "as_utc",
    "max_key",
    "natural_key",
    "utcnow",
]
