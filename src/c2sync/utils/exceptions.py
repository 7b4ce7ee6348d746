"""Custom exception hierarchy for the Component2020 sync engine."""


class SyncEngineError(Exception):
    """Base exception for all sync engine errors."""

    pass


class ConfigurationError(SyncEngineError):
    """Error in application configuration."""

    pass


class ConnectivityError(SyncEngineError):
    """Cannot reach or authenticate to the external source."""

    def __init__(self, message: str, connection_id: str | None = None) -> None:
        """Initialize connectivity error.

        Args:
            message: Error message.
            connection_id: Connection that failed, if known.
        """
        super().__init__(message)
        self.connection_id = connection_id


class ReconciliationError(SyncEngineError):
    """Bad or missing data in a single external row."""

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.details = details


class IntegrityViolationError(ReconciliationError):
    """An external key is already mapped to a different local entity."""

    pass


class DatabaseError(SyncEngineError):
    """Error with database operations."""

    pass


class RunAlreadyCompletedError(DatabaseError):
    """A sync run was completed more than once."""

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Sync run {run_id} is not running")
        self.run_id = run_id
