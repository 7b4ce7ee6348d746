"""Sync scopes, modes and run statuses."""

from enum import Enum

from c2sync.utils.exceptions import ConfigurationError


class SyncScope(str, Enum):
    """Entity domain reconciled by a run."""

    UNITS = "Units"
    COUNTERPARTIES = "Counterparties"
    SUPPLIERS = "Suppliers"
    ITEMS = "Items"
    PRODUCTS = "Products"
    MANUFACTURERS = "Manufacturers"
    BODY_TYPES = "BodyTypes"
    CURRENCIES = "Currencies"
    TECHNICAL_PARAMETERS = "TechnicalParameters"
    PARAMETER_SETS = "ParameterSets"
    SYMBOLS = "Symbols"
    BOM = "Bom"
    CUSTOMER_ORDERS = "CustomerOrders"
    ALL = "All"


class SyncMode(str, Enum):
    """How the source is read and how missing rows are treated."""

    DELTA = "Delta"
    SNAPSHOT_UPSERT = "SnapshotUpsert"
    OVERWRITE = "Overwrite"


class RunStatus(str, Enum):
    """Lifecycle state of a sync run."""

    RUNNING = "Running"
    SUCCESS = "Success"
    PARTIAL = "Partial"
    FAILED = "Failed"


# Reference data before the entities that point at it
ALL_SCOPES_ORDER: tuple[SyncScope, ...] = (
    SyncScope.UNITS,
    SyncScope.CURRENCIES,
    SyncScope.MANUFACTURERS,
    SyncScope.BODY_TYPES,
    SyncScope.TECHNICAL_PARAMETERS,
    SyncScope.PARAMETER_SETS,
    SyncScope.SYMBOLS,
    SyncScope.COUNTERPARTIES,
    SyncScope.ITEMS,
    SyncScope.PRODUCTS,
    SyncScope.BOM,
    SyncScope.CUSTOMER_ORDERS,
)

_SCOPE_EXPANSION: dict[SyncScope, tuple[SyncScope, ...]] = {
    SyncScope.ALL: ALL_SCOPES_ORDER,
    **{scope: (scope,) for scope in ALL_SCOPES_ORDER},
    SyncScope.SUPPLIERS: (SyncScope.SUPPLIERS,),
}


def expand_scope(scope: SyncScope) -> list[SyncScope]:
    """Expand a requested scope into the concrete scopes to run, in order.

    Raises:
        ConfigurationError: If the scope has no expansion.
    """
    try:
        return list(_SCOPE_EXPANSION[scope])
    except KeyError:
        raise ConfigurationError(f"Unsupported sync scope: {scope}") from None


def parse_scope(value: str) -> SyncScope:
    """Parse a scope name case-insensitively.

    Raises:
        ConfigurationError: If the name is not a known scope.
    """
    for scope in SyncScope:
        if scope.value.lower() == value.strip().lower():
            return scope
    raise ConfigurationError(f"Unknown sync scope: {value}")


def parse_mode(value: str) -> SyncMode:
    """Parse a mode name case-insensitively.

    Raises:
        ConfigurationError: If the name is not a known mode.
    """
    for mode in SyncMode:
        if mode.value.lower() == value.strip().lower():
            return mode
    raise ConfigurationError(f"Unknown sync mode: {value}")


def resolve_status(
    processed_count: int,
    error_count: int,
    cancelled: bool = False,
    failed: bool = False,
) -> RunStatus:
    """Derive the terminal status of a run from its outcome.

    Args:
        processed_count: Rows reconciled successfully.
        error_count: Recorded errors.
        cancelled: Whether the run was cancelled between rows.
        failed: Whether a non-recoverable exception ended the run.

    Returns:
        Success, Partial or Failed.
    """
    if failed:
        return RunStatus.FAILED
    if cancelled:
        return RunStatus.PARTIAL if processed_count > 0 else RunStatus.FAILED
    if error_count == 0:
        return RunStatus.SUCCESS
    return RunStatus.PARTIAL if processed_count > 0 else RunStatus.FAILED
