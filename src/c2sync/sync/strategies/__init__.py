"""Sync strategies for each sync scope."""

from c2sync.sync.strategies.base import BaseSyncStrategy
from c2sync.sync.strategies.bom import BomSyncStrategy
from c2sync.sync.strategies.counterparties import CounterpartySyncStrategy
from c2sync.sync.strategies.customer_orders import CustomerOrderSyncStrategy
from c2sync.sync.strategies.items import ItemSyncStrategy, ProductSyncStrategy
from c2sync.sync.strategies.parameters import (
    ParameterSetSyncStrategy,
    TechnicalParameterSyncStrategy,
)
from c2sync.sync.strategies.reference import (
    BodyTypeSyncStrategy,
    CurrencySyncStrategy,
    ManufacturerSyncStrategy,
    SymbolSyncStrategy,
    UnitSyncStrategy,
)
from c2sync.sync.types import SyncScope
from c2sync.utils.exceptions import ConfigurationError

STRATEGIES: dict[SyncScope, type[BaseSyncStrategy]] = {
    SyncScope.UNITS: UnitSyncStrategy,
    SyncScope.CURRENCIES: CurrencySyncStrategy,
    SyncScope.MANUFACTURERS: ManufacturerSyncStrategy,
    SyncScope.BODY_TYPES: BodyTypeSyncStrategy,
    SyncScope.TECHNICAL_PARAMETERS: TechnicalParameterSyncStrategy,
    SyncScope.PARAMETER_SETS: ParameterSetSyncStrategy,
    SyncScope.SYMBOLS: SymbolSyncStrategy,
    SyncScope.COUNTERPARTIES: CounterpartySyncStrategy,
    # Suppliers live in the same Providers table
    SyncScope.SUPPLIERS: CounterpartySyncStrategy,
    SyncScope.ITEMS: ItemSyncStrategy,
    SyncScope.PRODUCTS: ProductSyncStrategy,
    SyncScope.BOM: BomSyncStrategy,
    SyncScope.CUSTOMER_ORDERS: CustomerOrderSyncStrategy,
}


def get_strategy_class(scope: SyncScope) -> type[BaseSyncStrategy]:
    """Get the strategy class for a concrete scope.

    Raises:
        ConfigurationError: If the scope has no strategy (e.g. ``All``).
    """
    try:
        return STRATEGIES[scope]
    except KeyError:
        raise ConfigurationError(f"No sync strategy for scope {scope.value}") from None


__all__ = [
    "STRATEGIES",
    "BaseSyncStrategy",
    "BodyTypeSyncStrategy",
    "BomSyncStrategy",
    "CounterpartySyncStrategy",
    "CurrencySyncStrategy",
    "CustomerOrderSyncStrategy",
    "ItemSyncStrategy",
    "ManufacturerSyncStrategy",
    "ParameterSetSyncStrategy",
    "ProductSyncStrategy",
    "SymbolSyncStrategy",
    "TechnicalParameterSyncStrategy",
    "UnitSyncStrategy",
    "get_strategy_class",
]
