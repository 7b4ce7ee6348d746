"""Database models for the Component2020 sync engine."""

from c2sync.db.models.connection import SourceConnection
from c2sync.db.models.counterparty import Counterparty
from c2sync.db.models.customer_order import CustomerOrder
from c2sync.db.models.external_link import ExternalEntityLink
from c2sync.db.models.item import BomLine, Item
from c2sync.db.models.reference import (
    BodyType,
    Currency,
    Manufacturer,
    ParameterSet,
    Symbol,
    TechnicalParameter,
    UnitOfMeasure,
)
from c2sync.db.models.sync_cursor import SyncCursor
from c2sync.db.models.sync_run import SyncError, SyncRun
from c2sync.db.models.sync_schedule import SyncSchedule

__all__ = [
    "BodyType",
    "BomLine",
    "Counterparty",
    "Currency",
    "CustomerOrder",
    "ExternalEntityLink",
    "Item",
    "Manufacturer",
    "ParameterSet",
    "SourceConnection",
    "Symbol",
    "SyncCursor",
    "SyncError",
    "SyncRun",
    "SyncSchedule",
    "TechnicalParameter",
    "UnitOfMeasure",
]
