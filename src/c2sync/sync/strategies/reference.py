"""Sync strategies for reference tables."""

from typing import Any

from c2sync.db.models.reference import BodyType, Currency, Manufacturer, Symbol, UnitOfMeasure
from c2sync.sources.models import BodyTypeRow, CurrencyRow, ManufacturerRow, SymbolRow, UnitRow
from c2sync.sync.strategies.base import BaseSyncStrategy


class UnitSyncStrategy(BaseSyncStrategy):
    """Sync strategy for units of measure."""

    data_type = "Unit"
    entity_type = "UnitOfMeasure"
    source_entity = "Units"
    external_entity = "Unit"
    model = UnitOfMeasure
    row_model = UnitRow

    def map_row(self, row: UnitRow) -> dict[str, Any]:
        return {
            "name": row.name or row.symbol or row.id,
            "symbol": row.symbol,
            "code": row.code,
        }


class CurrencySyncStrategy(BaseSyncStrategy):
    """Sync strategy for currencies."""

    data_type = "Currency"
    entity_type = "Currency"
    source_entity = "Currencies"
    external_entity = "Curr"
    model = Currency
    row_model = CurrencyRow

    def map_row(self, row: CurrencyRow) -> dict[str, Any]:
        return {
            "code": row.code.upper() if row.code else None,
            "name": row.name or row.code or row.id,
            "symbol": row.symbol,
            "rate": row.rate,
        }


class ManufacturerSyncStrategy(BaseSyncStrategy):
    """Sync strategy for manufacturers."""

    data_type = "Manufacturer"
    entity_type = "Manufacturer"
    source_entity = "Manufacturers"
    external_entity = "Manufact"
    model = Manufacturer
    row_model = ManufacturerRow

    def map_row(self, row: ManufacturerRow) -> dict[str, Any]:
        return {
            "name": row.name,
            "full_name": row.full_name,
            "site": row.site,
            "note": row.note,
        }


class BodyTypeSyncStrategy(BaseSyncStrategy):
    """Sync strategy for component body types."""

    data_type = "BodyType"
    entity_type = "BodyType"
    source_entity = "BodyTypes"
    external_entity = "Body"
    model = BodyType
    row_model = BodyTypeRow

    def map_row(self, row: BodyTypeRow) -> dict[str, Any]:
        return {
            "name": row.name,
            "description": row.description,
            "pins": row.pins,
            "smt": row.smt,
            "footprint_path": row.foot_print_path,
            "footprint_ref": row.footprint_ref,
        }


class SymbolSyncStrategy(BaseSyncStrategy):
    """Sync strategy for schematic symbols."""

    data_type = "Symbol"
    entity_type = "Symbol"
    source_entity = "Symbols"
    external_entity = "Symbol"
    model = Symbol
    row_model = SymbolRow

    def map_row(self, row: SymbolRow) -> dict[str, Any]:
        return {
            "name": row.name,
            "symbol": row.symbol,
            "library_path": row.library_path,
            "library_ref": row.library_ref,
        }
