"""Sync strategies for catalog items (components and products)."""

from typing import Any

from c2sync.db.models.item import Item
from c2sync.sources.models import ComponentRow, ProductRow
from c2sync.sync.strategies.base import BaseSyncStrategy
from c2sync.sync.strategies.reference import ManufacturerSyncStrategy, UnitSyncStrategy

ITEM_KIND_COMPONENT = "Component"
ITEM_KIND_PRODUCT = "Product"


class ItemSyncStrategy(BaseSyncStrategy):
    """Sync strategy for purchased components."""

    data_type = "Item"
    entity_type = "Item"
    source_entity = "Items"
    external_entity = "Component"
    model = Item
    row_model = ComponentRow

    def map_row(self, row: ComponentRow) -> dict[str, Any]:
        unit_id = self.resolve_link(
            UnitSyncStrategy.entity_type, UnitSyncStrategy.external_entity, row.unit_id, "Unit"
        )
        manufacturer_id = self.resolve_link(
            ManufacturerSyncStrategy.entity_type,
            ManufacturerSyncStrategy.external_entity,
            row.manufacturer_id,
            "Manufacturer",
        )
        return {
            "kind": ITEM_KIND_COMPONENT,
            "code": row.code or row.part_number,
            "name": row.name,
            "description": row.description,
            "part_number": row.part_number,
            "unit_id": unit_id,
            "manufacturer_id": manufacturer_id,
        }


class ProductSyncStrategy(BaseSyncStrategy):
    """Sync strategy for manufactured products."""

    data_type = "Product"
    entity_type = "Item"
    source_entity = "Products"
    external_entity = "Product"
    model = Item
    row_model = ProductRow

    def map_row(self, row: ProductRow) -> dict[str, Any]:
        return {
            "kind": ITEM_KIND_PRODUCT,
            "code": row.part_number or row.name,
            "name": row.name,
            "description": row.description,
            "part_number": row.part_number,
        }
