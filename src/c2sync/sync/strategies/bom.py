"""Bill-of-materials sync strategy."""

from typing import Any

from c2sync.db.models.item import BomLine
from c2sync.sources.models import BomRow
from c2sync.sync.strategies.base import BaseSyncStrategy
from c2sync.sync.strategies.items import ItemSyncStrategy, ProductSyncStrategy
from c2sync.utils.exceptions import ReconciliationError


class BomSyncStrategy(BaseSyncStrategy):
    """Sync strategy for BOM lines.

    Both the parent product and the component must already be synchronized.
    """

    data_type = "BomLine"
    entity_type = "BomLine"
    source_entity = "Bom"
    external_entity = "Bom"
    model = BomLine
    row_model = BomRow

    def map_row(self, row: BomRow) -> dict[str, Any]:
        parent_item_id = self.resolve_link(
            ProductSyncStrategy.entity_type,
            ProductSyncStrategy.external_entity,
            row.product_id,
            "Product",
        )
        component_item_id = self.resolve_link(
            ItemSyncStrategy.entity_type,
            ItemSyncStrategy.external_entity,
            row.component_id,
            "Component",
        )
        if parent_item_id is None or component_item_id is None:
            raise ReconciliationError("BOM line requires both a product and a component")
        if parent_item_id == component_item_id:
            raise ReconciliationError("BOM line cannot reference its own product as a component")
        return {
            "parent_item_id": parent_item_id,
            "component_item_id": component_item_id,
            "quantity": row.quantity,
            "position_no": row.position_no,
            "note": row.note,
        }
