"""Customer order sync strategy."""

from typing import Any

from c2sync.db.models.customer_order import CustomerOrder
from c2sync.sources.models import CustomerOrderRow
from c2sync.sync.strategies.base import BaseSyncStrategy
from c2sync.sync.strategies.counterparties import CounterpartySyncStrategy


class CustomerOrderSyncStrategy(BaseSyncStrategy):
    """Sync strategy for customer order headers."""

    data_type = "CustomerOrder"
    entity_type = "CustomerOrder"
    source_entity = "CustomerOrders"
    external_entity = "CustomerOrder"
    model = CustomerOrder
    row_model = CustomerOrderRow

    def map_row(self, row: CustomerOrderRow) -> dict[str, Any]:
        customer_id = self.resolve_link(
            CounterpartySyncStrategy.entity_type,
            CounterpartySyncStrategy.external_entity,
            row.customer_id,
            "Customer",
        )
        return {
            "number": row.number,
            "order_date": row.data,
            "delivery_date": row.delivery_data,
            "state": row.state,
            "customer_id": customer_id,
            "contract": row.contract,
            "note": row.note,
        }
