"""Counterparty sync strategy."""

from typing import Any

from c2sync.db.models.counterparty import Counterparty
from c2sync.sources.models import CounterpartyRow
from c2sync.sync.strategies.base import BaseSyncStrategy


class CounterpartySyncStrategy(BaseSyncStrategy):
    """Sync strategy for suppliers and customers.

    The ``Providers`` table's type column is kept on the external link so the
    supplier/customer role survives without a separate role table.
    """

    data_type = "Counterparty"
    entity_type = "Counterparty"
    source_entity = "Providers"
    external_entity = "Providers"
    model = Counterparty
    row_model = CounterpartyRow

    def source_type(self, row: CounterpartyRow) -> str | None:
        return row.type

    def map_row(self, row: CounterpartyRow) -> dict[str, Any]:
        return {
            "name": row.name,
            "full_name": row.full_name,
            "inn": row.inn,
            "kpp": row.kpp,
            "email": row.email,
            "phone": row.phone,
            "city": row.city,
            "address": row.address,
            "site": row.site,
            "note": row.note,
        }
