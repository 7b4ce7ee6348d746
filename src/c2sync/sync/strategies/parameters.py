"""Sync strategies for technical parameters and parameter sets."""

from typing import Any

from c2sync.db.models.reference import ParameterSet, TechnicalParameter
from c2sync.sources.models import ParameterSetRow, TechnicalParameterRow
from c2sync.sync.strategies.base import BaseSyncStrategy
from c2sync.sync.strategies.reference import UnitSyncStrategy


class TechnicalParameterSyncStrategy(BaseSyncStrategy):
    """Sync strategy for technical parameters.

    The parameter's unit must already be synchronized.
    """

    data_type = "TechnicalParameter"
    entity_type = "TechnicalParameter"
    source_entity = "TechnicalParameters"
    external_entity = "NPar"
    model = TechnicalParameter
    row_model = TechnicalParameterRow

    def map_row(self, row: TechnicalParameterRow) -> dict[str, Any]:
        unit_id = self.resolve_link(
            UnitSyncStrategy.entity_type, UnitSyncStrategy.external_entity, row.unit_id, "Unit"
        )
        return {
            "name": row.name,
            "symbol": row.symbol,
            "unit_id": unit_id,
        }


class ParameterSetSyncStrategy(BaseSyncStrategy):
    """Sync strategy for parameter sets (up to six parameter slots)."""

    data_type = "ParameterSet"
    entity_type = "ParameterSet"
    source_entity = "ParameterSets"
    external_entity = "SPar"
    model = ParameterSet
    row_model = ParameterSetRow

    def map_row(self, row: ParameterSetRow) -> dict[str, Any]:
        parameter_ids = [
            self.resolve_link(
                TechnicalParameterSyncStrategy.entity_type,
                TechnicalParameterSyncStrategy.external_entity,
                external_id,
                "Technical parameter",
            )
            for external_id in row.parameter_ids
        ]
        return {
            "name": row.name,
            "parameter_ids": parameter_ids,
        }
