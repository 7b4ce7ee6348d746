"""Base sync strategy."""

from abc import ABC, abstractmethod
from typing import Any

import structlog
from sqlalchemy.orm import Session

from c2sync.config.settings import Settings
from c2sync.db.base import SyncedEntityMixin
from c2sync.db.repositories.external_link import ExternalEntityLinkRepository
from c2sync.sources.models import SourceRow
from c2sync.utils.exceptions import ReconciliationError

logger = structlog.get_logger(__name__)


class BaseSyncStrategy(ABC):
    """Describes how one source entity is reconciled into a local model.

    Subclasses declare where rows come from, which local model they land in
    and how a validated row maps onto that model's columns.
    """

    data_type: str  # counter name, e.g. "Unit"
    entity_type: str  # link entity type, e.g. "UnitOfMeasure"
    source_entity: str  # cursor key and export name, e.g. "Units"
    external_entity: str  # source table, e.g. "Unit"
    model: type[SyncedEntityMixin]
    row_model: type[SourceRow]

    def __init__(self, session: Session, settings: Settings) -> None:
        """Initialize the sync strategy.

        Args:
            session: Database session.
            settings: Application settings.
        """
        self.session = session
        self.settings = settings
        self.link_repo = ExternalEntityLinkRepository(session)

    @property
    def external_system(self) -> str:
        return self.settings.external_system

    def parse(self, raw: dict[str, Any]) -> SourceRow:
        """Validate a raw source row.

        Raises:
            pydantic.ValidationError: If the row is malformed.
        """
        return self.row_model.model_validate(raw)

    def source_type(self, row: SourceRow) -> str | None:
        """Optional sub-type recorded on the external link."""
        return None

    def resolve_link(
        self,
        entity_type: str,
        external_entity: str,
        external_id: str | None,
        label: str,
    ) -> str | None:
        """Resolve a reference to a previously synchronized entity.

        Args:
            entity_type: Local entity type of the referenced record.
            external_entity: Source table of the referenced record.
            external_id: Referenced external id; None or empty means no reference.
            label: Human-readable name for error messages.

        Returns:
            Local entity id, or None when there is no reference.

        Raises:
            ReconciliationError: If the referenced record was never synchronized.
        """
        if external_id is None or external_id in ("", "0"):
            return None
        link = self.link_repo.find_by_external_key(
            entity_type, self.external_system, external_entity, external_id
        )
        if link is None:
            raise ReconciliationError(f"{label} {external_id} not found")
        return link.entity_id

    @abstractmethod
    def map_row(self, row: Any) -> dict[str, Any]:
        """Map a validated row onto local model columns.

        Args:
            row: Validated row (instance of ``row_model``).

        Returns:
            Column values for the local entity.
        """
        pass
