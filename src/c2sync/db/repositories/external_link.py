"""External entity link repository."""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from c2sync.db.models.external_link import ExternalEntityLink
from c2sync.db.repositories.base import BaseRepository
from c2sync.utils.exceptions import IntegrityViolationError


class ExternalEntityLinkRepository(BaseRepository[ExternalEntityLink]):
    """Repository for ExternalEntityLink operations."""

    model = ExternalEntityLink

    def find_by_external_key(
        self,
        entity_type: str,
        external_system: str,
        external_entity: str,
        external_id: str,
    ) -> ExternalEntityLink | None:
        """Find the link for one external record.

        Args:
            entity_type: Local entity type name.
            external_system: External system name.
            external_entity: External table / entity name.
            external_id: External record id.

        Returns:
            ExternalEntityLink or None.
        """
        stmt = select(ExternalEntityLink).where(
            ExternalEntityLink.entity_type == entity_type,
            ExternalEntityLink.external_system == external_system,
            ExternalEntityLink.external_entity == external_entity,
            ExternalEntityLink.external_id == external_id,
        )
        return self.session.scalar(stmt)

    def find_by_local_entity(self, entity_type: str, entity_id: str) -> list[ExternalEntityLink]:
        """Get all external links pointing at one local entity."""
        stmt = select(ExternalEntityLink).where(
            ExternalEntityLink.entity_type == entity_type,
            ExternalEntityLink.entity_id == entity_id,
        )
        return self._list(stmt)

    def list_for_external_entity(
        self,
        entity_type: str,
        external_system: str,
        external_entity: str,
    ) -> list[ExternalEntityLink]:
        stmt = (
            select(ExternalEntityLink)
            .where(
                ExternalEntityLink.entity_type == entity_type,
                ExternalEntityLink.external_system == external_system,
                ExternalEntityLink.external_entity == external_entity,
            )
            .order_by(ExternalEntityLink.external_id)
        )
        return self._list(stmt)

    def add(self, instance: ExternalEntityLink) -> ExternalEntityLink:
        """Insert a new link.

        Raises:
            IntegrityViolationError: If the external key is already linked.
        """
        try:
            with self.session.begin_nested():
                self.session.add(instance)
        except IntegrityError as e:
            raise IntegrityViolationError(
                f"External key {instance.external_system}/{instance.external_entity}/"
                f"{instance.external_id} is already linked to a {instance.entity_type}",
                details=str(e.orig),
            ) from e
        return instance
