"""Identity reconciliation of source rows against local entities."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog

from c2sync.db.models.external_link import ExternalEntityLink
from c2sync.sync.strategies.base import BaseSyncStrategy
from c2sync.utils.exceptions import IntegrityViolationError
from c2sync.utils.timeutil import utcnow

logger = structlog.get_logger(__name__)


@dataclass
class UpsertResult:
    """Outcome of reconciling one row."""

    external_id: str
    entity_id: str
    created: bool


class Reconciler:
    """Applies validated source rows to the local store through links.

    Identity is resolved only through ExternalEntityLink rows, never by
    matching content, so repeated runs over the same data are idempotent.
    """

    def __init__(self, strategy: BaseSyncStrategy, now: datetime | None = None) -> None:
        """Initialize reconciler.

        Args:
            strategy: Strategy describing the scope being reconciled.
            now: Timestamp stamped on touched links.
        """
        self.strategy = strategy
        self.session = strategy.session
        self.link_repo = strategy.link_repo
        self.now = now or utcnow()

    def upsert(self, raw: dict[str, Any]) -> UpsertResult:
        """Create or update the local entity for one source row.

        Args:
            raw: Raw source row.

        Returns:
            The reconciliation outcome.

        Raises:
            pydantic.ValidationError: If the row is malformed.
            ReconciliationError: If a referenced record is missing.
            IntegrityViolationError: If the link is dangling or duplicated.
        """
        strategy = self.strategy
        row = strategy.parse(raw)
        fields = strategy.map_row(row)
        source_type = strategy.source_type(row)

        link = self.link_repo.find_by_external_key(
            strategy.entity_type,
            strategy.external_system,
            strategy.external_entity,
            row.id,
        )

        if link is not None:
            entity = self.session.get(strategy.model, link.entity_id)
            if entity is None:
                raise IntegrityViolationError(
                    f"Link for {strategy.external_entity} {row.id} points at missing "
                    f"{strategy.entity_type} {link.entity_id}"
                )
            for key, value in fields.items():
                setattr(entity, key, value)
            entity.is_active = True
            link.touch(self.now, source_type)
            self.session.flush()
            return UpsertResult(external_id=row.id, entity_id=entity.id, created=False)

        entity = strategy.model(**fields)
        entity.is_active = True
        self.session.add(entity)
        self.session.flush()

        self.link_repo.add(
            ExternalEntityLink(
                entity_type=strategy.entity_type,
                entity_id=entity.id,
                external_system=strategy.external_system,
                external_entity=strategy.external_entity,
                external_id=row.id,
                source_type=source_type,
                synced_at=self.now,
            )
        )
        return UpsertResult(external_id=row.id, entity_id=entity.id, created=True)

    def deactivate_missing(self, seen_external_ids: Iterable[str]) -> int:
        """Soft-deactivate local entities whose source rows have disappeared.

        An entity is kept when any of its links is still backed by the source:
        either a link of this scope that was seen, or a link from another
        source table.

        Args:
            seen_external_ids: External ids encountered in this run.

        Returns:
            Number of entities deactivated.
        """
        strategy = self.strategy
        seen = set(seen_external_ids)
        deactivated = 0

        links = self.link_repo.list_for_external_entity(
            strategy.entity_type, strategy.external_system, strategy.external_entity
        )
        for link in links:
            if link.external_id in seen:
                continue

            entity = self.session.get(strategy.model, link.entity_id)
            if entity is None or not entity.is_active:
                continue

            siblings = self.link_repo.find_by_local_entity(strategy.entity_type, entity.id)
            if any(self._is_backed(other, seen) for other in siblings if other.id != link.id):
                continue

            entity.is_active = False
            deactivated += 1
            logger.debug(
                "Deactivated stale entity",
                entity_type=strategy.entity_type,
                entity_id=entity.id,
                external_id=link.external_id,
            )

        self.session.flush()
        return deactivated

    def _is_backed(self, link: ExternalEntityLink, seen: set[str]) -> bool:
        if (
            link.external_system != self.strategy.external_system
            or link.external_entity != self.strategy.external_entity
        ):
            return True
        return link.external_id in seen
