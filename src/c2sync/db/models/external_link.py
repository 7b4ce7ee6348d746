"""External entity link ORM model."""

from datetime import datetime

from sqlalchemy import DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from c2sync.db.base import Base, TimestampMixin, new_id


class ExternalEntityLink(Base, TimestampMixin):
    """Maps an external record identity to a local entity.

    The unique constraint on the external identity is what makes repeated
    synchronization idempotent, and it backstops concurrent inserts.
    """

    __tablename__ = "c2sync_external_entity_links"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False)
    external_system: Mapped[str] = mapped_column(String(100), nullable=False)
    external_entity: Mapped[str] = mapped_column(String(100), nullable=False)
    external_id: Mapped[str] = mapped_column(String(200), nullable=False)
    source_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "entity_type",
            "external_system",
            "external_entity",
            "external_id",
            name="uq_external_entity_link",
        ),
        Index("ix_external_entity_link_entity", "entity_type", "entity_id"),
    )

    def touch(self, now: datetime, source_type: str | None = None) -> None:
        """Mark the link as seen in a synchronization."""
        self.synced_at = now
        if source_type is not None:
            self.source_type = source_type

    def __repr__(self) -> str:
        return (
            f"<ExternalEntityLink({self.entity_type}:{self.entity_id} <- "
            f"{self.external_system}/{self.external_entity}/{self.external_id})>"
        )
