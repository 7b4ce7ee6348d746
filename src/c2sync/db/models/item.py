"""Item and bill-of-materials ORM models."""

from decimal import Decimal

from sqlalchemy import ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from c2sync.db.base import Base, SyncedEntityMixin


class Item(Base, SyncedEntityMixin):
    """Catalog item: a purchased component or a manufactured product."""

    __tablename__ = "c2sync_items"

    kind: Mapped[str] = mapped_column(String(20), nullable=False, index=True)  # Component, Product
    code: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    part_number: Mapped[str | None] = mapped_column(String(200), nullable=True)
    unit_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("c2sync_units.id"), nullable=True
    )
    manufacturer_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("c2sync_manufacturers.id"), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Item(kind={self.kind}, code={self.code}, name={self.name})>"


class BomLine(Base, SyncedEntityMixin):
    """One component line in a product's bill of materials."""

    __tablename__ = "c2sync_bom_lines"

    parent_item_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("c2sync_items.id"), nullable=False, index=True
    )
    component_item_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("c2sync_items.id"), nullable=False
    )
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    position_no: Mapped[int | None] = mapped_column(Integer, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<BomLine(parent={self.parent_item_id}, component={self.component_item_id})>"
