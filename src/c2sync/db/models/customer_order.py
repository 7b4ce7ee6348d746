"""Customer order ORM model."""

from datetime import date

from sqlalchemy import Date, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from c2sync.db.base import Base, SyncedEntityMixin


class CustomerOrder(Base, SyncedEntityMixin):
    """Customer order header (Component2020 ``CustomerOrder`` table)."""

    __tablename__ = "c2sync_customer_orders"

    number: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    order_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    state: Mapped[str | None] = mapped_column(String(50), nullable=True)
    customer_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("c2sync_counterparties.id"), nullable=True
    )
    contract: Mapped[str | None] = mapped_column(String(200), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<CustomerOrder(number={self.number}, customer={self.customer_id})>"
