"""Counterparty ORM model."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from c2sync.db.base import Base, SyncedEntityMixin


class Counterparty(Base, SyncedEntityMixin):
    """Supplier or customer (Component2020 ``Providers`` table)."""

    __tablename__ = "c2sync_counterparties"

    name: Mapped[str] = mapped_column(String(300), nullable=False, index=True)
    full_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    inn: Mapped[str | None] = mapped_column(String(20), nullable=True)
    kpp: Mapped[str | None] = mapped_column(String(20), nullable=True)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(100), nullable=True)
    city: Mapped[str | None] = mapped_column(String(200), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    site: Mapped[str | None] = mapped_column(String(500), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Counterparty(name={self.name}, inn={self.inn})>"
