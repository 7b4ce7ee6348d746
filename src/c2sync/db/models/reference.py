"""Reference-data ORM models reconciled from Component2020."""

from decimal import Decimal

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from c2sync.db.base import Base, SyncedEntityMixin


class UnitOfMeasure(Base, SyncedEntityMixin):
    """Unit of measure (Component2020 ``Unit`` table)."""

    __tablename__ = "c2sync_units"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    symbol: Mapped[str | None] = mapped_column(String(50), nullable=True)
    code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<UnitOfMeasure(name={self.name}, symbol={self.symbol})>"


class Currency(Base, SyncedEntityMixin):
    """Currency (Component2020 ``Curr`` table)."""

    __tablename__ = "c2sync_currencies"

    code: Mapped[str | None] = mapped_column(String(10), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    symbol: Mapped[str | None] = mapped_column(String(20), nullable=True)
    rate: Mapped[Decimal | None] = mapped_column(Numeric(18, 6), nullable=True)

    def __repr__(self) -> str:
        return f"<Currency(code={self.code}, name={self.name})>"


class Manufacturer(Base, SyncedEntityMixin):
    """Component manufacturer (Component2020 ``Manufact`` table)."""

    __tablename__ = "c2sync_manufacturers"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    site: Mapped[str | None] = mapped_column(String(500), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)


class BodyType(Base, SyncedEntityMixin):
    """Component package / body type (Component2020 ``Body`` table)."""

    __tablename__ = "c2sync_body_types"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    pins: Mapped[int | None] = mapped_column(Integer, nullable=True)
    smt: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    footprint_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    footprint_ref: Mapped[str | None] = mapped_column(String(200), nullable=True)


class TechnicalParameter(Base, SyncedEntityMixin):
    """Technical parameter definition (Component2020 ``NPar`` table)."""

    __tablename__ = "c2sync_technical_parameters"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    symbol: Mapped[str | None] = mapped_column(String(50), nullable=True)
    unit_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("c2sync_units.id"), nullable=True
    )


class ParameterSet(Base, SyncedEntityMixin):
    """Ordered set of up to six technical parameters (``SPar`` table)."""

    __tablename__ = "c2sync_parameter_sets"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    # Local TechnicalParameter ids in slot order (P0..P5); None for empty slots
    parameter_ids: Mapped[list | None] = mapped_column(JSON, nullable=True)


class Symbol(Base, SyncedEntityMixin):
    """Schematic symbol (Component2020 ``Symbol`` table)."""

    __tablename__ = "c2sync_symbols"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    symbol: Mapped[str | None] = mapped_column(String(100), nullable=True)
    library_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    library_ref: Mapped[str | None] = mapped_column(String(200), nullable=True)
