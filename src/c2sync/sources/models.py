"""Pydantic models for validating Component2020 source rows."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class SourceRow(BaseModel):
    """Base model for a row read from a source table."""

    model_config = ConfigDict(
        coerce_numbers_to_str=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    id: str = Field(min_length=1)


class UnitRow(SourceRow):
    """Row of the ``Unit`` table."""

    name: str | None = None
    symbol: str = Field(min_length=1)
    code: str | None = None


class CurrencyRow(SourceRow):
    """Row of the ``Curr`` table."""

    name: str | None = None
    symbol: str | None = None
    code: str | None = None
    rate: Decimal | None = None


class ManufacturerRow(SourceRow):
    """Row of the ``Manufact`` table."""

    name: str = Field(min_length=1)
    full_name: str | None = None
    site: str | None = None
    note: str | None = None


class BodyTypeRow(SourceRow):
    """Row of the ``Body`` table."""

    name: str = Field(min_length=1)
    description: str | None = None
    pins: int | None = None
    smt: bool | None = None
    foot_print_path: str | None = None
    footprint_ref: str | None = None


class TechnicalParameterRow(SourceRow):
    """Row of the ``NPar`` table."""

    name: str = Field(min_length=1)
    symbol: str | None = None
    unit_id: str | None = None


class ParameterSetRow(SourceRow):
    """Row of the ``SPar`` table."""

    name: str = Field(min_length=1)
    p0_id: str | None = None
    p1_id: str | None = None
    p2_id: str | None = None
    p3_id: str | None = None
    p4_id: str | None = None
    p5_id: str | None = None

    @property
    def parameter_ids(self) -> list[str | None]:
        return [self.p0_id, self.p1_id, self.p2_id, self.p3_id, self.p4_id, self.p5_id]


class SymbolRow(SourceRow):
    """Row of the ``Symbol`` table."""

    name: str = Field(min_length=1)
    symbol: str | None = None
    library_path: str | None = None
    library_ref: str | None = None


class CounterpartyRow(SourceRow):
    """Row of the ``Providers`` table."""

    name: str = Field(min_length=1)
    full_name: str | None = None
    inn: str | None = None
    kpp: str | None = None
    email: str | None = None
    phone: str | None = None
    city: str | None = None
    address: str | None = None
    site: str | None = None
    note: str | None = None
    type: str | None = None


class ComponentRow(SourceRow):
    """Row of the ``Component`` table."""

    code: str | None = None
    name: str = Field(min_length=1)
    description: str | None = None
    unit_id: str | None = None
    manufacturer_id: str | None = None
    part_number: str | None = None


class ProductRow(SourceRow):
    """Row of the ``Product`` table."""

    name: str = Field(min_length=1)
    description: str | None = None
    part_number: str | None = None


class BomRow(SourceRow):
    """Row of the ``Bom`` table: one component of one product."""

    product_id: str = Field(min_length=1)
    component_id: str = Field(min_length=1)
    quantity: Decimal = Field(gt=0)
    position_no: int | None = None
    note: str | None = None


class CustomerOrderRow(SourceRow):
    """Row of the ``CustomerOrder`` table."""

    number: str = Field(min_length=1)
    data: date | None = None
    delivery_data: date | None = None
    state: str | None = None
    customer_id: str | None = None
    contract: str | None = None
    note: str | None = None
