"""Declarative base and shared column mixins."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""

    pass


def new_id() -> str:
    """Generate an opaque string identifier."""
    return str(uuid.uuid4())


class TimestampMixin:
    """Adds created_at / updated_at audit columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class SyncedEntityMixin(TimestampMixin):
    """Local entity that can be reconciled from an external source.

    Entities are never hard-deleted by the sync engine; ``is_active`` is
    cleared instead.
    """

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
