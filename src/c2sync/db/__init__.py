"""Database module for the Component2020 sync engine."""

from c2sync.db.base import Base, SyncedEntityMixin, TimestampMixin
from c2sync.db.engine import create_engine, create_tables, get_session, rollback_session

__all__ = [
    "Base",
    "SyncedEntityMixin",
    "TimestampMixin",
    "create_engine",
    "create_tables",
    "get_session",
    "rollback_session",
]
