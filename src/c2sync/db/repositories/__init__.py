"""Database repositories."""

from c2sync.db.repositories.base import BaseRepository
from c2sync.db.repositories.connection import SourceConnectionRepository
from c2sync.db.repositories.external_link import ExternalEntityLinkRepository
from c2sync.db.repositories.sync_cursor import SyncCursorRepository
from c2sync.db.repositories.sync_run import SyncRunRepository
from c2sync.db.repositories.sync_schedule import SyncScheduleRepository

__all__ = [
    "BaseRepository",
    "ExternalEntityLinkRepository",
    "SourceConnectionRepository",
    "SyncCursorRepository",
    "SyncRunRepository",
    "SyncScheduleRepository",
]
