"""Shared repository plumbing for the sync state tables."""

from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from c2sync.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Repository bound to one session and one mapped class.

    Subclasses set ``model``. Nothing here commits; the caller's session
    scope decides that.
    """

    model: type[ModelT]

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_by_id(self, id: str | int) -> ModelT | None:
        return self.session.get(self.model, id)

    def get_all(self, *order_by: Any) -> list[ModelT]:
        """Every row of the table, in ``order_by`` order when given."""
        return self._list(select(self.model).order_by(*order_by))

    def count(self, *conditions: Any) -> int:
        """Number of rows matching all ``conditions``."""
        stmt = select(func.count()).select_from(self.model).where(*conditions)
        return self.session.scalar(stmt) or 0

    def add(self, instance: ModelT) -> ModelT:
        """Stage a new row and flush so generated defaults are populated."""
        self.session.add(instance)
        self.session.flush()
        return instance

    def save(self, instance: ModelT) -> ModelT:
        """Flush pending changes to an existing row."""
        self.session.add(instance)
        self.session.flush()
        return instance

    def _list(self, stmt: Select[tuple[ModelT]]) -> list[ModelT]:
        return list(self.session.scalars(stmt).all())
