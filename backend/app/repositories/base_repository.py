# backend/app/repositories/base_repository.py
"""
Base Repository Pattern for the practice space booking core.

Repositories own every query; services own every transaction. Nothing in this
layer commits: writes are flushed so ids and constraint errors surface early,
and the calling service decides when the unit of work ends.
"""

from abc import ABC, abstractmethod
import logging
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from app.database.session_utils import insert_ignoring_conflicts

from ..core.exceptions import RepositoryException

T = TypeVar("T")

logger = logging.getLogger(__name__)


class IRepository(ABC, Generic[T]):
    """Minimal data access contract shared by all repositories."""

    @abstractmethod
    def get_by_id(self, id: str, load_relationships: bool = True) -> Optional[T]:
        """Return the entity with primary key ``id`` or None."""

    @abstractmethod
    def create(self, **kwargs: Any) -> T:
        """
        Add a new entity and flush it.

        Raises:
            RepositoryException: If the insert violates a constraint or fails
        """


class BaseRepository(IRepository[T]):
    """
    Generic CRUD on top of a SQLAlchemy session.

    Attributes:
        db: SQLAlchemy session, owned by the service layer
        model: Mapped class this repository reads and writes
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def get_by_id(self, id: str, load_relationships: bool = True) -> Optional[T]:
        try:
            query = self.db.query(self.model).filter(self.model.id == id)
            if load_relationships:
                query = self._apply_eager_loading(query)
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error("Error getting %s by id %s: %s", self.model.__name__, id, e)
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {e}") from e

    def create(self, **kwargs: Any) -> T:
        """
        Create a new entity.

        Note: Does NOT commit - transaction management is handled by service layer.
        """
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()
            return entity
        except IntegrityError as exc:
            self.logger.error("Integrity error creating %s: %s", self.model.__name__, exc)
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as e:
            self.logger.error("Error creating %s: %s", self.model.__name__, e)
            raise RepositoryException(f"Failed to create {self.model.__name__}: {e}") from e

    def flush(self) -> None:
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            self.logger.error("Error flushing %s changes: %s", self.model.__name__, e)
            raise RepositoryException(f"Failed to save {self.model.__name__}: {e}") from e

    # Protected helpers for subclasses

    def _apply_eager_loading(self, query: Query) -> Query:
        """Override to add joinedload/selectinload for a model's relationships."""
        return query

    def _insert_ignoring_conflicts(self, values: Dict[str, Any], index_elements: List[str]) -> None:
        """
        INSERT a row unless one with the same unique key already exists.

        Used for get-or-create of lock rows where two writers may race to create
        the same row; the loser keeps the winner's row.
        """
        try:
            stmt = insert_ignoring_conflicts(self.db, self.model, values, index_elements)
            if stmt is None:
                key = {name: values[name] for name in index_elements}
                if self.db.query(self.model).filter_by(**key).first() is None:
                    self.db.execute(insert(self.model).values(**values))
                return
            self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.logger.error("Error inserting %s: %s", self.model.__name__, e)
            raise RepositoryException(f"Failed to create {self.model.__name__}: {e}") from e
