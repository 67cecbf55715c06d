# backend/app/repositories/base_repository.py
"""
Base repository for the settlement models.

Repositories only flush. Services own the unit of work and commit or roll
back through ``BaseService.transaction()``, so a failed write here leaves
the session for the service to clean up.
"""

import logging
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Typed data access for one model.

    Attributes:
        db: SQLAlchemy session shared with the owning service
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def get_by_id(self, id: str) -> Optional[T]:
        try:
            return self.db.get(self.model, id)
        except SQLAlchemyError as exc:
            self.logger.error("Error loading %s %s: %s", self.model.__name__, id, str(exc))
            raise RepositoryException(f"Failed to load {self.model.__name__}") from exc

    def get_by_id_for_update(self, id: str) -> Optional[T]:
        """
        Load a row and hold its lock until the surrounding transaction ends.

        The identity-mapped instance is overwritten with the locked row so
        status checks see what other transactions committed before the lock.
        """
        try:
            return (
                self.db.query(self.model)
                .filter(getattr(self.model, "id") == id)
                .populate_existing()
                .with_for_update()
                .first()
            )
        except SQLAlchemyError as exc:
            self.logger.error("Error locking %s %s: %s", self.model.__name__, id, str(exc))
            raise RepositoryException(f"Failed to lock {self.model.__name__}") from exc

    def create(self, **kwargs: Any) -> T:
        """Add and flush a new row so its id and defaults are populated."""
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()
            return entity
        except IntegrityError as exc:
            self.logger.error("Integrity error creating %s: %s", self.model.__name__, str(exc))
            raise RepositoryException(
                f"Integrity constraint violated creating {self.model.__name__}"
            ) from exc
        except SQLAlchemyError as exc:
            self.logger.error("Error creating %s: %s", self.model.__name__, str(exc))
            raise RepositoryException(f"Failed to create {self.model.__name__}") from exc

    def find_by(self, **criteria: Any) -> List[T]:
        """Exact-match lookup on column values."""
        try:
            return list(self.db.query(self.model).filter_by(**criteria).all())
        except SQLAlchemyError as exc:
            self.logger.error("Error finding %s: %s", self.model.__name__, str(exc))
            raise RepositoryException(f"Failed to find {self.model.__name__} rows") from exc
