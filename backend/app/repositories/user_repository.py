# backend/app/repositories/user_repository.py
"""User lookups needed by the booking core."""

import logging
from typing import List, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def get_sustaining_member_ids(self) -> List[str]:
        """Members entitled to a monthly credit allocation."""
        try:
            rows = (
                self.db.query(User.id)
                .filter(User.is_sustaining_member.is_(True))
                .order_by(User.id)
                .all()
            )
            return cast(List[str], [row[0] for row in rows])
        except SQLAlchemyError as e:
            self.logger.error("Error listing sustaining members: %s", e)
            raise RepositoryException(f"Failed to list sustaining members: {e}") from e
