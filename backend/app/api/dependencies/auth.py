# backend/app/api/dependencies/auth.py
"""
Caller identity dependencies.

Authentication lives outside this service; the gateway forwards the owner's
id in the ``X-User-Id`` header and the routes trust it.
"""

import logging

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from ...models.user import User
from ...repositories import RepositoryFactory
from .database import get_db

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"


def get_current_user_id(x_user_id: str = Header(..., alias=USER_ID_HEADER)) -> str:
    """Owner id of the request, from the forwarded identity header."""
    user_id = x_user_id.strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Missing user identity", "code": "MISSING_USER_ID"},
        )
    return user_id


def get_current_user(
    user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)
) -> User:
    """Resolve the header identity to a stored user."""
    user = RepositoryFactory.create_user_repository(db).get_by_id(user_id, load_relationships=False)
    if user is None:
        logger.warning(f"Request made with unknown user id {user_id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Unknown user", "code": "UNKNOWN_USER"},
        )
    return user
