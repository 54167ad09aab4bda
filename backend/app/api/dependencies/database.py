# backend/app/api/dependencies/database.py
"""
Request-scoped database session.

Services open and commit their own transactions on this session. Anything
still pending when the route returns is committed; an exception rolls it back.
Tests override this dependency to hand the routes their own session.
"""

from typing import Generator

from sqlalchemy.orm import Session

from ...database import get_db as session_per_request


def get_db() -> Generator[Session, None, None]:
    yield from session_per_request()
