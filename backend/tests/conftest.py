# backend/tests/conftest.py
"""
Pytest configuration for the practice space backend.

Every test gets its own SQLite file database (not ``:memory:``) so that the
concurrency tests can open one session per thread against the same data.
Services take a ``FrozenClock`` so "now" is pinned.
"""

import os
import sys

# Set testing mode BEFORE any app imports
os.environ.setdefault("is_testing", "true")

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)

from datetime import date, datetime, time, timedelta
from typing import Any, Callable, Iterator, List

import pytest
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings
from app.database import Base, build_engine
from app.events import EventPublisher
import app.models  # noqa: F401  (registers every table on Base.metadata)
from app.models.user import User
from tests.factories.builders import FrozenClock, create_user

settings.is_testing = True


@pytest.fixture
def engine(tmp_path):
    test_engine = build_engine(f"sqlite:///{tmp_path / 'practice_space_test.db'}")
    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def tomorrow(clock: FrozenClock) -> date:
    return clock().date() + timedelta(days=1)


@pytest.fixture
def at(tomorrow: date) -> Callable[..., datetime]:
    """``at(14)`` -> tomorrow 14:00, ``at(14, 30, days=2)`` -> three days out at 14:30."""

    def _at(hour: int, minute: int = 0, days: int = 0) -> datetime:
        return datetime.combine(tomorrow + timedelta(days=days), time(hour, minute))

    return _at


@pytest.fixture
def published_events() -> Iterator[List[Any]]:
    """Every event delivered by EventPublisher during the test."""
    received: List[Any] = []
    EventPublisher.register(received.append)
    try:
        yield received
    finally:
        EventPublisher.clear()


@pytest.fixture
def member(db: Session) -> User:
    """A sustaining member with no credits yet."""
    return create_user(db, "Sam Member", sustaining=True)


@pytest.fixture
def guest(db: Session) -> User:
    """A non-member; never gets free hours."""
    return create_user(db, "Gil Guest", sustaining=False)
