"""Route test fixtures: the real app wired to the test session and a frozen clock."""

from typing import Iterator

from fastapi.testclient import TestClient
import pytest

from app.api.dependencies.database import get_db
from app.api.dependencies.services import (
    get_conflict_checker,
    get_credit_service,
    get_recurring_reservation_service,
    get_reservation_service,
)
from app.main import create_app
from app.services.conflict_checker import ConflictChecker
from app.services.credit_service import CreditService
from app.services.recurring_reservation_service import RecurringReservationService
from app.services.reservation_service import ReservationService


@pytest.fixture
def client(db, clock) -> Iterator[TestClient]:
    application = create_app()

    def _get_db():
        yield db

    application.dependency_overrides[get_db] = _get_db
    application.dependency_overrides[get_conflict_checker] = lambda: ConflictChecker(db, clock=clock)
    application.dependency_overrides[get_credit_service] = lambda: CreditService(db, clock=clock)
    application.dependency_overrides[get_reservation_service] = lambda: ReservationService(
        db, clock=clock
    )
    application.dependency_overrides[get_recurring_reservation_service] = (
        lambda: RecurringReservationService(db, clock=clock)
    )

    with TestClient(application) as test_client:
        yield test_client
    application.dependency_overrides.clear()


@pytest.fixture
def as_member(member):
    return {"X-User-Id": member.id}


@pytest.fixture
def as_guest(guest):
    return {"X-User-Id": guest.id}
