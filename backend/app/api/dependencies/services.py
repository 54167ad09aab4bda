# backend/app/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.conflict_checker import ConflictChecker
from ...services.credit_service import CreditService
from ...services.recurring_reservation_service import RecurringReservationService
from ...services.reservation_service import ReservationService
from .database import get_db


def get_conflict_checker(db: Session = Depends(get_db)) -> ConflictChecker:
    return ConflictChecker(db)


def get_credit_service(db: Session = Depends(get_db)) -> CreditService:
    return CreditService(db)


def get_reservation_service(db: Session = Depends(get_db)) -> ReservationService:
    """
    Get reservation service instance.

    Args:
        db: Database session

    Returns:
        ReservationService sharing the request's session with its collaborators
    """
    return ReservationService(db)


def get_recurring_reservation_service(
    db: Session = Depends(get_db),
) -> RecurringReservationService:
    return RecurringReservationService(db)
