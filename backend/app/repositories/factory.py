# backend/app/repositories/factory.py
"""
Repository Factory for the practice space booking core.

Provides centralized creation of repository instances so services never
construct data access objects themselves.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

# Avoid circular imports
if TYPE_CHECKING:
    from .conflict_checker_repository import ConflictCheckerRepository
    from .credit_repository import CreditRepository
    from .promo_code_repository import PromoCodeRepository
    from .recurring_series_repository import RecurringSeriesRepository
    from .reservation_repository import ReservationRepository
    from .user_repository import UserRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_base_repository(db: Session, model) -> BaseRepository:
        """Create a generic base repository for any model."""
        return BaseRepository(db, model)

    @staticmethod
    def create_conflict_checker_repository(db: Session) -> "ConflictCheckerRepository":
        """Create repository for conflict checking queries."""
        from .conflict_checker_repository import ConflictCheckerRepository

        return ConflictCheckerRepository(db)

    @staticmethod
    def create_reservation_repository(db: Session) -> "ReservationRepository":
        from .reservation_repository import ReservationRepository

        return ReservationRepository(db)

    @staticmethod
    def create_credit_repository(db: Session) -> "CreditRepository":
        """Create repository for credit balances and ledger entries."""
        from .credit_repository import CreditRepository

        return CreditRepository(db)

    @staticmethod
    def create_promo_code_repository(db: Session) -> "PromoCodeRepository":
        from .promo_code_repository import PromoCodeRepository

        return PromoCodeRepository(db)

    @staticmethod
    def create_recurring_series_repository(db: Session) -> "RecurringSeriesRepository":
        from .recurring_series_repository import RecurringSeriesRepository

        return RecurringSeriesRepository(db)

    @staticmethod
    def create_user_repository(db: Session) -> "UserRepository":
        from .user_repository import UserRepository

        return UserRepository(db)
