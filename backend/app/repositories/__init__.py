# backend/app/repositories/__init__.py
"""
Repository layer for the practice space booking core.

Key Components:
- BaseRepository: generic CRUD shared by every repository
- IRepository: interface all repositories implement
- RepositoryFactory: creates repository instances for services
- ConflictCheckerRepository: reservations/productions overlapping a window
- ReservationRepository: reservation reads and per-day booking locks
- CreditRepository: balance rows (locked) and the append-only ledger
- PromoCodeRepository: promo code lookups and redemptions
- RecurringSeriesRepository / UserRepository: series and member lookups

Usage:
    from app.repositories import RepositoryFactory

    repository = RepositoryFactory.create_credit_repository(db)
    credit = repository.lock_balance(user_id=user_id, credit_type="free_hours")
"""

from .base_repository import BaseRepository, IRepository
from .conflict_checker_repository import ConflictCheckerRepository
from .credit_repository import CreditRepository
from .factory import RepositoryFactory
from .promo_code_repository import PromoCodeRepository
from .recurring_series_repository import RecurringSeriesRepository
from .reservation_repository import ReservationRepository
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "ConflictCheckerRepository",
    "CreditRepository",
    "IRepository",
    "PromoCodeRepository",
    "RecurringSeriesRepository",
    "RepositoryFactory",
    "ReservationRepository",
    "UserRepository",
]
