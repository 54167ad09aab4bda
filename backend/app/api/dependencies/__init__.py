# backend/app/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import get_current_user, get_current_user_id
from .database import get_db
from .services import (
    get_conflict_checker,
    get_credit_service,
    get_recurring_reservation_service,
    get_reservation_service,
)

__all__ = [
    # Identity
    "get_current_user",
    "get_current_user_id",
    # Database
    "get_db",
    # Services
    "get_conflict_checker",
    "get_credit_service",
    "get_recurring_reservation_service",
    "get_reservation_service",
]
