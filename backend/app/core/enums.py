# backend/app/core/enums.py
"""
Core enums for the practice space booking platform.

These enums are stored as plain strings in the database so they stay
readable in ad-hoc queries and audit exports.
"""

from enum import Enum


class ReservationStatus(str, Enum):
    """Reservation lifecycle statuses."""

    PENDING = "pending"  # Held, awaiting member acknowledgement
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class SeriesStatus(str, Enum):
    """Recurring series statuses. Cancelled is terminal."""

    ACTIVE = "active"
    CANCELLED = "cancelled"


class CreditType(str, Enum):
    """Kinds of prepaid credit a member can hold."""

    FREE_HOURS = "free_hours"  # Practice space blocks, reset monthly
    EQUIPMENT_CREDITS = "equipment_credits"  # Rolls over up to a cap


class CreditSource(str, Enum):
    """Why a ledger entry was written."""

    MONTHLY_RESET = "monthly_reset"
    MONTHLY_ALLOCATION = "monthly_allocation"
    UPGRADE_ADJUSTMENT = "upgrade_adjustment"
    PROMO_CODE = "promo_code"
    RESERVATION_USAGE = "reservation_usage"
    RESERVATION_CANCELLATION = "reservation_cancellation"
    ADMIN_ADJUSTMENT = "admin_adjustment"
    EXPIRATION = "expiration"
