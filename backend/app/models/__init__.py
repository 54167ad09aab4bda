"""
Database models for the practice space booking core.

- User: members and their credit entitlement
- Production: externally scheduled shows that may occupy the space
- Reservation / RecurringSeries: bookings of the space
- UserCredit / CreditTransaction: the credit ledger
- PromoCode / PromoCodeRedemption: one-time credit grants
- SpaceDayLock: per-day write lock for booking writers
"""

from .credit import CreditTransaction, UserCredit
from .production import Production
from .promo_code import PromoCode, PromoCodeRedemption
from .recurring_series import RecurringSeries
from .reservation import Reservation
from .space_day_lock import SpaceDayLock
from .user import User

__all__ = [
    "CreditTransaction",
    "Production",
    "PromoCode",
    "PromoCodeRedemption",
    "RecurringSeries",
    "Reservation",
    "SpaceDayLock",
    "User",
    "UserCredit",
]
