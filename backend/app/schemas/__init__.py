# backend/app/schemas/__init__.py
"""
Pydantic schemas for the practice space API.
"""

from .credit import (
    CreditBalanceResponse,
    CreditTransactionListResponse,
    CreditTransactionResponse,
    PromoCodeRedeemRequest,
    PromoCodeRedeemResponse,
)
from .recurring_series import (
    PatternValidationRequest,
    PatternValidationResponse,
    PatternWarningResponse,
    RecurringSeriesCreate,
    RecurringSeriesResponse,
    SeriesCancelRequest,
    SeriesCancelResponse,
    SeriesExtendRequest,
    SeriesSkipRequest,
)
from .reservation import (
    CostBreakdownResponse,
    GapsResponse,
    ReservationCancel,
    ReservationCreate,
    ReservationPreviewRequest,
    ReservationPreviewResponse,
    ReservationResponse,
    ReservationUpdate,
    TimeGap,
)

__all__ = [
    "CostBreakdownResponse",
    "CreditBalanceResponse",
    "CreditTransactionListResponse",
    "CreditTransactionResponse",
    "GapsResponse",
    "PromoCodeRedeemRequest",
    "PromoCodeRedeemResponse",
    "PatternValidationRequest",
    "PatternValidationResponse",
    "PatternWarningResponse",
    "RecurringSeriesCreate",
    "RecurringSeriesResponse",
    "ReservationCancel",
    "ReservationCreate",
    "ReservationPreviewRequest",
    "ReservationPreviewResponse",
    "ReservationResponse",
    "ReservationUpdate",
    "SeriesCancelRequest",
    "SeriesCancelResponse",
    "SeriesExtendRequest",
    "SeriesSkipRequest",
    "TimeGap",
]
