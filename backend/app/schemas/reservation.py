# backend/app/schemas/reservation.py
"""
Reservation schemas.

Times are wall-clock times at the practice space. Offsets, when sent, are
converted to the space timezone by the service layer.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, model_validator

from ..core.enums import ReservationStatus
from .base import Money, StandardizedModel, StrictRequestModel


class ReservationWindow(StrictRequestModel):
    reserved_at: datetime = Field(..., description="Start of the booking")
    reserved_until: datetime = Field(..., description="End of the booking (exclusive)")

    @model_validator(mode="after")
    def _end_after_start(self) -> "ReservationWindow":
        if self.reserved_until <= self.reserved_at:
            raise ValueError("End time must be after start time.")
        return self


class ReservationCreate(ReservationWindow):
    """Book the space for a time range."""

    notes: Optional[str] = Field(None, max_length=1000)
    credit_hours: Optional[float] = Field(
        None, ge=0, description="Hours to fund from free-hour credits explicitly"
    )
    production_id: Optional[str] = None


class ReservationUpdate(ReservationWindow):
    notes: Optional[str] = Field(None, max_length=1000)


class ReservationPreviewRequest(StrictRequestModel):
    # Unvalidated ordering: the preview reports the problem instead of a 422.
    reserved_at: datetime
    reserved_until: datetime


class ReservationCancel(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=500)


class ReservationResponse(StandardizedModel):
    id: str
    user_id: str
    reserved_at: datetime
    reserved_until: datetime
    status: ReservationStatus
    hours_used: Money
    free_hours_used: Money
    cost: Money
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    recurring_series_id: Optional[str] = None
    instance_date: Optional[date] = None
    production_id: Optional[str] = None
    created_at: Optional[datetime] = None


class CostBreakdownResponse(StandardizedModel):
    total_hours: Money
    free_hours: Money
    paid_hours: Money
    hourly_rate: Money
    cost: Money
    free_blocks: int = 0


class ReservationPreviewResponse(StandardizedModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    conflicts: List[Dict[str, Any]] = Field(default_factory=list)
    cost: Optional[CostBreakdownResponse] = None


class TimeGap(StandardizedModel):
    start: datetime
    end: datetime
    duration_minutes: int


class GapsResponse(StandardizedModel):
    date: date
    minimum_minutes: int
    gaps: List[TimeGap]


class AvailabilityResponse(StandardizedModel):
    start: datetime
    end: datetime
    available: bool
