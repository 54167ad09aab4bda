# backend/app/schemas/recurring_series.py
"""Recurring series schemas."""

from datetime import date, datetime, time
from typing import List, Optional

from pydantic import Field, model_validator

from ..core.enums import SeriesStatus
from .base import StandardizedModel, StrictRequestModel


class RecurringSeriesCreate(StrictRequestModel):
    """
    Create a weekly or monthly series.

    ``recurrence_rule`` is an RFC 5545 RRULE body without DTSTART, for example
    ``FREQ=WEEKLY;BYDAY=TU``. The series start date anchors the rule.
    """

    recurrence_rule: str = Field(..., min_length=1, max_length=500)
    series_start_date: date
    start_time: time
    end_time: time
    series_end_date: Optional[date] = None
    max_advance_days: Optional[int] = Field(None, gt=0, le=365)
    notes: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def _check_ranges(self) -> "RecurringSeriesCreate":
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time.")
        if self.series_end_date is not None and self.series_end_date < self.series_start_date:
            raise ValueError("series_end_date cannot be before series_start_date")
        return self


class SeriesSkipRequest(StrictRequestModel):
    instance_date: date
    reason: Optional[str] = Field(None, max_length=500)


class SeriesExtendRequest(StrictRequestModel):
    series_end_date: date


class SeriesCancelRequest(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=500)


class RecurringSeriesResponse(StandardizedModel):
    id: str
    user_id: str
    recurrence_rule: str
    start_time: time
    end_time: time
    duration_minutes: int
    series_start_date: date
    series_end_date: Optional[date] = None
    max_advance_days: int
    status: SeriesStatus
    notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None


class SeriesCancelResponse(StandardizedModel):
    series_id: str
    cancelled_reservations: int


class PatternValidationRequest(StrictRequestModel):
    """A proposed pattern to check before creating or editing a series."""

    recurrence_rule: str = Field(..., min_length=1, max_length=500)
    series_start_date: date
    start_time: time
    end_time: time
    series_end_date: Optional[date] = None
    check_occurrences: int = Field(8, ge=1, le=52)
    exclude_series_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_times(self) -> "PatternValidationRequest":
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time.")
        return self


class PatternWarningResponse(StandardizedModel):
    date: date
    time: str
    type: str
    conflicts: str


class PatternValidationResponse(StandardizedModel):
    is_clear: bool
    warnings: List[PatternWarningResponse] = Field(default_factory=list)
