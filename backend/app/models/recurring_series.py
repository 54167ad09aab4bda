# backend/app/models/recurring_series.py
"""
Recurring reservation series.

A series stores an RFC 5545 recurrence rule plus the daily wall-clock window
applied to every occurrence. Concrete reservations are materialized up to
``max_advance_days`` ahead and tagged with the ``instance_date`` they stand for.
"""

from datetime import date, datetime, time
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, String, Text, Time
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import SeriesStatus
from ..database import Base

if TYPE_CHECKING:
    from .reservation import Reservation
    from .user import User


class RecurringSeries(Base):
    """Recurring booking pattern owned by a single member."""

    __tablename__ = "recurring_series"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    recurrence_rule: Mapped[str] = mapped_column(String(500), nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    series_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    series_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    max_advance_days: Mapped[int] = mapped_column(Integer, nullable=False, default=90)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=SeriesStatus.ACTIVE.value)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, onupdate=func.now())

    reservations: Mapped[List["Reservation"]] = relationship(
        "Reservation", back_populates="recurring_series", order_by="Reservation.instance_date"
    )
    user: Mapped["User"] = relationship("User")

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_recurring_series_duration"),
        CheckConstraint("max_advance_days > 0", name="ck_recurring_series_horizon"),
        Index("idx_recurring_series_status", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == SeriesStatus.ACTIVE.value

    def spans(self, day: date) -> bool:
        """True when ``day`` falls between the series start and end dates."""
        if day < self.series_start_date:
            return False
        return self.series_end_date is None or day <= self.series_end_date

    def __repr__(self) -> str:
        return f"<RecurringSeries {self.id} rule={self.recurrence_rule!r} status={self.status}>"
