# backend/app/models/space_day_lock.py
"""
Per-day lock rows for the practice space.

Booking writers lock the row for every calendar day their interval touches
before checking for conflicts, so check-then-insert runs one writer at a time
per day.
"""

from datetime import date, datetime

from sqlalchemy import Date, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from ..database import Base


class SpaceDayLock(Base):
    __tablename__ = "space_day_locks"

    day: Mapped[date] = mapped_column(Date, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
