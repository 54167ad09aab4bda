# backend/app/models/production.py
"""
Production model.

Productions (shows, events) are owned by the events team and only read by the
booking core: a production held at the space blocks it just like a reservation.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
import ulid

from ..database import Base
from ..domain.intervals import TimeInterval


class Production(Base):
    """A scheduled production, possibly hosted at an external venue."""

    __tablename__ = "productions"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    start_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    is_external: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    venue_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)

    __table_args__ = (Index("idx_productions_time_range", "start_time", "end_time"),)

    @property
    def interval(self) -> Optional[TimeInterval]:
        if self.start_time is None or self.end_time is None:
            return None
        return TimeInterval(self.start_time, self.end_time)

    @property
    def is_resource_occupying(self) -> bool:
        """External productions happen elsewhere and leave the space free."""
        return not self.is_external and self.interval is not None

    def __repr__(self) -> str:
        return f"<Production {self.title!r} {self.start_time}-{self.end_time} external={self.is_external}>"
