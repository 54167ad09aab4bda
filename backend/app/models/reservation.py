# backend/app/models/reservation.py
"""
Reservation model for the practice space.

A reservation holds the room for a half-open ``[reserved_at, reserved_until)``
window. Times are naive wall-clock values in the space's timezone.
Reservations are never deleted; cancelling is a status change, which also
takes the row out of conflict checks.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import ReservationStatus
from ..database import Base
from ..domain.intervals import TimeInterval

if TYPE_CHECKING:
    from .production import Production
    from .recurring_series import RecurringSeries
    from .user import User


class Reservation(Base):
    """
    A single booking of the space.

    ``free_hours_used`` is the part of ``hours_used`` funded by credits and
    ``cost`` is what the member pays for the rest.
    """

    __tablename__ = "reservations"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)

    reserved_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    reserved_until: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReservationStatus.CONFIRMED.value
    )

    hours_used: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0"))
    free_hours_used: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    recurring_series_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("recurring_series.id"), nullable=True
    )
    instance_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    production_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("productions.id"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, onupdate=func.now())

    user: Mapped["User"] = relationship("User", lazy="joined")
    recurring_series: Mapped[Optional["RecurringSeries"]] = relationship(
        "RecurringSeries", back_populates="reservations"
    )
    production: Mapped[Optional["Production"]] = relationship("Production")

    __table_args__ = (
        CheckConstraint("reserved_until > reserved_at", name="ck_reservations_time_order"),
        CheckConstraint("free_hours_used <= hours_used", name="ck_reservations_free_hours"),
        CheckConstraint("cost >= 0", name="ck_reservations_cost_non_negative"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled')", name="ck_reservations_status"
        ),
        UniqueConstraint(
            "recurring_series_id", "instance_date", name="uq_reservations_series_instance"
        ),
        Index("idx_reservations_time_range", "reserved_at", "reserved_until"),
        Index("idx_reservations_user_status", "user_id", "status"),
    )

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.reserved_at, self.reserved_until)

    @property
    def is_resource_occupying(self) -> bool:
        return self.status != ReservationStatus.CANCELLED.value

    @property
    def is_cancelled(self) -> bool:
        return self.status == ReservationStatus.CANCELLED.value

    @property
    def is_pending(self) -> bool:
        return self.status == ReservationStatus.PENDING.value

    @property
    def paid_hours(self) -> Decimal:
        return Decimal(self.hours_used) - Decimal(self.free_hours_used)

    def append_note(self, text: str) -> None:
        self.notes = f"{self.notes}\n{text}" if self.notes else text

    def __repr__(self) -> str:
        return (
            f"<Reservation {self.id} user={self.user_id} "
            f"{self.reserved_at}-{self.reserved_until} status={self.status}>"
        )
