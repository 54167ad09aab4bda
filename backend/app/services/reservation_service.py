# backend/app/services/reservation_service.py
"""
Reservation Service for the practice space.

The single path through which bookings are created, changed, confirmed and
cancelled. Each write runs validation, pricing, the credit ledger and the
reservation row in one transaction, so the ledger and the reservations never
disagree about how many free hours a booking used.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.credits import hours_to_blocks
from ..core.enums import CreditSource, CreditType, ReservationStatus
from ..core.exceptions import (
    BusinessRuleException,
    NotFoundException,
    ReservationValidationException,
    ValidationException,
)
from ..core.timezone_utils import Clock, to_space_time
from ..events import EventPublisher, ReservationCancelled, ReservationCreated
from ..models.reservation import Reservation
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from .base import BaseService
from .conflict_checker import ConflictChecker, ConflictReport, format_hour, operating_window
from .credit_service import CreditService

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
USAGE_SOURCES = (
    CreditSource.RESERVATION_USAGE.value,
    CreditSource.RESERVATION_CANCELLATION.value,
)


def _format_number(value: float) -> str:
    return f"{value:g}"


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _duration_hours(start: datetime, end: datetime) -> Decimal:
    minutes = max(int((end - start).total_seconds() // 60), 0)
    return Decimal(minutes) / Decimal(60)


def _days_touched(start: datetime, end: datetime) -> List[date]:
    last = (end - timedelta(microseconds=1)).date() if end > start else start.date()
    days = []
    current = start.date()
    while current <= last:
        days.append(current)
        current += timedelta(days=1)
    return days


@dataclass
class CostBreakdown:
    """Price preview for a reservation. Money and hours are Decimals."""

    total_hours: Decimal
    free_hours: Decimal
    paid_hours: Decimal
    hourly_rate: Decimal
    cost: Decimal
    free_blocks: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_hours": self.total_hours,
            "free_hours": self.free_hours,
            "paid_hours": self.paid_hours,
            "hourly_rate": self.hourly_rate,
            "cost": self.cost,
            "free_blocks": self.free_blocks,
        }


@dataclass
class ReservationPreview:
    errors: List[str] = field(default_factory=list)
    conflicts: List[Dict[str, Any]] = field(default_factory=list)
    cost: Optional[CostBreakdown] = None

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class MonthlyUsage:
    user_id: str
    month: str
    reservations: int
    total_hours: Decimal
    free_hours: Decimal
    cost: Decimal


class ReservationService(BaseService):
    """
    Validates, prices and persists reservations of the practice space.

    Conflict checks go through ConflictChecker; credit funding through
    CreditService with ``use_transaction=False`` so it joins this service's
    transaction.
    """

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        conflict_checker: Optional[ConflictChecker] = None,
        credit_service: Optional[CreditService] = None,
        refund_on_cancel: Optional[bool] = None,
    ):
        super().__init__(db, clock=clock)
        self.repository = RepositoryFactory.create_reservation_repository(db)
        self.credit_repository = RepositoryFactory.create_credit_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.conflict_checker = conflict_checker or ConflictChecker(db, clock=self.clock)
        self.credit_service = credit_service or CreditService(db, clock=self.clock)
        self.refund_on_cancel = (
            settings.refund_credits_on_cancel if refund_on_cancel is None else refund_on_cancel
        )

    # Validation and pricing

    def _check(
        self,
        start: datetime,
        end: datetime,
        exclude_reservation_id: Optional[str] = None,
    ) -> Tuple[List[str], Optional[ConflictReport]]:
        errors: List[str] = []

        if start <= self.now():
            errors.append("Reservation start time must be in the future.")

        if end <= start:
            errors.append("End time must be after start time.")
            return errors, None

        hours = (end - start).total_seconds() / 3600
        if hours < settings.min_reservation_hours:
            errors.append(
                f"Minimum reservation duration is "
                f"{_format_number(settings.min_reservation_hours)} hour(s)."
            )
        if hours > settings.max_reservation_hours:
            errors.append(
                f"Maximum reservation duration is "
                f"{_format_number(settings.max_reservation_hours)} hours."
            )

        window = operating_window(start.date())
        if start < window.start or end > window.end:
            errors.append(
                f"Reservations are only allowed between "
                f"{format_hour(settings.operating_open_hour)} and "
                f"{format_hour(settings.operating_close_hour)}."
            )

        report = self.conflict_checker.get_conflicts(
            start, end, exclude_reservation_id=exclude_reservation_id
        )
        if report.has_conflicts:
            errors.append(report.describe())
        return errors, report

    @BaseService.measure_operation("validate_reservation")
    def validate(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        exclude_reservation_id: Optional[str] = None,
    ) -> List[str]:
        """
        Every reason the booking can't be made, in display order.

        An empty list means the interval is bookable. Never raises for a rule
        violation.
        """
        errors, _ = self._check(to_space_time(start), to_space_time(end), exclude_reservation_id)
        return errors

    @BaseService.measure_operation("calculate_cost")
    def calculate_cost(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        held_blocks: int = 0,
        lock_balance: bool = False,
    ) -> CostBreakdown:
        """
        Preview the split between credit-funded and paid hours.

        Only sustaining members get free hours, up to their current balance
        plus ``held_blocks`` already charged to the booking being changed.
        Nothing is spent here. With ``lock_balance`` the balance row is locked
        first, so a write that follows can spend exactly what was priced.
        """
        user = self.user_repository.get_by_id(user_id, load_relationships=False)
        if user is None:
            raise NotFoundException(f"User {user_id} not found", code="USER_NOT_FOUND")

        total_hours = _duration_hours(start, end)
        free_hours = Decimal(0)
        if user.is_credit_eligible:
            read_balance = (
                self.credit_service.lock_balance if lock_balance else self.credit_service.get_balance
            )
            blocks = read_balance(user_id, CreditType.FREE_HOURS) + held_blocks
            available_hours = Decimal(blocks * settings.minutes_per_block) / Decimal(60)
            free_hours = min(total_hours, available_hours)
        return self._breakdown(total_hours, free_hours)

    def _breakdown(self, total_hours: Decimal, free_hours: Decimal) -> CostBreakdown:
        rate = Decimal(settings.hourly_rate)
        paid_hours = total_hours - free_hours
        return CostBreakdown(
            total_hours=_quantize(total_hours),
            free_hours=_quantize(free_hours),
            paid_hours=_quantize(paid_hours),
            hourly_rate=_quantize(rate),
            cost=_quantize(paid_hours * rate),
            free_blocks=hours_to_blocks(float(free_hours), settings.minutes_per_block),
        )

    def _explicit_credit_breakdown(
        self, start: datetime, end: datetime, credit_hours: float
    ) -> CostBreakdown:
        """Fund ``credit_hours`` (capped at the booking length) from credits."""
        if credit_hours < 0:
            raise ValidationException("credit_hours cannot be negative", code="INVALID_AMOUNT")
        total_hours = _duration_hours(start, end)
        return self._breakdown(total_hours, min(Decimal(str(credit_hours)), total_hours))

    @BaseService.measure_operation("preview_reservation")
    def preview(self, user_id: str, start: datetime, end: datetime) -> ReservationPreview:
        """Validation errors plus the cost preview, without writing anything."""
        start, end = to_space_time(start), to_space_time(end)
        errors, report = self._check(start, end)
        preview = ReservationPreview(
            errors=errors,
            conflicts=report.to_dicts() if report is not None else [],
        )
        if end > start:
            preview.cost = self.calculate_cost(user_id, start, end)
        return preview

    def _held_blocks(self, reservation: Reservation) -> int:
        """Blocks currently charged to ``reservation`` (spends minus refunds)."""
        net = self.credit_repository.get_net_amount_for_source(
            user_id=reservation.user_id,
            credit_type=CreditType.FREE_HOURS.value,
            source_id=reservation.id,
            sources=USAGE_SOURCES,
        )
        return max(-net, 0)

    def _raise_if_invalid(
        self, start: datetime, end: datetime, exclude_reservation_id: Optional[str] = None
    ) -> None:
        errors, report = self._check(start, end, exclude_reservation_id)
        if errors:
            conflicts = report.to_dicts() if report is not None else []
            self.logger.info(f"Rejected reservation {start}-{end}: {errors}")
            raise ReservationValidationException(errors, conflicts=conflicts)

    # Lifecycle

    def get_reservation(self, reservation_id: str) -> Reservation:
        reservation = self.repository.get_by_id(reservation_id)
        if reservation is None:
            raise NotFoundException(
                f"Reservation {reservation_id} not found", code="RESERVATION_NOT_FOUND"
            )
        return reservation

    @BaseService.measure_operation("create_reservation")
    def create(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        *,
        status: Optional[ReservationStatus] = None,
        notes: Optional[str] = None,
        credit_hours: Optional[float] = None,
        recurring_series_id: Optional[str] = None,
        instance_date: Optional[date] = None,
        production_id: Optional[str] = None,
        use_transaction: bool = True,
    ) -> Reservation:
        """
        Book the space for ``[start, end)``.

        Args:
            user_id: Owner of the reservation
            start: Start, naive space-local or timezone-aware
            end: End (exclusive)
            status: Initial status, confirmed unless given
            notes: Free-form notes
            credit_hours: Hours the caller explicitly wants funded from credits;
                more than the balance covers raises InsufficientCreditsException
            recurring_series_id: Series this reservation materializes
            instance_date: Occurrence date within the series
            production_id: Production the booking is for, if any

        Raises:
            ReservationValidationException: With every failed rule
            InsufficientCreditsException: When explicit credit funding can't be covered
        """
        self.log_operation("create_reservation", user_id=user_id, start=str(start), end=str(end))
        start, end = to_space_time(start), to_space_time(end)
        initial_status = ReservationStatus(status or ReservationStatus.CONFIRMED)

        def _create() -> Reservation:
            if settings.close_booking_race:
                self.repository.lock_days(_days_touched(start, end))
            self._raise_if_invalid(start, end)

            cost = self.calculate_cost(user_id, start, end, lock_balance=True)
            if credit_hours is not None:
                cost = self._explicit_credit_breakdown(start, end, credit_hours)

            reservation = self.repository.create(
                user_id=user_id,
                reserved_at=start,
                reserved_until=end,
                status=initial_status.value,
                hours_used=cost.total_hours,
                free_hours_used=cost.free_hours,
                cost=cost.cost,
                notes=notes,
                recurring_series_id=recurring_series_id,
                instance_date=instance_date,
                production_id=production_id,
            )
            if cost.free_blocks:
                self.credit_service.spend(
                    user_id,
                    cost.free_blocks,
                    CreditSource.RESERVATION_USAGE,
                    CreditType.FREE_HOURS,
                    source_id=reservation.id,
                    description=f"Reservation on {start:%Y-%m-%d %H:%M}",
                    use_transaction=False,
                )

            EventPublisher.publish_after_commit(
                self.db,
                ReservationCreated(
                    reservation_id=reservation.id,
                    user_id=user_id,
                    reserved_at=start,
                    reserved_until=end,
                    status=reservation.status,
                    free_hours_used=float(cost.free_hours),
                    cost=str(cost.cost),
                    recurring_series_id=recurring_series_id,
                ),
            )
            prometheus_metrics.inc_reservation("created")
            self.logger.info(
                f"Created reservation {reservation.id} for {user_id} {start}-{end} "
                f"(free {cost.free_hours}h, cost {cost.cost})"
            )
            return reservation

        if use_transaction:
            with self.transaction():
                return _create()
        return _create()

    @BaseService.measure_operation("update_reservation")
    def update(
        self,
        reservation_id: str,
        start: datetime,
        end: datetime,
        notes: Optional[str] = None,
        *,
        use_transaction: bool = True,
    ) -> Reservation:
        """
        Move or resize a reservation, re-pricing it.

        Extra free hours are spent from the ledger; surplus blocks go back only
        when refunds are enabled.
        """
        start, end = to_space_time(start), to_space_time(end)

        def _update() -> Reservation:
            reservation = self.repository.lock_for_update(reservation_id)
            if reservation is None:
                raise NotFoundException(
                    f"Reservation {reservation_id} not found", code="RESERVATION_NOT_FOUND"
                )
            if reservation.is_cancelled:
                raise BusinessRuleException(
                    "Cancelled reservations cannot be changed", code="RESERVATION_CANCELLED"
                )

            if settings.close_booking_race:
                self.repository.lock_days(_days_touched(start, end))
            self._raise_if_invalid(start, end, exclude_reservation_id=reservation.id)

            held = self._held_blocks(reservation)
            cost = self.calculate_cost(
                reservation.user_id, start, end, held_blocks=held, lock_balance=True
            )
            difference = cost.free_blocks - held
            if difference > 0:
                self.credit_service.spend(
                    reservation.user_id,
                    difference,
                    CreditSource.RESERVATION_USAGE,
                    CreditType.FREE_HOURS,
                    source_id=reservation.id,
                    description="Reservation extended",
                    use_transaction=False,
                )
            elif difference < 0 and self.refund_on_cancel:
                self.credit_service.grant(
                    reservation.user_id,
                    -difference,
                    CreditSource.RESERVATION_CANCELLATION,
                    CreditType.FREE_HOURS,
                    source_id=reservation.id,
                    description="Reservation shortened",
                    use_transaction=False,
                )

            reservation.reserved_at = start
            reservation.reserved_until = end
            reservation.hours_used = cost.total_hours
            reservation.free_hours_used = cost.free_hours
            reservation.cost = cost.cost
            if notes is not None:
                reservation.notes = notes
            self.repository.flush()

            prometheus_metrics.inc_reservation("updated")
            self.logger.info(f"Updated reservation {reservation.id} to {start}-{end}")
            return reservation

        if use_transaction:
            with self.transaction():
                return _update()
        return _update()

    @BaseService.measure_operation("confirm_reservation")
    def confirm(self, reservation_id: str) -> Reservation:
        """Move a pending reservation to confirmed."""
        with self.transaction():
            reservation = self.repository.lock_for_update(reservation_id)
            if reservation is None:
                raise NotFoundException(
                    f"Reservation {reservation_id} not found", code="RESERVATION_NOT_FOUND"
                )
            if not reservation.is_pending:
                raise BusinessRuleException(
                    f"Only pending reservations can be confirmed (status is {reservation.status})",
                    code="RESERVATION_NOT_PENDING",
                )
            reservation.status = ReservationStatus.CONFIRMED.value
            self.repository.flush()

        prometheus_metrics.inc_reservation("confirmed")
        self.logger.info(f"Confirmed reservation {reservation_id}")
        return reservation

    @BaseService.measure_operation("cancel_reservation")
    def cancel(
        self,
        reservation_id: str,
        reason: Optional[str] = None,
        *,
        use_transaction: bool = True,
    ) -> Reservation:
        """
        Cancel a reservation, recording ``reason`` in its notes.

        Credit blocks spent on it are granted back when refunds are enabled.
        Cancelling an already cancelled reservation changes nothing.
        """

        def _cancel() -> Reservation:
            reservation = self.repository.lock_for_update(reservation_id)
            if reservation is None:
                raise NotFoundException(
                    f"Reservation {reservation_id} not found", code="RESERVATION_NOT_FOUND"
                )
            if reservation.is_cancelled:
                return reservation

            reservation.status = ReservationStatus.CANCELLED.value
            reservation.cancelled_at = self.now()
            if reason:
                reservation.cancellation_reason = reason
                reservation.append_note(f"Cancellation reason: {reason}")

            refunded = 0
            if self.refund_on_cancel:
                refunded = self._held_blocks(reservation)
                if refunded:
                    self.credit_service.grant(
                        reservation.user_id,
                        refunded,
                        CreditSource.RESERVATION_CANCELLATION,
                        CreditType.FREE_HOURS,
                        source_id=reservation.id,
                        description="Reservation cancelled",
                        use_transaction=False,
                    )
            self.repository.flush()

            EventPublisher.publish_after_commit(
                self.db,
                ReservationCancelled(
                    reservation_id=reservation.id,
                    user_id=reservation.user_id,
                    cancelled_at=reservation.cancelled_at,
                    reason=reason,
                    refunded_blocks=refunded,
                ),
            )
            prometheus_metrics.inc_reservation("cancelled")
            self.logger.info(
                f"Cancelled reservation {reservation.id} (refunded {refunded} blocks): {reason}"
            )
            return reservation

        if use_transaction:
            with self.transaction():
                return _cancel()
        return _cancel()

    def record_skipped_occurrence(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        *,
        recurring_series_id: str,
        instance_date: date,
        reason: str,
        use_transaction: bool = True,
    ) -> Reservation:
        """
        Persist a cancelled, zero-cost placeholder for a series occurrence.

        Placeholders don't hold the space, so no validation runs.
        """

        def _record() -> Reservation:
            placeholder = self.repository.create(
                user_id=user_id,
                reserved_at=start,
                reserved_until=end,
                status=ReservationStatus.CANCELLED.value,
                hours_used=Decimal("0"),
                free_hours_used=Decimal("0"),
                cost=Decimal("0"),
                cancellation_reason=reason,
                cancelled_at=self.now(),
                recurring_series_id=recurring_series_id,
                instance_date=instance_date,
            )
            self.logger.warning(
                f"Skipped series {recurring_series_id} occurrence on {instance_date}: {reason}"
            )
            return placeholder

        if use_transaction:
            with self.transaction():
                return _record()
        return _record()

    @BaseService.measure_operation("get_user_usage_for_month")
    def get_user_usage_for_month(self, user_id: str, month: date) -> MonthlyUsage:
        """Hours, free hours and cost of a member's non-cancelled bookings in ``month``."""
        first = datetime(month.year, month.month, 1)
        following = datetime(month.year + (month.month // 12), month.month % 12 + 1, 1)
        reservations = self.repository.get_user_reservations_between(user_id, first, following)
        return MonthlyUsage(
            user_id=user_id,
            month=first.strftime("%Y-%m"),
            reservations=len(reservations),
            total_hours=sum((Decimal(r.hours_used) for r in reservations), Decimal("0")),
            free_hours=sum((Decimal(r.free_hours_used) for r in reservations), Decimal("0")),
            cost=sum((Decimal(r.cost) for r in reservations), Decimal("0")),
        )
