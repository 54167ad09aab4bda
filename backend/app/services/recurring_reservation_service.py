# backend/app/services/recurring_reservation_service.py
"""
Recurring Reservation Service.

Materializes recurring series into concrete reservations up to a rolling
horizon. Every occurrence goes through ReservationService.create in its own
transaction; an occurrence that fails validation becomes a cancelled
placeholder instead of stopping the series, so an interrupted run leaves valid
partial progress and a rerun only fills in the missing dates.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from itertools import islice
from typing import Any, Dict, List, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import ReservationStatus, SeriesStatus
from ..core.exceptions import (
    BusinessRuleException,
    NotFoundException,
    ReservationValidationException,
    ValidationException,
)
from ..core.timezone_utils import Clock
from ..domain.intervals import TimeInterval, overlaps
from ..events import EventPublisher, SeriesMaterialized
from ..models.recurring_series import RecurringSeries
from ..models.reservation import Reservation
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from .base import BaseService
from .conflict_checker import ConflictReport, format_clock_time
from .recurrence import RecurrenceExpander, RRuleExpander, validate_rule
from .reservation_service import ReservationService

CONFLICT_REASON = "Scheduling conflict"
SKIP_REASON = "Skipped by owner"
SHORTENED_REASON = "Recurring series shortened"
PATTERN_LOOKAHEAD = relativedelta(months=3)


@dataclass
class MaterializationResult:
    series_id: str
    created: List[Reservation] = field(default_factory=list)
    skipped_dates: List[date] = field(default_factory=list)


@dataclass
class PatternWarning:
    """One proposed occurrence that would collide with something already booked."""

    date: date
    start: datetime
    end: datetime
    type: str  # existing | recurring
    conflicts: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "time": f"{format_clock_time(self.start)} - {format_clock_time(self.end)}",
            "type": self.type,
            "conflicts": self.conflicts,
        }


@dataclass
class SweepReport:
    """Outcome of materializing every active series."""

    processed: int = 0
    created: int = 0
    skipped: int = 0
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def to_dict(self) -> Dict[str, object]:
        return {
            "processed": self.processed,
            "created": self.created,
            "skipped": self.skipped,
            "failed": self.failed,
            "failures": dict(self.failures),
        }


class RecurringReservationService(BaseService):
    """Creates, materializes, extends and cancels recurring series."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        reservation_service: Optional[ReservationService] = None,
        expander: Optional[RecurrenceExpander] = None,
    ):
        super().__init__(db, clock=clock)
        self.series_repository = RepositoryFactory.create_recurring_series_repository(db)
        self.reservation_repository = RepositoryFactory.create_reservation_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.reservation_service = reservation_service or ReservationService(db, clock=self.clock)
        self.expander = expander or RRuleExpander()

    def get_series(self, series_id: str) -> RecurringSeries:
        series = self.series_repository.get_by_id(series_id)
        if series is None:
            raise NotFoundException(f"Recurring series {series_id} not found", code="SERIES_NOT_FOUND")
        return series

    @BaseService.measure_operation("create_series")
    def create_series(
        self,
        user_id: str,
        rule: str,
        start_date: date,
        start_time: time,
        end_time: time,
        end_date: Optional[date] = None,
        max_advance_days: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> RecurringSeries:
        """
        Create a series for a sustaining member and materialize its first window.

        Raises:
            NotFoundException: Unknown user
            BusinessRuleException: User is not a sustaining member
            ValidationException: Bad rule, times or dates
        """
        user = self.user_repository.get_by_id(user_id, load_relationships=False)
        if user is None:
            raise NotFoundException(f"User {user_id} not found", code="USER_NOT_FOUND")
        if not user.is_credit_eligible:
            raise BusinessRuleException(
                "Only sustaining members can create recurring reservations",
                code="RECURRING_NOT_ALLOWED",
            )

        self.log_operation("create_series", user_id=user_id, rule=rule)
        normalized_rule = validate_rule(rule)
        if end_time <= start_time:
            raise ValidationException("End time must be after start time.", code="INVALID_TIME_RANGE")
        if end_date is not None and end_date < start_date:
            raise ValidationException(
                "Series end date cannot be before its start date", code="INVALID_DATE_RANGE"
            )
        horizon = max_advance_days or settings.recurring_max_advance_days
        if horizon <= 0:
            raise ValidationException("max_advance_days must be positive", code="INVALID_HORIZON")

        duration = datetime.combine(start_date, end_time) - datetime.combine(start_date, start_time)

        with self.transaction():
            series = self.series_repository.create(
                user_id=user_id,
                recurrence_rule=normalized_rule,
                start_time=start_time,
                end_time=end_time,
                duration_minutes=int(duration.total_seconds() // 60),
                series_start_date=start_date,
                series_end_date=end_date,
                max_advance_days=horizon,
                status=SeriesStatus.ACTIVE.value,
                notes=notes,
            )

        self.logger.info(f"Created recurring series {series.id} for {user_id}: {normalized_rule}")
        self.materialize(series.id)
        return series

    def _window(self, series: RecurringSeries) -> tuple:
        today = self.now().date()
        window_start = max(series.series_start_date, today)
        window_end = today + timedelta(days=series.max_advance_days)
        if series.series_end_date is not None:
            window_end = min(window_end, series.series_end_date + timedelta(days=1))
        return window_start, window_end

    def _materialize(self, series: RecurringSeries) -> MaterializationResult:
        result = MaterializationResult(series_id=series.id)
        if not series.is_active:
            return result

        window_start, window_end = self._window(series)
        existing = set(self.reservation_repository.get_series_instance_dates(series.id))
        now = self.now()

        for occurrence in self.expander.occurrences(
            series.recurrence_rule, series.series_start_date, window_start, window_end
        ):
            if occurrence in existing:
                continue
            start = datetime.combine(occurrence, series.start_time)
            end = start + timedelta(minutes=series.duration_minutes)
            if start <= now:
                continue

            try:
                reservation = self.reservation_service.create(
                    series.user_id,
                    start,
                    end,
                    status=ReservationStatus.PENDING,
                    notes=series.notes,
                    recurring_series_id=series.id,
                    instance_date=occurrence,
                )
            except ReservationValidationException as exc:
                reason = CONFLICT_REASON if exc.is_conflict else "; ".join(exc.errors)
                self.reservation_service.record_skipped_occurrence(
                    series.user_id,
                    start,
                    end,
                    recurring_series_id=series.id,
                    instance_date=occurrence,
                    reason=reason,
                )
                result.skipped_dates.append(occurrence)
                continue
            result.created.append(reservation)

        prometheus_metrics.inc_series_occurrences("created", len(result.created))
        prometheus_metrics.inc_series_occurrences("skipped", len(result.skipped_dates))
        if result.created or result.skipped_dates:
            EventPublisher.publish(
                SeriesMaterialized(
                    series_id=series.id,
                    user_id=series.user_id,
                    created_reservation_ids=[r.id for r in result.created],
                    skipped_dates=list(result.skipped_dates),
                )
            )
        self.logger.info(
            f"Materialized series {series.id} over {window_start}..{window_end}: "
            f"{len(result.created)} created, {len(result.skipped_dates)} skipped"
        )
        return result

    @BaseService.measure_operation("materialize_series")
    def materialize(self, series_id: str) -> List[Reservation]:
        """
        Create the missing occurrences of a series inside its horizon.

        Safe to call any number of times: dates that already have a reservation
        or placeholder are left alone. Returns only the newly created bookings.
        """
        return self._materialize(self.get_series(series_id)).created

    @BaseService.measure_operation("skip_instance")
    def skip_instance(
        self, series_id: str, instance_date: date, reason: Optional[str] = None
    ) -> Reservation:
        """Cancel one occurrence, or pre-record it as skipped if not materialized yet."""
        series = self.get_series(series_id)
        existing = self.reservation_repository.get_for_series_date(series.id, instance_date)
        if existing is not None:
            return self.reservation_service.cancel(existing.id, reason or SKIP_REASON)

        if not self._occurs_on(series, instance_date):
            raise ValidationException(
                f"{instance_date} is not an occurrence of series {series.id}",
                code="NOT_A_SERIES_OCCURRENCE",
            )
        start = datetime.combine(instance_date, series.start_time)
        return self.reservation_service.record_skipped_occurrence(
            series.user_id,
            start,
            start + timedelta(minutes=series.duration_minutes),
            recurring_series_id=series.id,
            instance_date=instance_date,
            reason=reason or SKIP_REASON,
        )

    @BaseService.measure_operation("cancel_series")
    def cancel_series(self, series_id: str, reason: Optional[str] = None) -> int:
        """
        Cancel the series and every future, non-cancelled occurrence.

        Past occurrences stay as they are. Returns how many reservations were cancelled.
        """
        with self.transaction():
            series = self.series_repository.lock_for_update(series_id)
            if series is None:
                raise NotFoundException(
                    f"Recurring series {series_id} not found", code="SERIES_NOT_FOUND"
                )
            if not series.is_active:
                return 0

            now = self.now()
            series.status = SeriesStatus.CANCELLED.value
            series.cancelled_at = now
            upcoming = self.reservation_repository.get_future_series_reservations(series.id, now)
            for reservation in upcoming:
                self.reservation_service.cancel(
                    reservation.id, reason or "Recurring series cancelled", use_transaction=False
                )

        self.logger.info(f"Cancelled series {series_id} and {len(upcoming)} upcoming reservations")
        return len(upcoming)

    @BaseService.measure_operation("extend_series")
    def extend_series(self, series_id: str, new_end_date: date) -> List[Reservation]:
        """
        Move the series end date and backfill the newly opened window.

        Moving it earlier cancels the active occurrences after the new end in
        the same transaction, refunding their credits like any cancellation.
        Returns only the newly created reservations.
        """
        with self.transaction():
            series = self.series_repository.lock_for_update(series_id)
            if series is None:
                raise NotFoundException(
                    f"Recurring series {series_id} not found", code="SERIES_NOT_FOUND"
                )
            if not series.is_active:
                raise BusinessRuleException(
                    "Cancelled series cannot be extended", code="SERIES_CANCELLED"
                )
            if new_end_date < series.series_start_date:
                raise ValidationException(
                    "Series end date cannot be before its start date", code="INVALID_DATE_RANGE"
                )
            series.series_end_date = new_end_date

            upcoming = self.reservation_repository.get_future_series_reservations(
                series.id, self.now()
            )
            dropped = [r for r in upcoming if r.instance_date and r.instance_date > new_end_date]
            for reservation in dropped:
                self.reservation_service.cancel(
                    reservation.id, SHORTENED_REASON, use_transaction=False
                )

        if dropped:
            self.logger.info(
                f"Series {series_id} now ends {new_end_date}; cancelled {len(dropped)} occurrences"
            )
        return self.materialize(series_id)

    def _occurs_on(self, series: RecurringSeries, day: date) -> bool:
        return series.spans(day) and self.expander.is_occurrence(
            series.recurrence_rule, series.series_start_date, day
        )

    def _describe_existing(self, report: ConflictReport) -> str:
        parts = []
        if report.reservations:
            names = []
            for reservation in report.reservations:
                name = reservation.user.name if reservation.user is not None else "Unknown"
                if name not in names:
                    names.append(name)
            parts.append("reservation by " + ", ".join(names))
        if report.productions:
            parts.append("production: " + ", ".join(p.title for p in report.productions))
        return ", ".join(parts)

    @BaseService.measure_operation("validate_pattern")
    def validate_pattern(
        self,
        rule: str,
        start_date: date,
        end_date: Optional[date],
        start_time: time,
        end_time: time,
        check_occurrences: int = 8,
        exclude_series_id: Optional[str] = None,
    ) -> List[PatternWarning]:
        """
        Check the first ``check_occurrences`` dates of a proposed pattern.

        Each date is checked against existing bookings and productions
        (``existing``) and against other active series that occur the same day
        at an overlapping time (``recurring``). ``exclude_series_id`` leaves out
        the series being edited, including its own materialized reservations.
        Nothing is written; an empty list means the pattern is clear.
        """
        normalized_rule = validate_rule(rule)
        if end_time <= start_time:
            raise ValidationException("End time must be after start time.", code="INVALID_TIME_RANGE")
        if check_occurrences <= 0:
            return []

        last_day = end_date or start_date + PATTERN_LOOKAHEAD
        dates = islice(
            self.expander.occurrences(
                normalized_rule, start_date, start_date, last_day + timedelta(days=1)
            ),
            check_occurrences,
        )
        checker = self.reservation_service.conflict_checker
        warnings: List[PatternWarning] = []

        for day in dates:
            start = datetime.combine(day, start_time)
            end = datetime.combine(day, end_time)

            report = checker.get_conflicts(start, end)
            if exclude_series_id:
                report.reservations = [
                    r for r in report.reservations if r.recurring_series_id != exclude_series_id
                ]
            if report.has_conflicts:
                warnings.append(
                    PatternWarning(day, start, end, "existing", self._describe_existing(report))
                )

            candidate = TimeInterval(start, end)
            clashing = [
                other
                for other in self.series_repository.get_active_series_spanning(day, exclude_series_id)
                if overlaps(
                    candidate,
                    TimeInterval(
                        datetime.combine(day, other.start_time),
                        datetime.combine(day, other.start_time)
                        + timedelta(minutes=other.duration_minutes),
                    ),
                )
                and self._occurs_on(other, day)
            ]
            if clashing:
                owners = ", ".join(f"{other.user.name}'s recurring rehearsal" for other in clashing)
                warnings.append(PatternWarning(day, start, end, "recurring", owners))

        self.logger.info(
            f"Pattern {normalized_rule} from {start_date} {start_time}-{end_time}: "
            f"{len(warnings)} warnings"
        )
        return warnings

    @BaseService.measure_operation("get_upcoming_instances")
    def get_upcoming_instances(self, series_id: str, limit: int = 10) -> List[Reservation]:
        series = self.get_series(series_id)
        upcoming = self.reservation_repository.get_future_series_reservations(series.id, self.now())
        return upcoming[:limit]

    @BaseService.measure_operation("materialize_all_active")
    def materialize_all_active(self) -> SweepReport:
        """
        Materialize every active series.

        A failing series is rolled back, recorded in the report and the sweep
        moves on to the next one.
        """
        report = SweepReport()
        for series_id in self.series_repository.get_active_series_ids():
            report.processed += 1
            try:
                result = self._materialize(self.get_series(series_id))
            except Exception as exc:
                self.db.rollback()
                self.logger.exception(f"Materialization failed for series {series_id}")
                report.failures[series_id] = f"{type(exc).__name__}: {exc}"
                continue
            report.created += len(result.created)
            report.skipped += len(result.skipped_dates)

        self.logger.info(f"Materialization sweep finished: {report.to_dict()}")
        return report
