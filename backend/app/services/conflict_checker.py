# backend/app/services/conflict_checker.py
"""
Conflict Checker Service for the practice space.

Handles conflict detection for the shared room:
- Checking whether an interval collides with reservations or on-site productions
- Enumerating free gaps in a day's operating window
- Listing bookable start times for a given duration

Every overlap decision goes through ``app.domain.intervals.overlaps``. Nothing
here raises for "there is a conflict"; callers get a report and decide.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.timezone_utils import Clock
from ..domain.intervals import TimeInterval, find_gaps, occupied_intervals, overlaps
from ..models.production import Production
from ..models.reservation import Reservation
from ..repositories import RepositoryFactory
from ..repositories.conflict_checker_repository import ConflictCheckerRepository
from .base import BaseService

logger = logging.getLogger(__name__)

SLOT_STEP_MINUTES = 30


def format_clock_time(moment: datetime) -> str:
    """``14:00`` -> ``2:00 PM``."""
    return moment.strftime("%I:%M %p").lstrip("0")


def format_hour(hour: int) -> str:
    """``9`` -> ``9 AM``, ``22`` -> ``10 PM``, ``24`` -> ``12 AM``."""
    hour = hour % 24
    suffix = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12} {suffix}"


def operating_window(day: date) -> TimeInterval:
    """The day's bookable window according to the configured operating hours."""
    midnight = datetime.combine(day, time(0))
    return TimeInterval(
        midnight + timedelta(hours=settings.operating_open_hour),
        midnight + timedelta(hours=settings.operating_close_hour),
    )


@dataclass
class ConflictReport:
    """Everything that overlaps a candidate interval."""

    interval: TimeInterval
    reservations: List[Reservation] = field(default_factory=list)
    productions: List[Production] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.reservations or self.productions)

    def describe(self) -> str:
        """Human readable summary naming who holds the space and when."""
        parts = []
        for reservation in self.reservations:
            owner = reservation.user.name if reservation.user is not None else reservation.user_id
            parts.append(
                f"{owner} ({format_clock_time(reservation.reserved_at)}"
                f"-{format_clock_time(reservation.reserved_until)})"
            )
        for production in self.productions:
            parts.append(
                f"{production.title} ({format_clock_time(production.start_time)}"
                f"-{format_clock_time(production.end_time)})"
            )
        return "Time slot conflicts with: " + ", ".join(parts)

    def to_dicts(self) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = [
            {
                "type": "reservation",
                "id": reservation.id,
                "owner": reservation.user.name if reservation.user is not None else None,
                "start": reservation.reserved_at.isoformat(),
                "end": reservation.reserved_until.isoformat(),
                "status": reservation.status,
            }
            for reservation in self.reservations
        ]
        items.extend(
            {
                "type": "production",
                "id": production.id,
                "title": production.title,
                "start": production.start_time.isoformat(),
                "end": production.end_time.isoformat(),
            }
            for production in self.productions
        )
        return items


class ConflictChecker(BaseService):
    """
    Service for checking booking conflicts on the practice space.

    Reservations and productions are both ``Occupying``: the same predicate
    decides whether either one blocks a candidate interval.
    """

    def __init__(
        self,
        db: Session,
        repository: Optional[ConflictCheckerRepository] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(db, clock=clock)
        self.logger = logging.getLogger(__name__)
        self.repository = repository or RepositoryFactory.create_conflict_checker_repository(db)

    @BaseService.measure_operation("get_conflicts")
    def get_conflicts(
        self,
        start: datetime,
        end: datetime,
        exclude_reservation_id: Optional[str] = None,
        exclude_production_id: Optional[str] = None,
    ) -> ConflictReport:
        """
        Find everything holding the space during ``[start, end)``.

        Args:
            start: Candidate start
            end: Candidate end (exclusive)
            exclude_reservation_id: Reservation being modified, ignored
            exclude_production_id: Production being modified, ignored

        Returns:
            ConflictReport, empty when the interval is free, empty or inverted
        """
        if end <= start:
            return ConflictReport(interval=TimeInterval(start, start))

        candidate = TimeInterval(start, end)
        report = ConflictReport(interval=candidate)

        for reservation in self.repository.get_reservations_overlapping(
            start, end, exclude_reservation_id
        ):
            if reservation.is_resource_occupying and overlaps(candidate, reservation.interval):
                report.reservations.append(reservation)

        for production in self.repository.get_productions_overlapping(
            start, end, exclude_production_id
        ):
            interval = production.interval
            if production.is_resource_occupying and interval is not None and overlaps(candidate, interval):
                report.productions.append(production)

        if report.has_conflicts:
            self.logger.warning(
                f"Found {len(report.reservations)} reservation and "
                f"{len(report.productions)} production conflicts for {start}-{end}"
            )
        return report

    def has_conflicts(
        self,
        start: datetime,
        end: datetime,
        exclude_reservation_id: Optional[str] = None,
        exclude_production_id: Optional[str] = None,
    ) -> bool:
        return self.get_conflicts(
            start, end, exclude_reservation_id, exclude_production_id
        ).has_conflicts

    def is_time_slot_available(
        self,
        start: datetime,
        end: datetime,
        exclude_reservation_id: Optional[str] = None,
    ) -> bool:
        """True when nothing holds the space during ``[start, end)``."""
        return not self.has_conflicts(start, end, exclude_reservation_id)

    def _busy_intervals(self, window: TimeInterval) -> List[TimeInterval]:
        reservations = self.repository.get_reservations_overlapping(window.start, window.end)
        productions = self.repository.get_productions_overlapping(window.start, window.end)
        return occupied_intervals([*reservations, *productions])

    @BaseService.measure_operation("find_available_gaps")
    def find_available_gaps(
        self, day: date, minimum_duration_minutes: int = 60
    ) -> List[TimeInterval]:
        """
        Maximal free stretches of ``day``'s operating window, chronologically.

        Gaps shorter than ``minimum_duration_minutes`` are left out.
        """
        window = operating_window(day)
        return find_gaps(
            window,
            self._busy_intervals(window),
            minimum=timedelta(minutes=minimum_duration_minutes),
        )

    @BaseService.measure_operation("get_available_time_slots")
    def get_available_time_slots(
        self, day: date, duration_hours: float = 1
    ) -> List[TimeInterval]:
        """
        Bookable ``duration_hours`` slots on ``day``, starting on the half hour.

        Slots that have already started are not offered.
        """
        window = operating_window(day)
        busy = self._busy_intervals(window)
        duration = timedelta(hours=duration_hours)
        step = timedelta(minutes=SLOT_STEP_MINUTES)
        now = self.now()

        slots: List[TimeInterval] = []
        cursor = window.start
        while cursor + duration <= window.end:
            candidate = TimeInterval(cursor, cursor + duration)
            if cursor > now and not any(overlaps(candidate, block) for block in busy):
                slots.append(candidate)
            cursor += step
        return slots
