# backend/app/services/recurrence.py
"""
Recurrence rule expansion.

Rules are RFC 5545 RRULE strings (``FREQ=WEEKLY;BYDAY=TU``). Expansion is
delegated to python-dateutil; the materializer only sees ordered dates.
"""

from datetime import date, datetime, time
from typing import Iterator, List, Optional, Protocol, Sequence, runtime_checkable

from dateutil.rrule import rrulestr

from ..core.exceptions import ValidationException

FREQUENCIES = ("DAILY", "WEEKLY", "MONTHLY", "YEARLY")
WEEKDAYS = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")


@runtime_checkable
class RecurrenceExpander(Protocol):
    """Turns a rule into occurrence dates."""

    def iterate(self, rule: str, dtstart: date, after: Optional[date] = None) -> Iterator[date]:
        """Lazy, ascending, possibly endless occurrences on or after ``after``."""
        ...

    def occurrences(self, rule: str, dtstart: date, window_start: date, window_end: date) -> Iterator[date]:
        """Occurrences in ``[window_start, window_end)``, ascending."""
        ...

    def is_occurrence(self, rule: str, dtstart: date, day: date) -> bool:
        """True when the rule produces ``day`` itself."""
        ...


def normalize_rule(rule: str) -> str:
    normalized = (rule or "").strip()
    if normalized.upper().startswith("RRULE:"):
        normalized = normalized[len("RRULE:"):]
    return normalized


def validate_rule(rule: str) -> str:
    """Return the normalized rule, or raise ValidationException if dateutil can't parse it."""
    normalized = normalize_rule(rule)
    if not normalized:
        raise ValidationException("Recurrence rule is required", code="INVALID_RECURRENCE_RULE")
    if "DTSTART" in normalized.upper():
        raise ValidationException(
            "Recurrence rule must not carry DTSTART; the series start date is used",
            code="INVALID_RECURRENCE_RULE",
        )
    try:
        rrulestr(normalized, dtstart=datetime(2000, 1, 1))
    except (ValueError, TypeError) as exc:
        raise ValidationException(
            f"Invalid recurrence rule: {normalized}", code="INVALID_RECURRENCE_RULE"
        ) from exc
    return normalized


def build_rrule(
    frequency: str,
    interval: int = 1,
    by_day: Optional[Sequence[str]] = None,
    by_month_day: Optional[Sequence[int]] = None,
    by_set_pos: Optional[Sequence[int]] = None,
) -> str:
    """
    Compose a rule string from its parts.

    >>> build_rrule("MONTHLY", by_day=["TU"], by_set_pos=[2])
    'FREQ=MONTHLY;INTERVAL=1;BYDAY=TU;BYSETPOS=2'
    """
    freq = frequency.upper()
    if freq not in FREQUENCIES:
        raise ValidationException(f"Unsupported frequency: {frequency}", code="INVALID_RECURRENCE_RULE")
    if interval < 1:
        raise ValidationException("Interval must be at least 1", code="INVALID_RECURRENCE_RULE")

    parts: List[str] = [f"FREQ={freq}", f"INTERVAL={interval}"]
    if by_day:
        days = [day.upper() for day in by_day]
        if any(day not in WEEKDAYS for day in days):
            raise ValidationException(f"Invalid weekday in {by_day}", code="INVALID_RECURRENCE_RULE")
        parts.append("BYDAY=" + ",".join(days))
    if by_month_day:
        parts.append("BYMONTHDAY=" + ",".join(str(day) for day in by_month_day))
    if by_set_pos:
        parts.append("BYSETPOS=" + ",".join(str(pos) for pos in by_set_pos))
    return validate_rule(";".join(parts))


class RRuleExpander:
    """RecurrenceExpander backed by ``dateutil.rrule.rrulestr``."""

    def iterate(self, rule: str, dtstart: date, after: Optional[date] = None) -> Iterator[date]:
        parsed = rrulestr(normalize_rule(rule), dtstart=datetime.combine(dtstart, time(0)))
        start_from = datetime.combine(max(after or dtstart, dtstart), time(0))
        for occurrence in parsed.xafter(start_from, inc=True):
            yield occurrence.date()

    def occurrences(self, rule: str, dtstart: date, window_start: date, window_end: date) -> Iterator[date]:
        for occurrence in self.iterate(rule, dtstart, after=window_start):
            if occurrence >= window_end:
                return
            yield occurrence

    def is_occurrence(self, rule: str, dtstart: date, day: date) -> bool:
        return next(self.iterate(rule, dtstart, after=day), None) == day
