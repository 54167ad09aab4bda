"""Tests for the human-readable parts of conflict reports."""

from datetime import date, datetime
from unittest.mock import MagicMock

import pytest

from app.domain.intervals import TimeInterval
from app.services.conflict_checker import (
    ConflictReport,
    format_clock_time,
    format_hour,
    operating_window,
)


@pytest.mark.parametrize(
    "hour,expected",
    [(0, "12 AM"), (9, "9 AM"), (12, "12 PM"), (13, "1 PM"), (22, "10 PM"), (24, "12 AM")],
)
def test_format_hour(hour, expected):
    assert format_hour(hour) == expected


def test_format_clock_time():
    assert format_clock_time(datetime(2026, 3, 3, 14, 0)) == "2:00 PM"
    assert format_clock_time(datetime(2026, 3, 3, 9, 30)) == "9:30 AM"


def test_operating_window_uses_configured_hours():
    window = operating_window(date(2026, 3, 3))
    assert window == TimeInterval(datetime(2026, 3, 3, 9), datetime(2026, 3, 3, 22))


def test_describe_names_owners_and_productions():
    reservation = MagicMock()
    reservation.user.name = "Jo Drummer"
    reservation.reserved_at = datetime(2026, 3, 3, 14)
    reservation.reserved_until = datetime(2026, 3, 3, 16)
    production = MagicMock()
    production.title = "Open Mic"
    production.start_time = datetime(2026, 3, 3, 15)
    production.end_time = datetime(2026, 3, 3, 18)

    report = ConflictReport(
        interval=TimeInterval(datetime(2026, 3, 3, 15), datetime(2026, 3, 3, 17)),
        reservations=[reservation],
        productions=[production],
    )

    assert report.has_conflicts
    assert report.describe() == (
        "Time slot conflicts with: Jo Drummer (2:00 PM-4:00 PM), Open Mic (3:00 PM-6:00 PM)"
    )


def test_empty_report_has_no_conflicts():
    report = ConflictReport(
        interval=TimeInterval(datetime(2026, 3, 3, 15), datetime(2026, 3, 3, 17))
    )
    assert not report.has_conflicts
    assert report.to_dicts() == []
