"""Tests for half-open interval arithmetic."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import pytest

from app.domain.intervals import (
    Occupying,
    TimeInterval,
    find_gaps,
    merge_intervals,
    occupied_intervals,
    overlaps,
)

DAY = datetime(2026, 3, 3)


def iv(start_hour: float, end_hour: float) -> TimeInterval:
    return TimeInterval(DAY + timedelta(hours=start_hour), DAY + timedelta(hours=end_hour))


@dataclass
class _Thing:
    interval: Optional[TimeInterval]
    is_resource_occupying: bool = True


class TestOverlaps:
    @pytest.mark.parametrize(
        "a,b,expected",
        [
            (iv(14, 16), iv(15, 17), True),
            (iv(14, 16), iv(14, 16), True),
            (iv(14, 16), iv(14.5, 15), True),
            (iv(14, 16), iv(16, 18), False),
            (iv(14, 16), iv(12, 14), False),
            (iv(14, 16), iv(9, 10), False),
        ],
    )
    def test_overlap_is_symmetric(self, a, b, expected):
        assert overlaps(a, b) is expected
        assert overlaps(b, a) is expected

    def test_shared_boundary_is_not_an_overlap(self):
        """[14,16) and [16,18) only touch at 16:00, which neither occupies."""
        assert not overlaps(iv(14, 16), iv(16, 18))


class TestTimeInterval:
    def test_rejects_inverted_range(self):
        with pytest.raises(ValueError):
            iv(16, 14)

    def test_durations(self):
        interval = iv(14, 15.5)
        assert interval.duration == timedelta(minutes=90)
        assert interval.duration_minutes == 90
        assert interval.duration_hours == 1.5

    def test_contains(self):
        assert iv(9, 22).contains(iv(14, 16))
        assert not iv(9, 22).contains(iv(8, 10))


class TestOccupiedIntervals:
    def test_skips_items_not_holding_the_space(self):
        things = [
            _Thing(iv(16, 17)),
            _Thing(iv(10, 11), is_resource_occupying=False),
            _Thing(None),
            _Thing(iv(12, 13)),
        ]
        assert occupied_intervals(things) == [iv(12, 13), iv(16, 17)]

    def test_things_satisfy_protocol(self):
        assert isinstance(_Thing(iv(1, 2)), Occupying)


class TestGaps:
    def test_merge_collapses_overlapping_and_touching(self):
        merged = merge_intervals([iv(13, 14), iv(10, 11), iv(10.5, 12), iv(12, 12.5)])
        assert merged == [iv(10, 12.5), iv(13, 14)]

    def test_gaps_around_busy_blocks(self):
        gaps = find_gaps(iv(9, 22), [iv(10, 11), iv(14, 16)])
        assert gaps == [iv(9, 10), iv(11, 14), iv(16, 22)]

    def test_minimum_drops_short_gaps(self):
        gaps = find_gaps(iv(9, 22), [iv(9.5, 11), iv(14, 21.5)], minimum=timedelta(hours=1))
        assert gaps == [iv(11, 14)]

    def test_busy_outside_window_is_ignored(self):
        assert find_gaps(iv(9, 12), [iv(7, 8), iv(12, 13)]) == [iv(9, 12)]

    def test_fully_booked_day_has_no_gaps(self):
        assert find_gaps(iv(9, 22), [iv(8, 15), iv(15, 23)]) == []

    def test_empty_day_is_one_gap(self):
        assert find_gaps(iv(9, 22), []) == [iv(9, 22)]
