"""Half-open time intervals and the overlap rule shared by every booking path."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class TimeInterval:
    """A ``[start, end)`` range. ``end`` itself is not occupied."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError("Interval end must not precede its start")

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_minutes(self) -> float:
        return self.duration.total_seconds() / 60

    @property
    def duration_hours(self) -> float:
        return self.duration.total_seconds() / 3600

    def contains(self, other: "TimeInterval") -> bool:
        return self.start <= other.start and other.end <= self.end


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    """Return True when two half-open intervals share at least one instant."""
    return a.start < b.end and b.start < a.end


@runtime_checkable
class Occupying(Protocol):
    """Anything that may hold the space for a period of time."""

    @property
    def interval(self) -> Optional[TimeInterval]:
        ...

    @property
    def is_resource_occupying(self) -> bool:
        ...


def occupied_intervals(items: Iterable[Occupying]) -> List[TimeInterval]:
    """Intervals of the items that actually hold the space, sorted by start."""
    intervals = []
    for item in items:
        interval = item.interval
        if item.is_resource_occupying and interval is not None:
            intervals.append(interval)
    return sorted(intervals, key=lambda iv: (iv.start, iv.end))


def merge_intervals(intervals: Iterable[TimeInterval]) -> List[TimeInterval]:
    """Collapse overlapping or touching intervals into maximal busy blocks."""
    merged: List[TimeInterval] = []
    for interval in sorted(intervals, key=lambda iv: (iv.start, iv.end)):
        if merged and interval.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = TimeInterval(last.start, max(last.end, interval.end))
        else:
            merged.append(interval)
    return merged


def find_gaps(
    window: TimeInterval,
    busy: Iterable[TimeInterval],
    minimum: timedelta = timedelta(0),
) -> List[TimeInterval]:
    """
    Maximal free sub-intervals of ``window`` not covered by ``busy``.

    Gaps shorter than ``minimum`` are dropped. Results are chronological.
    """
    gaps: List[TimeInterval] = []
    cursor = window.start
    for block in merge_intervals(b for b in busy if overlaps(b, window)):
        if block.start > cursor:
            gaps.append(TimeInterval(cursor, min(block.start, window.end)))
        cursor = max(cursor, block.end)
        if cursor >= window.end:
            break
    if cursor < window.end:
        gaps.append(TimeInterval(cursor, window.end))
    return [gap for gap in gaps if gap.duration >= minimum and gap.duration > timedelta(0)]
