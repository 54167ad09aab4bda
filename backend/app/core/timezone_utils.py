"""
Timezone utilities for the practice space.

The space has a single physical location, so every reservation time is a
naive wall-clock datetime in ``settings.space_timezone``.
"""

from datetime import date, datetime
from typing import Callable, Optional

import pytz

from .config import settings

Clock = Callable[[], datetime]


def get_space_timezone() -> pytz.BaseTzInfo:
    """Return the practice space timezone."""
    return pytz.timezone(settings.space_timezone)


def get_space_now() -> datetime:
    """Current wall-clock time at the space, without tzinfo."""
    return datetime.now(get_space_timezone()).replace(tzinfo=None)


def get_space_today() -> date:
    return get_space_now().date()


def to_space_time(dt: datetime) -> datetime:
    """Convert an aware datetime to naive space-local time; naive values pass through."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(get_space_timezone()).replace(tzinfo=None)


def resolve_clock(clock: Optional[Clock]) -> Clock:
    return clock or get_space_now


def period_key(moment: datetime) -> str:
    """Calendar month key used for monthly allocations, e.g. ``2026-10``."""
    return moment.strftime("%Y-%m")
