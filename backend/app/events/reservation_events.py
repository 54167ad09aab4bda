"""Reservation and recurring series domain events."""
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional


@dataclass
class ReservationCreated:
    """Fired after a reservation is committed."""

    reservation_id: str
    user_id: str
    reserved_at: datetime
    reserved_until: datetime
    status: str
    free_hours_used: float
    cost: str
    recurring_series_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ReservationCancelled:
    """Fired after a reservation is cancelled."""

    reservation_id: str
    user_id: str
    cancelled_at: datetime
    reason: Optional[str] = None
    refunded_blocks: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SeriesMaterialized:
    """Fired after a materialization pass over one series."""

    series_id: str
    user_id: str
    created_reservation_ids: List[str] = field(default_factory=list)
    skipped_dates: List[date] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
