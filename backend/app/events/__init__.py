"""Domain events emitted by the booking core."""

from app.events.credit_events import CreditsGranted, CreditsSpent, PromoCodeRedeemed
from app.events.publisher import EventPublisher
from app.events.reservation_events import (
    ReservationCancelled,
    ReservationCreated,
    SeriesMaterialized,
)

__all__ = [
    "CreditsGranted",
    "CreditsSpent",
    "EventPublisher",
    "PromoCodeRedeemed",
    "ReservationCancelled",
    "ReservationCreated",
    "SeriesMaterialized",
]
