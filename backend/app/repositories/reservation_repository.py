# backend/app/repositories/reservation_repository.py
"""
Reservation Repository for the practice space.

Handles reservation reads used by the lifecycle and series services, and the
per-day lock rows that serialize booking writers.
"""

from datetime import date, datetime
import logging
from typing import Iterable, List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.enums import ReservationStatus
from ..core.exceptions import RepositoryException
from ..models.reservation import Reservation
from ..models.space_day_lock import SpaceDayLock
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ReservationRepository(BaseRepository[Reservation]):
    """Repository for reservation data access."""

    def __init__(self, db: Session):
        super().__init__(db, Reservation)
        self.logger = logging.getLogger(__name__)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(joinedload(Reservation.user))

    def lock_for_update(self, reservation_id: str) -> Optional[Reservation]:
        """Load a reservation FOR UPDATE with fresh column values."""
        try:
            return cast(
                Optional[Reservation],
                self.db.query(Reservation)
                .filter(Reservation.id == reservation_id)
                .with_for_update()
                .populate_existing()
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking reservation {reservation_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock reservation: {str(e)}") from e

    def lock_days(self, days: Iterable[date]) -> None:
        """
        Take the write lock for each calendar day, in ascending order.

        Ascending order keeps two writers that span the same pair of days from
        deadlocking on each other.
        """
        lock_repo = BaseRepository(self.db, SpaceDayLock)
        for day in sorted(set(days)):
            lock_repo._insert_ignoring_conflicts({"day": day}, index_elements=["day"])
            try:
                (
                    self.db.query(SpaceDayLock)
                    .filter(SpaceDayLock.day == day)
                    .with_for_update()
                    .one()
                )
            except SQLAlchemyError as e:
                self.logger.error(f"Error locking space day {day}: {str(e)}")
                raise RepositoryException(f"Failed to lock space day: {str(e)}") from e

    def get_for_series_date(self, series_id: str, instance_date: date) -> Optional[Reservation]:
        """The reservation (placeholder or real) standing for one occurrence of a series."""
        try:
            return cast(
                Optional[Reservation],
                self.db.query(Reservation)
                .filter(
                    Reservation.recurring_series_id == series_id,
                    Reservation.instance_date == instance_date,
                )
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting series instance: {str(e)}")
            raise RepositoryException(f"Failed to get series instance: {str(e)}") from e

    def get_series_instance_dates(self, series_id: str) -> List[date]:
        try:
            rows = (
                self.db.query(Reservation.instance_date)
                .filter(Reservation.recurring_series_id == series_id)
                .all()
            )
            return [row[0] for row in rows if row[0] is not None]
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting series instance dates: {str(e)}")
            raise RepositoryException(f"Failed to get series instance dates: {str(e)}") from e

    def get_future_series_reservations(
        self, series_id: str, after: datetime, include_cancelled: bool = False
    ) -> List[Reservation]:
        """Series reservations starting after ``after``, chronologically."""
        try:
            query = self.db.query(Reservation).filter(
                Reservation.recurring_series_id == series_id,
                Reservation.reserved_at > after,
            )
            if not include_cancelled:
                query = query.filter(Reservation.status != ReservationStatus.CANCELLED.value)
            return cast(List[Reservation], query.order_by(Reservation.reserved_at).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting future series reservations: {str(e)}")
            raise RepositoryException(f"Failed to get series reservations: {str(e)}") from e

    def get_user_reservations_between(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        include_cancelled: bool = False,
    ) -> List[Reservation]:
        """A member's reservations starting within ``[start, end)``."""
        try:
            query = self.db.query(Reservation).filter(
                Reservation.user_id == user_id,
                Reservation.reserved_at >= start,
                Reservation.reserved_at < end,
            )
            if not include_cancelled:
                query = query.filter(Reservation.status != ReservationStatus.CANCELLED.value)
            return cast(List[Reservation], query.order_by(Reservation.reserved_at).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting reservations for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to get user reservations: {str(e)}") from e
