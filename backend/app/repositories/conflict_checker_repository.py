# backend/app/repositories/conflict_checker_repository.py
"""
ConflictChecker Repository for the practice space.

Reads the two kinds of things that can hold the space: reservations and
productions hosted on site. Only the overlap pre-filter happens in SQL; the
service re-applies the shared interval predicate on the loaded rows.
"""

from datetime import datetime
import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..core.enums import ReservationStatus
from ..core.exceptions import RepositoryException
from ..models.production import Production
from ..models.reservation import Reservation
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ConflictCheckerRepository(BaseRepository[Reservation]):
    """Repository for conflict checking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Reservation)
        self.logger = logging.getLogger(__name__)

    def get_reservations_overlapping(
        self,
        start: datetime,
        end: datetime,
        exclude_reservation_id: Optional[str] = None,
    ) -> List[Reservation]:
        """
        Non-cancelled reservations whose ``[reserved_at, reserved_until)`` meets ``[start, end)``.

        Args:
            start: Window start (inclusive)
            end: Window end (exclusive)
            exclude_reservation_id: Reservation being modified, ignored when set

        Returns:
            Reservations ordered by start time, owners eagerly loaded
        """
        try:
            query = (
                self.db.query(Reservation)
                .options(joinedload(Reservation.user))
                .filter(
                    Reservation.status != ReservationStatus.CANCELLED.value,
                    Reservation.reserved_at < end,
                    Reservation.reserved_until > start,
                )
            )
            if exclude_reservation_id:
                query = query.filter(Reservation.id != exclude_reservation_id)

            return cast(List[Reservation], query.order_by(Reservation.reserved_at).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting reservations for conflict check: {str(e)}")
            raise RepositoryException(f"Failed to get conflicting reservations: {str(e)}") from e

    def get_productions_overlapping(
        self,
        start: datetime,
        end: datetime,
        exclude_production_id: Optional[str] = None,
    ) -> List[Production]:
        """
        On-site productions with both times set that overlap ``[start, end)``.

        External productions never occupy the space and are filtered out here.
        """
        try:
            query = self.db.query(Production).filter(
                Production.is_external.is_(False),
                Production.start_time.isnot(None),
                Production.end_time.isnot(None),
                Production.start_time < end,
                Production.end_time > start,
            )
            if exclude_production_id:
                query = query.filter(Production.id != exclude_production_id)

            return cast(List[Production], query.order_by(Production.start_time).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting productions for conflict check: {str(e)}")
            raise RepositoryException(f"Failed to get conflicting productions: {str(e)}") from e
