# backend/app/repositories/recurring_series_repository.py
"""Recurring series data access."""

from datetime import date
import logging
from typing import List, Optional, cast

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import SeriesStatus
from ..core.exceptions import RepositoryException
from ..models.recurring_series import RecurringSeries
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class RecurringSeriesRepository(BaseRepository[RecurringSeries]):
    def __init__(self, db: Session):
        super().__init__(db, RecurringSeries)
        self.logger = logging.getLogger(__name__)

    def get_active_series_ids(self) -> List[str]:
        """Ids of every active series, oldest first, for the materialization sweep."""
        try:
            rows = (
                self.db.query(RecurringSeries.id)
                .filter(RecurringSeries.status == SeriesStatus.ACTIVE.value)
                .order_by(RecurringSeries.created_at, RecurringSeries.id)
                .all()
            )
            return [row[0] for row in rows]
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing active series: {str(e)}")
            raise RepositoryException(f"Failed to list active series: {str(e)}") from e

    def lock_for_update(self, series_id: str) -> Optional[RecurringSeries]:
        try:
            return cast(
                Optional[RecurringSeries],
                self.db.query(RecurringSeries)
                .filter(RecurringSeries.id == series_id)
                .with_for_update()
                .populate_existing()
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking series {series_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock series: {str(e)}") from e

    def get_active_series_spanning(
        self, day: date, exclude_series_id: Optional[str] = None
    ) -> List[RecurringSeries]:
        """Active series whose start/end dates include ``day``."""
        try:
            query = self.db.query(RecurringSeries).filter(
                RecurringSeries.status == SeriesStatus.ACTIVE.value,
                RecurringSeries.series_start_date <= day,
                or_(
                    RecurringSeries.series_end_date.is_(None),
                    RecurringSeries.series_end_date >= day,
                ),
            )
            if exclude_series_id:
                query = query.filter(RecurringSeries.id != exclude_series_id)
            return cast(List[RecurringSeries], query.order_by(RecurringSeries.start_time).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing series active on {day}: {str(e)}")
            raise RepositoryException(f"Failed to list active series: {str(e)}") from e
