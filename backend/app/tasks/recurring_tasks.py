# backend/app/tasks/recurring_tasks.py
"""Celery tasks for recurring reservation series."""

import logging
from typing import Any, Dict

from app.database import get_db_session
from app.services.recurring_reservation_service import RecurringReservationService
from app.tasks.celery_app import BaseTask, celery_app

logger = logging.getLogger(__name__)


def run_materialization_sweep() -> Dict[str, Any]:
    """
    Materialize every active series.

    One failing series never stops the sweep; its id and error end up in the
    report's ``failures``.
    """
    with get_db_session() as db:
        report = RecurringReservationService(db).materialize_all_active()
    result = report.to_dict()
    if report.failures:
        logger.warning(
            "Recurring sweep finished with %s failed series: %s",
            report.failed,
            ", ".join(sorted(report.failures)),
        )
    return result


@celery_app.task(
    base=BaseTask,
    name="app.tasks.recurring_tasks.materialize_recurring_series",
)
def materialize_recurring_series() -> Dict[str, Any]:
    logger.info("Starting recurring series materialization sweep")
    return run_materialization_sweep()


@celery_app.task(
    base=BaseTask,
    bind=True,
    max_retries=3,
    name="app.tasks.recurring_tasks.materialize_series",
)
def materialize_series(self: Any, series_id: str) -> Dict[str, Any]:
    """Materialize one series, e.g. right after it was extended elsewhere."""
    with get_db_session() as db:
        created = RecurringReservationService(db).materialize(series_id)
        created_ids = [reservation.id for reservation in created]
    return {"series_id": series_id, "created": len(created_ids), "reservation_ids": created_ids}
