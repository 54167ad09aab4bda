# backend/app/tasks/credit_tasks.py
"""Celery tasks for monthly credit allocation."""

import logging
from typing import Any, Dict, List, Tuple

from app.core.config import settings
from app.core.enums import CreditType
from app.database import get_db_session
from app.repositories import RepositoryFactory
from app.services.credit_service import CreditService
from app.tasks.celery_app import BaseTask, celery_app

logger = logging.getLogger(__name__)


def monthly_allowances() -> List[Tuple[CreditType, int]]:
    return [
        (CreditType.FREE_HOURS, settings.free_hours_monthly_blocks),
        (CreditType.EQUIPMENT_CREDITS, settings.equipment_credits_monthly),
    ]


def run_monthly_allocation() -> Dict[str, Any]:
    """
    Allocate the monthly allowances to every sustaining member.

    Allocation is idempotent per month, so a retried or repeated run only
    writes for members it has not reached yet.
    """
    allocated = 0
    unchanged = 0
    failures: Dict[str, str] = {}

    with get_db_session() as db:
        user_ids = RepositoryFactory.create_user_repository(db).get_sustaining_member_ids()
        service = CreditService(db)
        for user_id in user_ids:
            try:
                for credit_type, amount in monthly_allowances():
                    entry = service.allocate_monthly(user_id, amount, credit_type)
                    if entry is None:
                        unchanged += 1
                    else:
                        allocated += 1
            except Exception as exc:
                logger.exception("Monthly allocation failed for %s", user_id)
                failures[user_id] = f"{type(exc).__name__}: {exc}"

    report = {
        "members": len(user_ids),
        "allocated": allocated,
        "unchanged": unchanged,
        "failed": len(failures),
        "failures": failures,
    }
    logger.info("Monthly credit allocation finished: %s", report)
    return report


@celery_app.task(
    base=BaseTask,
    name="app.tasks.credit_tasks.allocate_monthly_credits",
)
def allocate_monthly_credits() -> Dict[str, Any]:
    return run_monthly_allocation()
