# backend/app/tasks/beat_schedule.py
"""
Celery Beat schedule configuration.

Tasks are scheduled using crontab expressions in the space's local timezone.
"""

from typing import Any, Dict

from celery.schedules import crontab

from app.core.config import settings


def get_beat_schedule() -> Dict[str, Dict[str, Any]]:
    return {
        # Nightly: keep every active series materialized up to its horizon
        "materialize-recurring-series": {
            "task": "app.tasks.recurring_tasks.materialize_recurring_series",
            "schedule": crontab(hour=settings.recurring_sweep_hour, minute=0),
            "options": {"priority": 5},
        },
        # Monthly allowance on the 1st, shortly after midnight
        "allocate-monthly-credits": {
            "task": "app.tasks.credit_tasks.allocate_monthly_credits",
            "schedule": crontab(day_of_month=1, hour=0, minute=5),
            "options": {"priority": 7},
        },
    }


CELERYBEAT_SCHEDULE = get_beat_schedule()
