# backend/app/tasks/__init__.py
"""
Celery tasks package.

This package contains the periodic jobs:
- Recurring series materialization
- Monthly credit allocation
"""

from app.tasks.celery_app import BaseTask, celery_app
from app.tasks.credit_tasks import allocate_monthly_credits
from app.tasks.recurring_tasks import materialize_recurring_series, materialize_series

__all__ = [
    "celery_app",
    "BaseTask",
    "allocate_monthly_credits",
    "materialize_recurring_series",
    "materialize_series",
]

# This allows running celery with: celery -A app.tasks worker
