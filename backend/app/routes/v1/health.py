# backend/app/routes/v1/health.py
"""
Health check endpoint for monitoring and load balancer checks.
"""

from datetime import datetime, timezone
import logging

from fastapi import APIRouter
from sqlalchemy import text

from app.core.config import settings
from app.database import get_db_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check() -> dict:
    """Report liveness plus whether the database answers."""
    database_ok = True
    try:
        with get_db_session() as db:
            db.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check database query failed")
        database_ok = False
    return {
        "status": "healthy" if database_ok else "degraded",
        "environment": settings.environment,
        "database": database_ok,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
