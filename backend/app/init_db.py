"""Create the practice space tables on a fresh database."""

import logging
from typing import List, Optional

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from app.database import Base, engine
import app.models  # noqa: F401  (registers every table on Base.metadata)

logger = logging.getLogger(__name__)


def init_db(bind: Optional[Engine] = None) -> List[str]:
    """Create any missing tables and return the names of those created."""
    target = bind or engine
    existing = set(inspect(target).get_table_names())
    Base.metadata.create_all(bind=target)
    created = sorted(set(inspect(target).get_table_names()) - existing)
    logger.info("Database initialized; created tables: %s", ", ".join(created) or "none")
    return created


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
