"""
Dialect helpers for the lock-row upserts the repositories issue.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import UnboundExecutionError
from sqlalchemy.orm import Session
from sqlalchemy.sql import Executable


def get_dialect_name(session: Session, default: str = "sqlite") -> str:
    """Dialect of the engine behind ``session``; ``default`` when it is unbound."""
    try:
        bind = session.get_bind()
    except UnboundExecutionError:
        return default
    return bind.dialect.name or default


def insert_ignoring_conflicts(
    session: Session, model: Any, values: Dict[str, Any], index_elements: List[str]
) -> Optional[Executable]:
    """
    ``INSERT ... ON CONFLICT DO NOTHING`` for PostgreSQL and SQLite.

    Returns None for other dialects, which have to check for the row first.
    """
    dialect = get_dialect_name(session)
    if dialect == "postgresql":
        stmt = pg_insert(model).values(**values)
    elif dialect == "sqlite":
        stmt = sqlite_insert(model).values(**values)
    else:
        return None
    return stmt.on_conflict_do_nothing(index_elements=index_elements)
