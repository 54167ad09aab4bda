"""Tests for schema creation on a fresh database."""

from sqlalchemy import inspect

from app.database import build_engine
from app.init_db import init_db


def test_creates_every_table_once(tmp_path):
    fresh = build_engine(f"sqlite:///{tmp_path / 'fresh.db'}")
    try:
        created = init_db(fresh)

        assert {"users", "reservations", "user_credits", "credit_transactions"} <= set(created)
        assert set(created) == set(inspect(fresh).get_table_names())
        assert init_db(fresh) == []
    finally:
        fresh.dispose()
