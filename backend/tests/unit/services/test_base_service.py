"""Tests for BaseService transactions and operation metrics."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import ServiceException, ValidationException
from app.services.base import BaseService


class CountingService(BaseService):
    @BaseService.measure_operation("ping")
    def ping(self, fail: bool = False) -> str:
        if fail:
            raise ValidationException("nope")
        return "ok"


@pytest.fixture
def counting():
    service = CountingService(MagicMock())
    service.reset_metrics()
    yield service
    service.reset_metrics()


def test_operations_are_counted(counting):
    assert counting.ping() == "ok"
    with pytest.raises(ValidationException):
        counting.ping(fail=True)

    metrics = counting.get_metrics()["ping"]
    assert metrics["count"] == 2
    assert metrics["success_count"] == 1
    assert metrics["failure_count"] == 1
    assert metrics["success_rate"] == 0.5


def test_transaction_commits(counting):
    with counting.transaction():
        pass
    counting.db.commit.assert_called_once()
    counting.db.rollback.assert_not_called()


def test_transaction_rolls_back_and_reraises(counting):
    with pytest.raises(ValidationException):
        with counting.transaction():
            raise ValidationException("bad input")
    counting.db.rollback.assert_called_once()


def test_database_errors_become_service_exceptions(counting):
    counting.db.commit.side_effect = OperationalError("COMMIT", {}, Exception("disk I/O error"))

    with pytest.raises(ServiceException):
        with counting.transaction():
            pass
    counting.db.rollback.assert_called_once()


def test_clock_is_injectable():
    service = CountingService(MagicMock(), clock=lambda: "frozen")
    assert service.now() == "frozen"
