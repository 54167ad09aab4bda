"""Tests for the Celery tasks and their beat schedule."""

from contextlib import contextmanager
from unittest.mock import MagicMock, patch

import pytest

from app.core.enums import CreditType
from app.services.credit_service import CreditService
from app.services.recurring_reservation_service import SweepReport
from app.tasks import credit_tasks, recurring_tasks
from app.tasks.beat_schedule import get_beat_schedule
from app.tasks.celery_app import celery_app
from tests.factories.builders import create_user


@pytest.fixture
def task_session(db):
    """Route the tasks' get_db_session to the test session."""

    @contextmanager
    def _session():
        yield db
        db.commit()

    with patch.object(credit_tasks, "get_db_session", _session), patch.object(
        recurring_tasks, "get_db_session", _session
    ):
        yield db


class TestMonthlyAllocationTask:
    def test_allocates_to_sustaining_members_only(self, task_session, member, guest):
        other = create_user(task_session, "Ola Other", sustaining=True)

        report = credit_tasks.run_monthly_allocation()

        assert report["members"] == 2
        assert report["allocated"] == 4
        assert report["failed"] == 0

        credits = CreditService(task_session)
        for user in (member, other):
            assert credits.get_balance(user.id, CreditType.FREE_HOURS) == 8
            assert credits.get_balance(user.id, CreditType.EQUIPMENT_CREDITS) == 4
        assert credits.get_balance(guest.id, CreditType.FREE_HOURS) == 0

    def test_second_run_in_the_same_month_changes_nothing(self, task_session, member):
        credit_tasks.run_monthly_allocation()

        report = credit_tasks.run_monthly_allocation()

        assert report["allocated"] == 0
        assert report["unchanged"] == 2
        assert CreditService(task_session).get_balance(member.id) == 8

    def test_failure_for_one_member_is_reported(self, task_session, member):
        with patch.object(
            CreditService, "allocate_monthly", side_effect=RuntimeError("ledger offline")
        ):
            report = credit_tasks.run_monthly_allocation()

        assert report["failed"] == 1
        assert report["failures"][member.id] == "RuntimeError: ledger offline"

    def test_task_wraps_the_runner(self):
        with patch.object(credit_tasks, "run_monthly_allocation", return_value={"members": 0}):
            assert credit_tasks.allocate_monthly_credits.run() == {"members": 0}


class TestRecurringTasks:
    def test_sweep_returns_the_report(self, task_session):
        service = MagicMock()
        service.materialize_all_active.return_value = SweepReport(
            processed=3, created=5, skipped=1, failures={"01HBAD": "RuntimeError: boom"}
        )

        with patch.object(recurring_tasks, "RecurringReservationService", return_value=service):
            result = recurring_tasks.materialize_recurring_series.run()

        assert result == {
            "processed": 3,
            "created": 5,
            "skipped": 1,
            "failed": 1,
            "failures": {"01HBAD": "RuntimeError: boom"},
        }

    def test_single_series_task(self, task_session):
        created = [MagicMock(id="01HAAA"), MagicMock(id="01HBBB")]
        service = MagicMock()
        service.materialize.return_value = created

        with patch.object(recurring_tasks, "RecurringReservationService", return_value=service):
            result = recurring_tasks.materialize_series.run("01HSERIES")

        service.materialize.assert_called_once_with("01HSERIES")
        assert result == {
            "series_id": "01HSERIES",
            "created": 2,
            "reservation_ids": ["01HAAA", "01HBBB"],
        }


class TestBeatSchedule:
    def test_schedule_entries_point_at_registered_tasks(self):
        schedule = get_beat_schedule()

        assert set(schedule) == {"materialize-recurring-series", "allocate-monthly-credits"}
        for entry in schedule.values():
            assert entry["task"] in celery_app.tasks

    def test_monthly_allocation_runs_on_the_first(self):
        crontab = get_beat_schedule()["allocate-monthly-credits"]["schedule"]
        assert crontab.day_of_month == {1}
