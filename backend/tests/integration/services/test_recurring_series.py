"""Integration tests for recurring series materialization."""

from datetime import date, datetime, time, timedelta

import pytest

from app.core.enums import ReservationStatus, SeriesStatus
from app.core.exceptions import (
    BusinessRuleException,
    NotFoundException,
    ValidationException,
)
from app.events import SeriesMaterialized
from app.models.reservation import Reservation
from app.services.recurrence import RRuleExpander
from app.services.credit_service import CreditService
from app.services.recurring_reservation_service import (
    CONFLICT_REASON,
    SHORTENED_REASON,
    SKIP_REASON,
    RecurringReservationService,
)
from tests.factories.builders import (
    create_production,
    create_reservation,
    create_user,
    give_free_blocks,
)

TODAY = date(2026, 3, 2)
EVENING = (time(19, 0), time(21, 0))


@pytest.fixture
def service(db, clock):
    return RecurringReservationService(db, clock=clock)


def datetime_at(day, hour):
    return datetime.combine(day, time(hour))


def series_reservations(db, series_id):
    return (
        db.query(Reservation)
        .filter(Reservation.recurring_series_id == series_id)
        .order_by(Reservation.instance_date)
        .all()
    )


def weekly(service, user, horizon=90, **kwargs):
    return service.create_series(
        user.id, "FREQ=WEEKLY", TODAY, *EVENING, max_advance_days=horizon, **kwargs
    )


class TestMaterialization:
    def test_conflicting_occurrence_becomes_placeholder(
        self, db, service, member, guest, published_events
    ):
        clash_day = TODAY + timedelta(days=14)
        create_reservation(
            db,
            guest,
            datetime_at(clash_day, 18),
            datetime_at(clash_day, 20),
        )

        series = weekly(service, member)

        instances = series_reservations(db, series.id)
        active = [r for r in instances if not r.is_cancelled]
        placeholders = [r for r in instances if r.is_cancelled]
        assert len(active) == 12
        assert len(placeholders) == 1
        assert placeholders[0].instance_date == clash_day
        assert placeholders[0].cancellation_reason == CONFLICT_REASON
        assert placeholders[0].cost == 0
        assert all(r.status == ReservationStatus.PENDING.value for r in active)
        assert active[0].reserved_at == datetime_at(TODAY, 19)
        assert active[-1].instance_date == TODAY + timedelta(days=84)

        materialized = [e for e in published_events if isinstance(e, SeriesMaterialized)]
        assert len(materialized) == 1
        assert len(materialized[0].created_reservation_ids) == 12
        assert materialized[0].skipped_dates == [clash_day]

    def test_materialize_is_idempotent(self, db, service, member):
        series = weekly(service, member)

        assert service.materialize(series.id) == []
        assert len(series_reservations(db, series.id)) == 13

    def test_rolling_horizon_picks_up_new_dates(self, db, service, member, clock):
        series = weekly(service, member, horizon=14)
        assert len(series_reservations(db, series.id)) == 2

        clock.advance(days=7)
        created = service.materialize(series.id)

        assert [r.instance_date for r in created] == [TODAY + timedelta(days=14)]

    def test_invalid_occurrences_record_their_errors(self, db, service, member):
        series = service.create_series(
            member.id, "FREQ=DAILY", TODAY, time(21, 0), time(23, 0), max_advance_days=2
        )

        instances = series_reservations(db, series.id)
        assert len(instances) == 2
        assert all(r.is_cancelled for r in instances)
        assert instances[0].cancellation_reason == (
            "Reservations are only allowed between 9 AM and 10 PM."
        )

    def test_past_occurrences_are_not_created(self, db, service, member):
        series = service.create_series(
            member.id,
            "FREQ=DAILY",
            TODAY - timedelta(days=10),
            time(9, 0),
            time(10, 0),
            max_advance_days=3,
        )

        dates = [r.instance_date for r in series_reservations(db, series.id)]
        assert dates == [TODAY + timedelta(days=1), TODAY + timedelta(days=2)]

    def test_series_end_date_bounds_the_window(self, db, service, member):
        series = weekly(service, member, end_date=TODAY + timedelta(days=7))

        dates = [r.instance_date for r in series_reservations(db, series.id)]
        assert dates == [TODAY, TODAY + timedelta(days=7)]

    def test_upcoming_instances_skip_placeholders(self, db, service, member, guest):
        clash_day = TODAY + timedelta(days=7)
        create_reservation(db, guest, datetime_at(clash_day, 19), datetime_at(clash_day, 20))
        series = weekly(service, member, horizon=28)

        upcoming = service.get_upcoming_instances(series.id, limit=2)

        assert [r.instance_date for r in upcoming] == [TODAY, TODAY + timedelta(days=14)]


class TestCreateValidation:
    def test_only_sustaining_members(self, service, guest):
        with pytest.raises(BusinessRuleException) as exc_info:
            weekly(service, guest)
        assert exc_info.value.code == "RECURRING_NOT_ALLOWED"

    def test_unknown_user(self, service):
        with pytest.raises(NotFoundException):
            service.create_series(
                "01HZZZZZZZZZZZZZZZZZZZZZZZ", "FREQ=WEEKLY", TODAY, *EVENING
            )

    def test_bad_rule(self, service, member):
        with pytest.raises(ValidationException) as exc_info:
            service.create_series(member.id, "FREQ=FORTNIGHTLY", TODAY, *EVENING)
        assert exc_info.value.code == "INVALID_RECURRENCE_RULE"

    def test_bad_times_and_dates(self, service, member):
        with pytest.raises(ValidationException) as exc_info:
            service.create_series(member.id, "FREQ=WEEKLY", TODAY, time(21), time(19))
        assert exc_info.value.code == "INVALID_TIME_RANGE"

        with pytest.raises(ValidationException) as exc_info:
            service.create_series(
                member.id, "FREQ=WEEKLY", TODAY, *EVENING, end_date=TODAY - timedelta(days=1)
            )
        assert exc_info.value.code == "INVALID_DATE_RANGE"

    def test_missing_series(self, service):
        with pytest.raises(NotFoundException):
            service.materialize("01HZZZZZZZZZZZZZZZZZZZZZZZ")


class TestSeriesChanges:
    def test_skip_materialized_instance(self, db, service, member):
        series = weekly(service, member, horizon=14)

        skipped = service.skip_instance(series.id, TODAY + timedelta(days=7))

        assert skipped.is_cancelled
        assert skipped.cancellation_reason == SKIP_REASON

    def test_skip_ahead_of_the_horizon(self, db, service, member, clock):
        series = weekly(service, member, horizon=14)
        future_day = TODAY + timedelta(days=21)

        placeholder = service.skip_instance(series.id, future_day, "Tour")
        clock.advance(days=14)
        created = service.materialize(series.id)

        assert placeholder.cancellation_reason == "Tour"
        assert future_day not in [r.instance_date for r in created]
        assert TODAY + timedelta(days=14) in [r.instance_date for r in created]

    def test_skip_rejects_non_occurrences(self, service, member):
        series = weekly(service, member, horizon=14)

        with pytest.raises(ValidationException) as exc_info:
            service.skip_instance(series.id, TODAY + timedelta(days=22))
        assert exc_info.value.code == "NOT_A_SERIES_OCCURRENCE"

    def test_skip_rejects_dates_after_the_series_ends(self, service, member):
        series = weekly(service, member, horizon=14, end_date=TODAY + timedelta(days=7))

        with pytest.raises(ValidationException) as exc_info:
            service.skip_instance(series.id, TODAY + timedelta(days=21))
        assert exc_info.value.code == "NOT_A_SERIES_OCCURRENCE"

    def test_skip_rejects_dates_before_the_series_starts(self, service, member):
        series = service.create_series(
            member.id, "FREQ=WEEKLY", TODAY + timedelta(days=14), *EVENING, max_advance_days=30
        )

        with pytest.raises(ValidationException):
            service.skip_instance(series.id, TODAY + timedelta(days=7))

    def test_cancel_series(self, db, service, member):
        series = weekly(service, member, horizon=14)

        assert service.cancel_series(series.id, "Band broke up") == 2

        db.refresh(series)
        assert series.status == SeriesStatus.CANCELLED.value
        assert all(r.is_cancelled for r in series_reservations(db, series.id))
        assert service.materialize(series.id) == []
        assert service.cancel_series(series.id) == 0

    def test_extend_series(self, db, service, member):
        series = weekly(service, member, end_date=TODAY + timedelta(days=7))

        created = service.extend_series(series.id, TODAY + timedelta(days=21))

        assert [r.instance_date for r in created] == [
            TODAY + timedelta(days=14),
            TODAY + timedelta(days=21),
        ]

    def test_shortening_cancels_occurrences_after_the_new_end(self, db, clock, service, member):
        give_free_blocks(db, member, 8, clock)
        series = weekly(service, member, horizon=28)
        credits = CreditService(db, clock=clock)
        assert credits.get_balance(member.id) == 0

        created = service.extend_series(series.id, TODAY)

        assert created == []
        instances = series_reservations(db, series.id)
        assert [r.instance_date for r in instances if not r.is_cancelled] == [TODAY]
        dropped = [r for r in instances if r.is_cancelled]
        assert [r.instance_date for r in dropped] == [
            TODAY + timedelta(days=7),
            TODAY + timedelta(days=14),
            TODAY + timedelta(days=21),
        ]
        assert all(r.cancellation_reason == SHORTENED_REASON for r in dropped)
        # the second week's four blocks come back, the first week keeps its own
        assert credits.get_balance(member.id) == 4

    def test_shortened_series_does_not_refill(self, db, clock, service, member):
        series = weekly(service, member, horizon=28)
        service.extend_series(series.id, TODAY + timedelta(days=7))

        clock.advance(days=7)

        assert service.materialize(series.id) == []
        active = [r for r in series_reservations(db, series.id) if not r.is_cancelled]
        assert [r.instance_date for r in active] == [TODAY, TODAY + timedelta(days=7)]

    def test_extend_rejections(self, service, member):
        series = weekly(service, member, horizon=14)

        with pytest.raises(ValidationException):
            service.extend_series(series.id, TODAY - timedelta(days=1))

        service.cancel_series(series.id)
        with pytest.raises(BusinessRuleException) as exc_info:
            service.extend_series(series.id, TODAY + timedelta(days=30))
        assert exc_info.value.code == "SERIES_CANCELLED"


class TestPatternValidation:
    @pytest.fixture
    def drummer(self, db):
        return create_user(db, "Ria Drummer", sustaining=True)

    def test_clear_pattern(self, service):
        assert service.validate_pattern("FREQ=WEEKLY", TODAY, None, *EVENING) == []

    def test_existing_booking_is_reported(self, db, service, guest):
        clash_day = TODAY + timedelta(days=14)
        create_reservation(db, guest, datetime_at(clash_day, 18), datetime_at(clash_day, 20))
        create_production(db, datetime_at(clash_day, 20), datetime_at(clash_day, 22))

        warnings = service.validate_pattern("FREQ=WEEKLY", TODAY, None, *EVENING)

        assert len(warnings) == 1
        assert warnings[0].date == clash_day
        assert warnings[0].type == "existing"
        assert warnings[0].conflicts == "reservation by Gil Guest, production: Spring Showcase"
        assert warnings[0].to_dict()["time"] == "7:00 PM - 9:00 PM"

    def test_other_series_is_reported_beyond_its_horizon(self, service, drummer):
        service.create_series(
            drummer.id, "FREQ=WEEKLY", TODAY, time(20, 0), time(22, 0), max_advance_days=14
        )

        warnings = service.validate_pattern(
            "FREQ=WEEKLY", TODAY, None, *EVENING, check_occurrences=4
        )

        recurring = [w for w in warnings if w.type == "recurring"]
        existing = [w for w in warnings if w.type == "existing"]
        assert [w.date for w in recurring] == [TODAY + timedelta(days=7 * i) for i in range(4)]
        assert recurring[0].conflicts == "Ria Drummer's recurring rehearsal"
        assert [w.date for w in existing] == [TODAY, TODAY + timedelta(days=7)]

    def test_series_at_other_times_or_days_is_not_reported(self, service, drummer):
        service.create_series(
            drummer.id, "FREQ=WEEKLY", TODAY, time(21, 0), time(22, 0), max_advance_days=7
        )
        service.create_series(
            drummer.id,
            "FREQ=WEEKLY",
            TODAY + timedelta(days=1),
            *EVENING,
            max_advance_days=7,
        )

        assert service.validate_pattern("FREQ=WEEKLY", TODAY, None, *EVENING) == []

    def test_only_checks_the_requested_number_of_dates(self, db, service, guest):
        late_day = TODAY + timedelta(days=28)
        create_reservation(db, guest, datetime_at(late_day, 19), datetime_at(late_day, 20))

        assert service.validate_pattern(
            "FREQ=WEEKLY", TODAY, None, *EVENING, check_occurrences=4
        ) == []
        assert service.validate_pattern(
            "FREQ=WEEKLY", TODAY, TODAY + timedelta(days=21), *EVENING
        ) == []
        assert service.validate_pattern(
            "FREQ=WEEKLY", TODAY, None, *EVENING, check_occurrences=0
        ) == []

    def test_edited_series_is_left_out(self, service, member):
        series = weekly(service, member, horizon=28)

        assert service.validate_pattern("FREQ=WEEKLY", TODAY, None, *EVENING)
        assert (
            service.validate_pattern(
                "FREQ=WEEKLY", TODAY, None, *EVENING, exclude_series_id=series.id
            )
            == []
        )

    def test_cancelled_series_is_not_reported(self, service, drummer):
        series = service.create_series(
            drummer.id, "FREQ=WEEKLY", TODAY, *EVENING, max_advance_days=7
        )
        service.cancel_series(series.id)

        assert service.validate_pattern("FREQ=WEEKLY", TODAY, None, *EVENING) == []

    def test_invalid_input(self, service):
        with pytest.raises(ValidationException) as exc_info:
            service.validate_pattern("FREQ=FORTNIGHTLY", TODAY, None, *EVENING)
        assert exc_info.value.code == "INVALID_RECURRENCE_RULE"

        with pytest.raises(ValidationException) as exc_info:
            service.validate_pattern("FREQ=WEEKLY", TODAY, None, time(21), time(19))
        assert exc_info.value.code == "INVALID_TIME_RANGE"


class ExplodingExpander(RRuleExpander):
    """Fails for daily rules so one series in a sweep breaks."""

    def occurrences(self, rule, dtstart, window_start, window_end):
        if rule == "FREQ=DAILY":
            raise RuntimeError("boom")
        return super().occurrences(rule, dtstart, window_start, window_end)


class TestSweep:
    def test_failing_series_does_not_stop_the_sweep(self, db, clock, service, member):
        good = weekly(service, member, horizon=14)
        bad = service.create_series(
            member.id, "FREQ=DAILY", TODAY, time(12), time(13), max_advance_days=2
        )
        clock.advance(days=7)

        report = RecurringReservationService(
            db, clock=clock, expander=ExplodingExpander()
        ).materialize_all_active()

        assert report.processed == 2
        assert report.created == 1
        assert report.failed == 1
        assert report.failures[bad.id] == "RuntimeError: boom"
        assert good.id not in report.failures

    def test_cancelled_series_are_not_swept(self, service, member):
        series = weekly(service, member, horizon=14)
        service.cancel_series(series.id)

        assert service.materialize_all_active().processed == 0
