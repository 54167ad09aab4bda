"""
Integration tests for the credit ledger.

Every test runs against a real SQLite file so the row locks taken by
``lock_balance`` and ``lock_by_code`` are exercised for real.
"""

from datetime import datetime, timedelta
import threading
from typing import Any, List

import pytest

from app.core.credits import ResetPolicy, RolloverPolicy
from app.core.enums import CreditSource, CreditType
from app.core.exceptions import (
    InsufficientCreditsException,
    PromoCodeAlreadyRedeemedException,
    PromoCodeMaxUsesException,
    PromoCodeNotFoundException,
    ValidationException,
)
from app.events import CreditsGranted, CreditsSpent, PromoCodeRedeemed
from app.models.promo_code import PromoCodeRedemption
from app.services.credit_service import CreditService
from tests.factories.builders import create_promo_code, create_user


@pytest.fixture
def service(db, clock):
    return CreditService(db, clock=clock)


def run_concurrently(session_factory, count: int, work) -> List[Any]:
    """Run ``work(session, index)`` in ``count`` threads, one session each."""
    barrier = threading.Barrier(count)
    outcomes: List[Any] = [None] * count

    def _runner(index: int) -> None:
        session = session_factory()
        try:
            barrier.wait()
            outcomes[index] = work(session, index)
        except Exception as exc:  # collected for assertions
            outcomes[index] = exc
        finally:
            session.close()

    threads = [threading.Thread(target=_runner, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return outcomes


class TestGrantAndSpend:
    def test_balance_starts_at_zero(self, service, member):
        assert service.get_balance(member.id) == 0
        assert service.get_transactions(member.id) == []

    def test_grant_then_spend_keeps_ledger_consistent(self, service, member):
        service.grant(member.id, 6, CreditSource.ADMIN_ADJUSTMENT)
        spent = service.spend(member.id, 4, source_id="res-1")

        assert spent.amount == -4
        assert spent.balance_after == 2
        assert service.get_balance(member.id) == 2

        history = service.get_transactions(member.id)
        assert [entry.sequence for entry in history] == [1, 2]
        assert [entry.amount for entry in history] == [6, -4]

        verification = service.verify_ledger(member.id)
        assert verification.is_consistent
        assert verification.replayed_balance == 2
        assert verification.entries == 2

    def test_overspend_is_rejected_without_writing(self, service, member):
        service.grant(member.id, 3, CreditSource.ADMIN_ADJUSTMENT)

        with pytest.raises(InsufficientCreditsException) as exc_info:
            service.spend(member.id, 4)

        assert exc_info.value.have == 3
        assert exc_info.value.need == 4
        assert service.get_balance(member.id) == 3
        assert len(service.get_transactions(member.id)) == 1

    def test_spending_nothing_is_a_no_op(self, service, member):
        assert service.spend(member.id, 0) is None
        assert service.get_transactions(member.id) == []

    def test_negative_amounts_are_rejected(self, service, member):
        with pytest.raises(ValidationException):
            service.grant(member.id, -1, CreditSource.ADMIN_ADJUSTMENT)
        with pytest.raises(ValidationException):
            service.spend(member.id, -1)

    def test_unknown_credit_type(self, service, member):
        with pytest.raises(ValidationException) as exc_info:
            service.grant(member.id, 1, CreditSource.ADMIN_ADJUSTMENT, credit_type="studio_time")
        assert exc_info.value.code == "UNKNOWN_CREDIT_TYPE"

    def test_balances_are_per_type(self, service, member):
        service.grant(member.id, 5, CreditSource.ADMIN_ADJUSTMENT)
        service.grant(member.id, 2, CreditSource.ADMIN_ADJUSTMENT, CreditType.EQUIPMENT_CREDITS)

        assert service.get_balance(member.id, CreditType.FREE_HOURS) == 5
        assert service.get_balance(member.id, CreditType.EQUIPMENT_CREDITS) == 2

    def test_events_are_delivered_after_commit(self, service, member, published_events):
        service.grant(member.id, 4, CreditSource.ADMIN_ADJUSTMENT)
        service.spend(member.id, 1)

        assert [type(event) for event in published_events] == [CreditsGranted, CreditsSpent]
        assert published_events[0].balance_after == 4
        assert published_events[1].amount == 1
        assert published_events[1].balance_after == 3

    def test_failed_spend_publishes_nothing(self, service, member, published_events):
        with pytest.raises(InsufficientCreditsException):
            service.spend(member.id, 1)
        assert published_events == []


class TestExpiry:
    def test_expired_balance_reads_as_zero_and_is_forfeited_on_next_write(
        self, service, member, clock
    ):
        service.grant(
            member.id,
            4,
            CreditSource.ADMIN_ADJUSTMENT,
            expires_at=clock() + timedelta(days=1),
        )
        clock.advance(days=2)

        assert service.get_balance(member.id) == 0

        service.grant(member.id, 2, CreditSource.ADMIN_ADJUSTMENT)

        history = service.get_transactions(member.id)
        assert [(entry.amount, entry.source) for entry in history] == [
            (4, CreditSource.ADMIN_ADJUSTMENT.value),
            (-4, CreditSource.EXPIRATION.value),
            (2, CreditSource.ADMIN_ADJUSTMENT.value),
        ]
        assert service.get_balance(member.id) == 2
        assert service.verify_ledger(member.id).is_consistent


class TestMonthlyAllocation:
    def test_reset_replaces_leftover_balance(self, service, member):
        service.grant(member.id, 3, CreditSource.ADMIN_ADJUSTMENT)

        entry = service.allocate_monthly(member.id, 8)

        assert entry.source == CreditSource.MONTHLY_RESET.value
        assert entry.amount == 5
        assert entry.details["discarded"] == 3
        assert service.get_balance(member.id) == 8

    def test_reset_can_lower_the_balance(self, service, member, clock):
        service.allocate_monthly(member.id, 8)
        clock.set(datetime(2026, 4, 1, 0, 5))
        service.grant(member.id, 4, CreditSource.ADMIN_ADJUSTMENT)

        entry = service.allocate_monthly(member.id, 8)

        assert entry.amount == -4
        assert service.get_balance(member.id) == 8
        assert service.verify_ledger(member.id).is_consistent

    def test_allocation_is_idempotent_within_a_month(self, service, member):
        assert service.allocate_monthly(member.id, 8) is not None
        assert service.allocate_monthly(member.id, 8) is None
        assert service.get_balance(member.id) == 8
        assert len(service.get_transactions(member.id)) == 1

    def test_spent_credits_are_not_reissued_in_the_same_month(self, service, member):
        service.allocate_monthly(member.id, 8)
        service.spend(member.id, 6)

        assert service.allocate_monthly(member.id, 8) is None
        assert service.get_balance(member.id) == 2

    def test_upgrade_grants_only_the_difference(self, service, member):
        service.allocate_monthly(member.id, 8)
        service.spend(member.id, 2)

        entry = service.allocate_monthly(member.id, 12)

        assert entry.source == CreditSource.UPGRADE_ADJUSTMENT.value
        assert entry.amount == 4
        assert service.get_balance(member.id) == 10
        assert service.allocate_monthly(member.id, 12) is None

    def test_new_month_allocates_again(self, service, member, clock):
        service.allocate_monthly(member.id, 8)
        service.spend(member.id, 8)
        clock.set(datetime(2026, 4, 1, 0, 5))

        entry = service.allocate_monthly(member.id, 8)

        assert entry.amount == 8
        assert service.get_balance(member.id) == 8


class TestRolloverCap:
    @pytest.fixture
    def capped(self, db, clock):
        return CreditService(
            db,
            clock=clock,
            policies={
                CreditType.FREE_HOURS: ResetPolicy(),
                CreditType.EQUIPMENT_CREDITS: RolloverPolicy(cap=10),
            },
        )

    def test_rollover_adds_on_top(self, capped, member, clock):
        capped.allocate_monthly(member.id, 4, CreditType.EQUIPMENT_CREDITS)
        clock.set(datetime(2026, 4, 1, 0, 5))
        entry = capped.allocate_monthly(member.id, 4, CreditType.EQUIPMENT_CREDITS)

        assert entry.source == CreditSource.MONTHLY_ALLOCATION.value
        assert capped.get_balance(member.id, CreditType.EQUIPMENT_CREDITS) == 8

    def test_rollover_stops_at_cap(self, capped, member, clock):
        capped.grant(member.id, 8, CreditSource.ADMIN_ADJUSTMENT, CreditType.EQUIPMENT_CREDITS)

        entry = capped.allocate_monthly(member.id, 4, CreditType.EQUIPMENT_CREDITS)

        assert entry.amount == 2
        assert entry.details["cap_reached"] is True
        assert capped.get_balance(member.id, CreditType.EQUIPMENT_CREDITS) == 10

        clock.set(datetime(2026, 4, 1, 0, 5))
        assert capped.allocate_monthly(member.id, 4, CreditType.EQUIPMENT_CREDITS) is None
        assert capped.get_balance(member.id, CreditType.EQUIPMENT_CREDITS) == 10
        assert capped.verify_ledger(member.id, CreditType.EQUIPMENT_CREDITS).is_consistent


class TestPromoCodes:
    def test_redeem_grants_credits(self, db, service, member, published_events):
        promo = create_promo_code(db, code="WELCOME4", credit_amount=4)

        entry = service.redeem_promo_code(member.id, " welcome4 ")

        assert entry.source == CreditSource.PROMO_CODE.value
        assert entry.source_id == promo.id
        assert service.get_balance(member.id) == 4
        db.refresh(promo)
        assert promo.uses_count == 1
        assert any(isinstance(event, PromoCodeRedeemed) for event in published_events)

    def test_unknown_code(self, service, member):
        with pytest.raises(PromoCodeNotFoundException):
            service.redeem_promo_code(member.id, "NOPE")
        with pytest.raises(PromoCodeNotFoundException):
            service.redeem_promo_code(member.id, "   ")
        with pytest.raises(PromoCodeNotFoundException):
            service.redeem_promo_code(member.id, "X" * 65)

    def test_expired_and_inactive_codes_are_not_found(self, db, service, member, clock):
        create_promo_code(db, code="OLD", expires_at=clock() - timedelta(hours=1))
        create_promo_code(db, code="OFF", is_active=False)

        with pytest.raises(PromoCodeNotFoundException):
            service.redeem_promo_code(member.id, "OLD")
        with pytest.raises(PromoCodeNotFoundException):
            service.redeem_promo_code(member.id, "OFF")

    def test_same_member_cannot_redeem_twice(self, db, service, member):
        create_promo_code(db, code="TWICE")
        service.redeem_promo_code(member.id, "TWICE")

        with pytest.raises(PromoCodeAlreadyRedeemedException):
            service.redeem_promo_code(member.id, "TWICE")
        assert service.get_balance(member.id) == 4

    def test_max_uses(self, db, service, member, guest):
        create_promo_code(db, code="ONCE", max_uses=1)
        service.redeem_promo_code(member.id, "ONCE")

        with pytest.raises(PromoCodeMaxUsesException):
            service.redeem_promo_code(guest.id, "ONCE")
        assert service.get_balance(guest.id) == 0


class TestConcurrency:
    def test_concurrent_spends_never_overdraw(self, db, session_factory, clock, member):
        CreditService(db, clock=clock).grant(member.id, 3, CreditSource.ADMIN_ADJUSTMENT)
        member_id = member.id
        db.close()

        outcomes = run_concurrently(
            session_factory,
            2,
            lambda session, _: CreditService(session, clock=clock).spend(member_id, 2),
        )

        successes = [o for o in outcomes if not isinstance(o, Exception)]
        failures = [o for o in outcomes if isinstance(o, Exception)]
        assert len(successes) == 1
        assert successes[0].balance_after == 1
        assert len(failures) == 1
        assert isinstance(failures[0], InsufficientCreditsException)

        service = CreditService(db, clock=clock)
        assert service.get_balance(member_id) == 1
        assert service.verify_ledger(member_id).is_consistent

    def test_concurrent_redemptions_respect_max_uses(self, db, session_factory, clock):
        first = create_user(db, "Ana One", sustaining=True)
        second = create_user(db, "Ben Two", sustaining=True)
        create_promo_code(db, code="LIMITED", max_uses=1)
        user_ids = [first.id, second.id]
        db.close()

        outcomes = run_concurrently(
            session_factory,
            2,
            lambda session, index: CreditService(session, clock=clock).redeem_promo_code(
                user_ids[index], "LIMITED"
            ),
        )

        failures = [o for o in outcomes if isinstance(o, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], PromoCodeMaxUsesException)
        assert db.query(PromoCodeRedemption).count() == 1
