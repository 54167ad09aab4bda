"""
Credit ledger service.

Balances are integers of fixed-size blocks (30 minutes by default). Every
mutation locks the (user, credit type) balance row, changes it, and appends a
ledger entry recording the signed amount and the resulting balance, all inside
one transaction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.credits import CreditPolicy, RolloverPolicy
from app.core.enums import CreditSource, CreditType
from app.core.exceptions import (
    InsufficientCreditsException,
    PromoCodeAlreadyRedeemedException,
    PromoCodeMaxUsesException,
    PromoCodeNotFoundException,
    ValidationException,
)
from app.core.timezone_utils import Clock, period_key
from app.events import CreditsGranted, CreditsSpent, EventPublisher, PromoCodeRedeemed
from app.models.credit import CreditTransaction, UserCredit
from app.monitoring.prometheus_metrics import prometheus_metrics
from app.repositories.factory import RepositoryFactory

from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass
class LedgerVerification:
    """Result of replaying a balance's history."""

    user_id: str
    credit_type: str
    balance: int
    replayed_balance: int
    entries: int
    mismatched_sequences: List[int] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.mismatched_sequences and self.balance == self.replayed_balance


def _type_value(credit_type: CreditType | str) -> str:
    return credit_type.value if isinstance(credit_type, CreditType) else str(credit_type)


def _source_value(source: CreditSource | str) -> str:
    return source.value if isinstance(source, CreditSource) else str(source)


class CreditService(BaseService):
    """Grants, spends, monthly allocations and promo redemptions for member credits."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        policies: Optional[Dict[CreditType, CreditPolicy]] = None,
    ):
        super().__init__(db, clock=clock)
        self.credit_repository = RepositoryFactory.create_credit_repository(db)
        self.promo_code_repository = RepositoryFactory.create_promo_code_repository(db)
        self.policies = policies or settings.credit_policies()

    def get_policy(self, credit_type: CreditType | str) -> CreditPolicy:
        try:
            return self.policies[CreditType(_type_value(credit_type))]
        except (KeyError, ValueError) as exc:
            raise ValidationException(
                f"Unknown credit type: {_type_value(credit_type)}",
                code="UNKNOWN_CREDIT_TYPE",
            ) from exc

    def _lock_balance(self, user_id: str, credit_type: str) -> UserCredit:
        policy = self.get_policy(credit_type)
        credit = self.credit_repository.lock_balance(
            user_id=user_id,
            credit_type=credit_type,
            max_balance=policy.max_balance,
            rollover_enabled=policy.rollover_enabled,
        )
        self._expire_if_needed(credit)
        return credit

    def _expire_if_needed(self, credit: UserCredit) -> None:
        """Zero out a locked balance whose expiry has passed, with a ledger entry."""
        if not credit.is_expired(self.now()):
            return
        forfeited = credit.balance
        credit.expires_at = None
        if forfeited == 0:
            return
        credit.balance = 0
        self.credit_repository.append_transaction(
            credit,
            amount=-forfeited,
            source=CreditSource.EXPIRATION.value,
            description=f"Expired {forfeited} unused blocks",
        )
        self.logger.info(
            "Expired %s %s blocks for user %s", forfeited, credit.credit_type, credit.user_id
        )

    def _record(
        self,
        credit: UserCredit,
        amount: int,
        source: str,
        source_id: Optional[str] = None,
        description: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> CreditTransaction:
        entry = self.credit_repository.append_transaction(
            credit,
            amount=amount,
            source=source,
            source_id=source_id,
            description=description,
            details=details,
        )
        prometheus_metrics.inc_ledger_entry(credit.credit_type, source)
        event_cls = CreditsGranted if amount >= 0 else CreditsSpent
        EventPublisher.publish_after_commit(
            self.db,
            event_cls(
                user_id=credit.user_id,
                credit_type=credit.credit_type,
                amount=abs(amount),
                balance_after=credit.balance,
                source=source,
                source_id=source_id,
            ),
        )
        return entry

    @BaseService.measure_operation("get_balance")
    def get_balance(self, user_id: str, credit_type: CreditType | str = CreditType.FREE_HOURS) -> int:
        """Current non-expired balance in blocks; 0 when the user has no balance row."""
        credit = self.credit_repository.get_balance_row(
            user_id=user_id, credit_type=_type_value(credit_type)
        )
        if credit is None or credit.is_expired(self.now()):
            return 0
        return int(credit.balance)

    def lock_balance(self, user_id: str, credit_type: CreditType | str = CreditType.FREE_HOURS) -> int:
        """
        Lock the balance row inside the caller's transaction and return it.

        Used to price against a balance nobody else can spend until the caller
        commits. Creates the row at zero on first use.
        """
        return int(self._lock_balance(user_id, _type_value(credit_type)).balance)

    @BaseService.measure_operation("grant_credits")
    def grant(
        self,
        user_id: str,
        amount: int,
        source: CreditSource | str,
        credit_type: CreditType | str = CreditType.FREE_HOURS,
        source_id: Optional[str] = None,
        description: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        *,
        use_transaction: bool = True,
    ) -> CreditTransaction:
        """
        Add ``amount`` blocks to a balance, creating the balance row on first use.

        ``expires_at`` replaces the balance's expiry when given.
        """
        if amount < 0:
            raise ValidationException("Grant amount cannot be negative", code="INVALID_AMOUNT")
        type_value = _type_value(credit_type)
        source_value = _source_value(source)

        def _grant() -> CreditTransaction:
            credit = self._lock_balance(user_id, type_value)
            credit.balance += amount
            if expires_at is not None:
                credit.expires_at = expires_at
            entry = self._record(credit, amount, source_value, source_id, description)
            self.logger.info(
                "Granted %s %s blocks to %s (%s), balance now %s",
                amount,
                type_value,
                user_id,
                source_value,
                credit.balance,
            )
            return entry

        if use_transaction:
            with self.transaction():
                return _grant()
        return _grant()

    @BaseService.measure_operation("spend_credits")
    def spend(
        self,
        user_id: str,
        amount: int,
        source: CreditSource | str = CreditSource.RESERVATION_USAGE,
        credit_type: CreditType | str = CreditType.FREE_HOURS,
        source_id: Optional[str] = None,
        description: Optional[str] = None,
        *,
        use_transaction: bool = True,
    ) -> Optional[CreditTransaction]:
        """
        Take ``amount`` blocks from a balance.

        Spending 0 does nothing and returns None.

        Raises:
            InsufficientCreditsException: If the balance is lower than ``amount``
        """
        if amount < 0:
            raise ValidationException("Spend amount cannot be negative", code="INVALID_AMOUNT")
        if amount == 0:
            return None
        type_value = _type_value(credit_type)
        source_value = _source_value(source)

        def _spend() -> CreditTransaction:
            credit = self._lock_balance(user_id, type_value)
            if credit.balance < amount:
                self.logger.warning(
                    "Rejected spend of %s %s blocks for %s: balance is %s",
                    amount,
                    type_value,
                    user_id,
                    credit.balance,
                )
                raise InsufficientCreditsException(credit.balance, amount, type_value)
            credit.balance -= amount
            return self._record(credit, -amount, source_value, source_id, description)

        if use_transaction:
            with self.transaction():
                return _spend()
        return _spend()

    @BaseService.measure_operation("allocate_monthly")
    def allocate_monthly(
        self,
        user_id: str,
        amount: int,
        credit_type: CreditType | str = CreditType.FREE_HOURS,
        *,
        use_transaction: bool = True,
    ) -> Optional[CreditTransaction]:
        """
        Apply the monthly allowance once per calendar month.

        Reset types replace the balance with ``amount``; rollover types add up to
        the cap. A repeat call in the same month with a larger amount (a tier
        upgrade) grants only the difference. Returns None when nothing was written.
        """
        if amount < 0:
            raise ValidationException("Allocation amount cannot be negative", code="INVALID_AMOUNT")
        type_value = _type_value(credit_type)
        policy = self.get_policy(type_value)

        def _allocate() -> Optional[CreditTransaction]:
            credit = self._lock_balance(user_id, type_value)
            credit.max_balance = policy.max_balance
            credit.rollover_enabled = policy.rollover_enabled
            period = period_key(self.now())

            if credit.last_allocated_period == period:
                return self._apply_upgrade(credit, amount, policy, period)

            credit.last_allocated_period = period
            credit.last_allocated_amount = amount

            if isinstance(policy, RolloverPolicy):
                granted = min(amount, policy.headroom(credit.balance))
                cap_reached = granted < amount
                if granted == 0:
                    self.logger.info(
                        "Monthly %s allocation for %s skipped: balance at cap %s",
                        type_value,
                        user_id,
                        policy.cap,
                    )
                    return None
                credit.balance += granted
                description = f"Monthly allocation for {period}: {granted} of {amount} blocks"
                if cap_reached:
                    description += " (cap reached)"
                return self._record(
                    credit,
                    granted,
                    CreditSource.MONTHLY_ALLOCATION.value,
                    description=description,
                    details={
                        "period": period,
                        "requested": amount,
                        "granted": granted,
                        "cap": policy.cap,
                        "cap_reached": cap_reached,
                    },
                )

            previous = credit.balance
            if previous == 0 and amount == 0:
                return None
            credit.balance = amount
            return self._record(
                credit,
                amount - previous,
                CreditSource.MONTHLY_RESET.value,
                description=f"Monthly reset for {period}: {amount} blocks (discarded {previous})",
                details={"period": period, "allocated": amount, "discarded": previous},
            )

        if use_transaction:
            with self.transaction():
                return _allocate()
        return _allocate()

    def _apply_upgrade(
        self, credit: UserCredit, amount: int, policy: CreditPolicy, period: str
    ) -> Optional[CreditTransaction]:
        already = credit.last_allocated_amount or 0
        if amount <= already:
            self.logger.debug(
                "Monthly %s allocation for %s already applied in %s",
                credit.credit_type,
                credit.user_id,
                period,
            )
            return None

        difference = amount - already
        credit.last_allocated_amount = amount
        granted = difference
        if isinstance(policy, RolloverPolicy):
            granted = min(difference, policy.headroom(credit.balance))
        if granted == 0:
            return None

        credit.balance += granted
        self.logger.info(
            "Upgrade adjustment of %s %s blocks for %s in %s",
            granted,
            credit.credit_type,
            credit.user_id,
            period,
        )
        return self._record(
            credit,
            granted,
            CreditSource.UPGRADE_ADJUSTMENT.value,
            description=f"Allowance raised from {already} to {amount} blocks for {period}",
            details={
                "period": period,
                "previous_amount": already,
                "new_amount": amount,
                "granted": granted,
                "cap_reached": granted < difference,
            },
        )

    @BaseService.measure_operation("redeem_promo_code")
    def redeem_promo_code(
        self, user_id: str, code: str, *, use_transaction: bool = True
    ) -> CreditTransaction:
        """
        Redeem a promo code for its credit grant.

        Raises:
            PromoCodeNotFoundException: Unknown, inactive or expired code
            PromoCodeAlreadyRedeemedException: This user already redeemed it
            PromoCodeMaxUsesException: No uses left
        """
        self.log_operation("redeem_promo_code", user_id=user_id)
        normalized = (code or "").strip()
        if not normalized or len(normalized) > settings.promo_code_max_length:
            raise PromoCodeNotFoundException(normalized)

        def _redeem() -> CreditTransaction:
            promo = self.promo_code_repository.lock_by_code(normalized)
            if promo is None or not promo.is_redeemable_at(self.now()):
                raise PromoCodeNotFoundException(normalized)
            if self.promo_code_repository.has_redemption(promo_code_id=promo.id, user_id=user_id):
                raise PromoCodeAlreadyRedeemedException(promo.code)
            if not promo.has_uses_left:
                raise PromoCodeMaxUsesException(promo.code, promo.max_uses or 0)

            entry = self.grant(
                user_id,
                promo.credit_amount,
                CreditSource.PROMO_CODE,
                credit_type=promo.credit_type,
                source_id=promo.id,
                description=f"Promo code {promo.code}",
                use_transaction=False,
            )
            self.promo_code_repository.create_redemption(
                promo_code_id=promo.id, user_id=user_id, credit_transaction_id=entry.id
            )
            promo.uses_count += 1
            self.promo_code_repository.flush()

            EventPublisher.publish_after_commit(
                self.db,
                PromoCodeRedeemed(
                    user_id=user_id,
                    code=promo.code,
                    credit_type=promo.credit_type,
                    amount=promo.credit_amount,
                ),
            )
            self.logger.info("User %s redeemed promo code %s", user_id, promo.code)
            return entry

        if use_transaction:
            with self.transaction():
                return _redeem()
        return _redeem()

    @BaseService.measure_operation("get_transactions")
    def get_transactions(
        self,
        user_id: str,
        credit_type: CreditType | str = CreditType.FREE_HOURS,
        limit: Optional[int] = None,
    ) -> List[CreditTransaction]:
        """Ledger history for one balance, oldest first."""
        return self.credit_repository.get_transactions(
            user_id=user_id, credit_type=_type_value(credit_type), limit=limit
        )

    @BaseService.measure_operation("verify_ledger")
    def verify_ledger(
        self, user_id: str, credit_type: CreditType | str = CreditType.FREE_HOURS
    ) -> LedgerVerification:
        """
        Replay the ledger from zero and compare it with the stored balances.

        Each entry's ``balance_after`` must equal the running sum of amounts up
        to and including it, and the final sum must equal the balance row.
        """
        type_value = _type_value(credit_type)
        entries = self.credit_repository.get_transactions(user_id=user_id, credit_type=type_value)
        credit = self.credit_repository.get_balance_row(user_id=user_id, credit_type=type_value)

        running = 0
        mismatched: List[int] = []
        for entry in entries:
            running += entry.amount
            if entry.balance_after != running:
                mismatched.append(entry.sequence)

        result = LedgerVerification(
            user_id=user_id,
            credit_type=type_value,
            balance=int(credit.balance) if credit is not None else 0,
            replayed_balance=running,
            entries=len(entries),
            mismatched_sequences=mismatched,
        )
        if not result.is_consistent:
            self.logger.error(
                "Ledger mismatch for %s/%s: balance %s, replayed %s, bad entries %s",
                user_id,
                type_value,
                result.balance,
                running,
                mismatched,
            )
        return result
