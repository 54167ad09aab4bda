# backend/app/repositories/credit_repository.py
"""
Credit Repository for the practice space.

Owns the balance rows and their append-only history. ``lock_balance`` is the
only way the ledger reads a balance it is about to change: it takes an
exclusive row lock that is held until the caller's transaction ends.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, cast

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import ulid

from app.core.exceptions import RepositoryException
from app.models.credit import CreditTransaction, UserCredit

from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class CreditRepository(BaseRepository[UserCredit]):
    """Repository for credit balances and ledger entries."""

    def __init__(self, db: Session):
        super().__init__(db, UserCredit)
        self.logger = logging.getLogger(__name__)

    def get_balance_row(self, *, user_id: str, credit_type: str) -> Optional[UserCredit]:
        """Read the balance row without locking it."""
        try:
            return cast(
                Optional[UserCredit],
                self.db.query(UserCredit)
                .filter(UserCredit.user_id == user_id, UserCredit.credit_type == credit_type)
                .populate_existing()
                .first(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load balance for %s/%s: %s", user_id, credit_type, exc)
            raise RepositoryException("Failed to load credit balance") from exc

    def lock_balance(
        self,
        *,
        user_id: str,
        credit_type: str,
        max_balance: Optional[int] = None,
        rollover_enabled: bool = False,
    ) -> UserCredit:
        """
        Load the balance row FOR UPDATE, creating it at zero on first use.

        ``max_balance``/``rollover_enabled`` only apply to a freshly created row.
        """
        self._insert_ignoring_conflicts(
            {
                "id": str(ulid.ULID()),
                "user_id": user_id,
                "credit_type": credit_type,
                "balance": 0,
                "max_balance": max_balance,
                "rollover_enabled": rollover_enabled,
                "last_allocated_amount": 0,
                "transaction_count": 0,
            },
            index_elements=["user_id", "credit_type"],
        )
        try:
            row = (
                self.db.query(UserCredit)
                .filter(UserCredit.user_id == user_id, UserCredit.credit_type == credit_type)
                .with_for_update()
                .populate_existing()
                .one()
            )
            return cast(UserCredit, row)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to lock balance for %s/%s: %s", user_id, credit_type, exc)
            raise RepositoryException("Failed to lock credit balance") from exc

    def append_transaction(
        self,
        credit: UserCredit,
        *,
        amount: int,
        source: str,
        source_id: Optional[str] = None,
        description: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> CreditTransaction:
        """
        Record a ledger entry for a balance change already applied to ``credit``.

        The caller must hold the lock on ``credit``; the entry's sequence comes
        from the row's transaction counter.
        """
        credit.transaction_count = (credit.transaction_count or 0) + 1
        entry = CreditTransaction(
            user_id=credit.user_id,
            credit_type=credit.credit_type,
            sequence=credit.transaction_count,
            amount=amount,
            balance_after=credit.balance,
            source=source,
            source_id=source_id,
            description=description,
            details=details,
        )
        try:
            self.db.add(entry)
            self.db.flush()
            return entry
        except SQLAlchemyError as exc:
            self.logger.error(
                "Failed to append ledger entry for %s/%s: %s",
                credit.user_id,
                credit.credit_type,
                exc,
            )
            raise RepositoryException("Failed to record credit transaction") from exc

    def get_transactions(
        self,
        *,
        user_id: str,
        credit_type: str,
        limit: Optional[int] = None,
        newest_first: bool = False,
    ) -> List[CreditTransaction]:
        """Ledger entries for one balance, in creation order unless ``newest_first``."""
        try:
            order = CreditTransaction.sequence.desc() if newest_first else CreditTransaction.sequence
            query = (
                self.db.query(CreditTransaction)
                .filter(
                    CreditTransaction.user_id == user_id,
                    CreditTransaction.credit_type == credit_type,
                )
                .order_by(order)
            )
            if limit is not None:
                query = query.limit(limit)
            return cast(List[CreditTransaction], query.all())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load transactions for %s: %s", user_id, exc)
            raise RepositoryException("Failed to load credit transactions") from exc

    def get_net_amount_for_source(
        self,
        *,
        user_id: str,
        credit_type: str,
        source_id: str,
        sources: Iterable[str],
    ) -> int:
        """Sum of signed amounts recorded against ``source_id`` for the given sources."""
        try:
            total = (
                self.db.query(func.coalesce(func.sum(CreditTransaction.amount), 0))
                .filter(
                    CreditTransaction.user_id == user_id,
                    CreditTransaction.credit_type == credit_type,
                    CreditTransaction.source_id == source_id,
                    CreditTransaction.source.in_(list(sources)),
                )
                .scalar()
            )
            return int(total or 0)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to total ledger entries for %s: %s", source_id, exc)
            raise RepositoryException("Failed to total credit transactions") from exc


__all__ = ["CreditRepository"]
