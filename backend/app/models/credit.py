# backend/app/models/credit.py
"""
Credit ledger models.

``UserCredit`` is the mutable balance per (user, credit type). Every change to
it is paired with an append-only ``CreditTransaction`` carrying the signed
amount and the balance it produced, so the history alone can be replayed to
reconcile the balance.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
import ulid

from ..database import Base


class UserCredit(Base):
    """Current balance, in blocks, for one credit type of one user."""

    __tablename__ = "user_credits"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: Mapped[str] = mapped_column(String(26), nullable=False)
    credit_type: Mapped[str] = mapped_column(String(32), nullable=False)
    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_balance: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rollover_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Monthly allocation marker ("YYYY-MM") and the amount allocated in that period
    last_allocated_period: Mapped[Optional[str]] = mapped_column(String(7), nullable=True)
    last_allocated_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Number of ledger rows written so far; next row gets transaction_count + 1
    transaction_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "credit_type", name="uq_user_credits_user_type"),
        CheckConstraint("balance >= 0", name="ck_user_credits_balance_non_negative"),
    )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def __repr__(self) -> str:
        return f"<UserCredit user={self.user_id} type={self.credit_type} balance={self.balance}>"


class CreditTransaction(Base):
    """Append-only audit entry for a single balance change."""

    __tablename__ = "credit_transactions"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: Mapped[str] = mapped_column(String(26), nullable=False)
    credit_type: Mapped[str] = mapped_column(String(32), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    source_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    details: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "user_id", "credit_type", "sequence", name="uq_credit_transactions_sequence"
        ),
        CheckConstraint("balance_after >= 0", name="ck_credit_transactions_balance_after"),
        Index("idx_credit_transactions_source", "source", "source_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<CreditTransaction user={self.user_id} type={self.credit_type} "
            f"#{self.sequence} amount={self.amount} balance_after={self.balance_after}>"
        )
