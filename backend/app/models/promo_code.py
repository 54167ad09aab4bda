# backend/app/models/promo_code.py
"""Promotional codes that grant a one-time amount of credit."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class PromoCode(Base):
    """A redeemable code. ``max_uses`` of None means unlimited redemptions."""

    __tablename__ = "promo_codes"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    credit_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    credit_type: Mapped[str] = mapped_column(String(32), nullable=False)
    max_uses: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    uses_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)

    redemptions: Mapped[List["PromoCodeRedemption"]] = relationship(
        "PromoCodeRedemption", back_populates="promo_code"
    )

    __table_args__ = (
        CheckConstraint("credit_amount > 0", name="ck_promo_codes_amount_positive"),
        CheckConstraint("uses_count >= 0", name="ck_promo_codes_uses_non_negative"),
    )

    def is_redeemable_at(self, now: datetime) -> bool:
        if not self.is_active:
            return False
        return self.expires_at is None or self.expires_at > now

    @property
    def has_uses_left(self) -> bool:
        return self.max_uses is None or self.uses_count < self.max_uses

    def __repr__(self) -> str:
        return f"<PromoCode {self.code} uses={self.uses_count}/{self.max_uses}>"


class PromoCodeRedemption(Base):
    """One redemption of a promo code by a member; at most one per pair."""

    __tablename__ = "promo_code_redemptions"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    promo_code_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("promo_codes.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(26), nullable=False)
    credit_transaction_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("credit_transactions.id"), nullable=True
    )
    redeemed_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)

    promo_code: Mapped[PromoCode] = relationship("PromoCode", back_populates="redemptions")

    __table_args__ = (
        UniqueConstraint("promo_code_id", "user_id", name="uq_promo_code_redemptions_pair"),
    )
