# backend/app/repositories/promo_code_repository.py
"""Promo code lookups and redemption bookkeeping."""

from __future__ import annotations

import logging
from typing import Optional, cast

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import RepositoryException
from app.models.promo_code import PromoCode, PromoCodeRedemption

from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PromoCodeRepository(BaseRepository[PromoCode]):
    """Repository for promo codes and their redemptions."""

    def __init__(self, db: Session):
        super().__init__(db, PromoCode)
        self.logger = logging.getLogger(__name__)

    def lock_by_code(self, code: str) -> Optional[PromoCode]:
        """
        Load a promo code FOR UPDATE, matching case-insensitively.

        Concurrent redemptions of the same code queue behind this lock, so the
        ``uses_count`` they observe is always current.
        """
        try:
            return cast(
                Optional[PromoCode],
                self.db.query(PromoCode)
                .filter(func.upper(PromoCode.code) == code.upper())
                .with_for_update()
                .populate_existing()
                .first(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to lock promo code %s: %s", code, exc)
            raise RepositoryException("Failed to load promo code") from exc

    def has_redemption(self, *, promo_code_id: str, user_id: str) -> bool:
        try:
            return (
                self.db.query(PromoCodeRedemption.id)
                .filter(
                    PromoCodeRedemption.promo_code_id == promo_code_id,
                    PromoCodeRedemption.user_id == user_id,
                )
                .first()
                is not None
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to check redemption for %s: %s", user_id, exc)
            raise RepositoryException("Failed to check promo code redemption") from exc

    def create_redemption(
        self,
        *,
        promo_code_id: str,
        user_id: str,
        credit_transaction_id: Optional[str],
    ) -> PromoCodeRedemption:
        redemption = PromoCodeRedemption(
            promo_code_id=promo_code_id,
            user_id=user_id,
            credit_transaction_id=credit_transaction_id,
        )
        try:
            self.db.add(redemption)
            self.db.flush()
            return redemption
        except SQLAlchemyError as exc:
            self.logger.error("Failed to record redemption for %s: %s", user_id, exc)
            raise RepositoryException("Failed to record promo code redemption") from exc


__all__ = ["PromoCodeRepository"]
