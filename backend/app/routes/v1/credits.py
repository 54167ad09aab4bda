# backend/app/routes/v1/credits.py
"""
Credit routes - API v1

Endpoints:
    POST /promo-codes/redeem - Redeem a promo code
    GET /{credit_type} - Current balance
    GET /{credit_type}/transactions - Ledger history, oldest first
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import get_credit_service, get_current_user_id
from ...core.config import settings
from ...core.credits import blocks_to_hours
from ...core.enums import CreditType
from ...core.exceptions import DomainException
from ...schemas.credit import (
    CreditBalanceResponse,
    CreditTransactionListResponse,
    CreditTransactionResponse,
    PromoCodeRedeemRequest,
    PromoCodeRedeemResponse,
)
from ...services.credit_service import CreditService
from .reservations import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["credits-v1"])


@router.post("/promo-codes/redeem", response_model=PromoCodeRedeemResponse)
async def redeem_promo_code(
    payload: PromoCodeRedeemRequest,
    user_id: str = Depends(get_current_user_id),
    service: CreditService = Depends(get_credit_service),
) -> PromoCodeRedeemResponse:
    try:
        entry = await asyncio.to_thread(service.redeem_promo_code, user_id, payload.code)
    except DomainException as exc:
        handle_domain_exception(exc)
    return PromoCodeRedeemResponse(
        code=payload.code.strip(),
        credit_type=entry.credit_type,
        granted=entry.amount,
        balance=entry.balance_after,
    )


@router.get("/{credit_type}", response_model=CreditBalanceResponse)
async def get_balance(
    credit_type: CreditType,
    user_id: str = Depends(get_current_user_id),
    service: CreditService = Depends(get_credit_service),
) -> CreditBalanceResponse:
    """Balance in blocks; free hours are also reported in hours."""
    balance = await asyncio.to_thread(service.get_balance, user_id, credit_type)
    hours: Optional[float] = None
    if credit_type == CreditType.FREE_HOURS:
        hours = blocks_to_hours(balance, settings.minutes_per_block)
    return CreditBalanceResponse(
        user_id=user_id, credit_type=credit_type, balance=balance, hours=hours
    )


@router.get("/{credit_type}/transactions", response_model=CreditTransactionListResponse)
async def get_transactions(
    credit_type: CreditType,
    limit: Optional[int] = Query(None, ge=1, le=500),
    user_id: str = Depends(get_current_user_id),
    service: CreditService = Depends(get_credit_service),
) -> CreditTransactionListResponse:
    entries = await asyncio.to_thread(service.get_transactions, user_id, credit_type, limit)
    items = [CreditTransactionResponse.model_validate(entry) for entry in entries]
    return CreditTransactionListResponse(items=items, total=len(items))
