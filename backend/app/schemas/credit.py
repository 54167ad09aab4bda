# backend/app/schemas/credit.py
"""Credit balance and ledger schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from ..core.enums import CreditType
from .base import StandardizedModel, StrictRequestModel


class CreditBalanceResponse(StandardizedModel):
    user_id: str
    credit_type: CreditType
    balance: int = Field(..., description="Balance in blocks")
    hours: Optional[float] = Field(None, description="Balance in hours, free hours only")


class CreditTransactionResponse(StandardizedModel):
    id: str
    sequence: int
    credit_type: CreditType
    amount: int
    balance_after: int
    source: str
    source_id: Optional[str] = None
    description: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime


class CreditTransactionListResponse(StandardizedModel):
    items: List[CreditTransactionResponse]
    total: int


class PromoCodeRedeemRequest(StrictRequestModel):
    code: str = Field(..., min_length=1, max_length=64)


class PromoCodeRedeemResponse(StandardizedModel):
    code: str
    credit_type: CreditType
    granted: int
    balance: int
