"""Credit ledger domain events."""
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass
class CreditsGranted:
    user_id: str
    credit_type: str
    amount: int
    balance_after: int
    source: str
    source_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CreditsSpent:
    user_id: str
    credit_type: str
    amount: int
    balance_after: int
    source: str
    source_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PromoCodeRedeemed:
    user_id: str
    code: str
    credit_type: str
    amount: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
