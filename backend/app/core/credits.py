"""Credit block arithmetic and allocation policies."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Union

DEFAULT_MINUTES_PER_BLOCK = 30


def hours_to_blocks(hours: float, minutes_per_block: int = DEFAULT_MINUTES_PER_BLOCK) -> int:
    """Convert hours to credit blocks, rounding partial blocks up."""
    if hours <= 0:
        return 0
    # round() first so float noise like 1.0000000001 blocks doesn't bump the ceiling
    return int(math.ceil(round(hours * 60 / minutes_per_block, 9)))


def blocks_to_hours(blocks: int, minutes_per_block: int = DEFAULT_MINUTES_PER_BLOCK) -> float:
    """Convert credit blocks to hours."""
    return blocks * minutes_per_block / 60


@dataclass(frozen=True)
class ResetPolicy:
    """Monthly value replaces whatever balance is left (use it or lose it)."""

    rollover_enabled = False
    max_balance = None


@dataclass(frozen=True)
class RolloverPolicy:
    """Monthly value is added on top of the balance, never beyond ``cap``."""

    cap: int
    rollover_enabled = True

    @property
    def max_balance(self) -> int:
        return self.cap

    def headroom(self, balance: int) -> int:
        return max(0, self.cap - balance)


CreditPolicy = Union[ResetPolicy, RolloverPolicy]
