"""Tests for credit block arithmetic and allocation policies."""

import pytest

from app.core.config import Settings
from app.core.credits import ResetPolicy, RolloverPolicy, blocks_to_hours, hours_to_blocks
from app.core.enums import CreditType


class TestBlocks:
    @pytest.mark.parametrize(
        "hours,blocks",
        [(0, 0), (-1, 0), (0.5, 1), (1, 2), (1.25, 3), (2, 4), (1 / 3, 1)],
    )
    def test_hours_to_blocks_rounds_up(self, hours, blocks):
        assert hours_to_blocks(hours) == blocks

    def test_custom_block_size(self):
        assert hours_to_blocks(1, minutes_per_block=15) == 4
        assert blocks_to_hours(4, minutes_per_block=15) == 1

    def test_blocks_to_hours(self):
        assert blocks_to_hours(4) == 2
        assert blocks_to_hours(3) == 1.5


class TestPolicies:
    def test_reset_policy_has_no_cap(self):
        policy = ResetPolicy()
        assert policy.rollover_enabled is False
        assert policy.max_balance is None

    def test_rollover_headroom(self):
        policy = RolloverPolicy(cap=10)
        assert policy.rollover_enabled is True
        assert policy.max_balance == 10
        assert policy.headroom(7) == 3
        assert policy.headroom(12) == 0

    def test_settings_resolve_each_credit_type_once(self):
        policies = Settings(equipment_credits_cap=40).credit_policies()
        assert isinstance(policies[CreditType.FREE_HOURS], ResetPolicy)
        assert policies[CreditType.EQUIPMENT_CREDITS] == RolloverPolicy(cap=40)
