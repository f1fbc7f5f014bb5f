"""Tests for commission math: percentage, fixed, rounding and volume earnings."""
from decimal import Decimal

import pytest

from affiliate_tracker.models import CommissionType, to_money
from affiliate_tracker.services.commission import compute_commission, compute_volume_earnings


class TestComputeCommission:
    def test_percentage_of_amount(self):
        assert compute_commission(CommissionType.PERCENTAGE, Decimal("10"), Decimal("200")) == Decimal("20.00")

    def test_fixed_ignores_amount(self):
        assert compute_commission(CommissionType.FIXED, Decimal("5"), Decimal("999.99")) == Decimal("5.00")
        assert compute_commission(CommissionType.FIXED, Decimal("5"), Decimal("0")) == Decimal("5.00")

    def test_accepts_plain_strings(self):
        assert compute_commission("percentage", "12.5", "80") == Decimal("10.00")

    def test_rounds_half_up_to_cents(self):
        # 2.5% of 0.50 = 0.0125 → 0.01; 5% of 0.10 = 0.005 → 0.01
        assert compute_commission(CommissionType.PERCENTAGE, "2.5", "0.50") == Decimal("0.01")
        assert compute_commission(CommissionType.PERCENTAGE, "5", "0.10") == Decimal("0.01")

    def test_zero_amount_percentage_is_zero(self):
        assert compute_commission(CommissionType.PERCENTAGE, "10", "0") == Decimal("0.00")

    def test_negative_inputs_rejected(self):
        with pytest.raises(ValueError):
            compute_commission(CommissionType.PERCENTAGE, "-1", "100")
        with pytest.raises(ValueError):
            compute_commission(CommissionType.FIXED, "5", "-100")

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            compute_commission("tiered", "5", "100")


class TestVolumeEarnings:
    def test_full_blocks_only(self):
        assert compute_volume_earnings(2500, Decimal("10.00"), 1000) == Decimal("20.00")

    def test_below_one_block_is_zero(self):
        assert compute_volume_earnings(999, Decimal("10.00"), 1000) == Decimal("0.00")

    def test_unconfigured_is_zero(self):
        assert compute_volume_earnings(5000, None, 1000) == Decimal("0.00")
        assert compute_volume_earnings(5000, Decimal("1.00"), None) == Decimal("0.00")
        assert compute_volume_earnings(5000, Decimal("1.00"), 0) == Decimal("0.00")


def test_to_money_handles_none_and_floats():
    assert to_money(None) == Decimal("0.00")
    assert to_money(1.005) == Decimal("1.01")
    assert to_money(Decimal("3")) == Decimal("3.00")
