"""
Commission calculation. Pure functions, no storage.

Conversion commission:
  percentage → amount × rate / 100
  fixed      → rate (amount ignored)

Volume earnings (optional per program):
  floor(count / unit) × rate, e.g. 10.00 per 1000 impressions
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional, Union

from affiliate_tracker.models import CommissionType, to_money

Number = Union[Decimal, int, float, str]


def compute_commission(
    commission_type: Union[CommissionType, str],
    rate: Number,
    amount: Number,
) -> Decimal:
    """Commission for one conversion, rounded half-up to cents.

    Rate bounds (≤ 100 for percentage) are validated when the program is
    configured, not here.
    """
    commission_type = CommissionType(commission_type)
    rate = Decimal(str(rate))
    amount = Decimal(str(amount))
    if rate < 0 or amount < 0:
        raise ValueError("rate and amount must be non-negative")

    if commission_type is CommissionType.PERCENTAGE:
        return to_money(amount * rate / Decimal(100))
    return to_money(rate)


def compute_volume_earnings(
    count: int,
    rate: Optional[Number],
    unit: Optional[int],
) -> Decimal:
    """Earnings for `count` events paid `rate` per full block of `unit` events."""
    if not rate or not unit or unit <= 0 or count <= 0:
        return to_money(0)
    blocks = count // unit
    return to_money(Decimal(blocks) * Decimal(str(rate)))
