"""Domain enums and value helpers shared by the ORM, services and API."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum

CENT = Decimal("0.01")


class CommissionType(str, Enum):
    """How a program pays out on a conversion."""
    PERCENTAGE = "percentage"  # rate is a percent of the transaction amount
    FIXED = "fixed"            # rate is a flat currency amount


class ConversionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    REJECTED = "rejected"


def to_money(value) -> Decimal:
    """Coerce a number (or SQL aggregate result) to a 2dp Decimal, half-up."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def utcnow() -> datetime:
    """Naive UTC timestamp; all stored times are naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc_naive(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
