"""
Conversion recording + approval lifecycle.

Recording flow (one call per reported purchase):
  1. validate transaction_id / amount
  2. affiliate code: explicit code first, else the attribution token
  3. resolve the link (active link + active program)
  4. reject a transaction_id that was already recorded
  5. commission from the program's model and rate
  6. last-click attribution as of now
  7. persist as pending

The transaction_id unique constraint is the real idempotency guard. The read
in step 4 only gives the common case a clean error; two concurrent deliveries
that both pass it still collide on insert, and that collision is reported as
DuplicateConversion.

Status lifecycle (admin-only):
  pending → approved → paid
  pending/approved → rejected
  paid and rejected are terminal.
Commission is never recomputed on a status change.
"""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_tracker.db.affiliate_tables import ConversionRow
from affiliate_tracker.db.repository import AffiliateRepository
from affiliate_tracker.errors import (
    ConversionNotFound, DuplicateConversion, InvalidInput, InvalidLink,
    InvalidTransition, NoAttributionCode,
)
from affiliate_tracker.models import ConversionStatus, as_utc_naive, to_money, utcnow
from affiliate_tracker.services.affiliate_links import resolve_link
from affiliate_tracker.services.attribution import attribution_window, select_attributed_click
from affiliate_tracker.services.commission import compute_commission

logger = logging.getLogger(__name__)

MAX_TRANSACTION_ID_LENGTH = 255
MAX_NOTES_LENGTH = 1000
# Numeric(12, 2) holds at most 10 integer digits
MAX_AMOUNT = Decimal("10000000000")

ALLOWED_TRANSITIONS: dict[ConversionStatus, frozenset[ConversionStatus]] = {
    ConversionStatus.PENDING: frozenset({ConversionStatus.APPROVED, ConversionStatus.REJECTED}),
    ConversionStatus.APPROVED: frozenset({ConversionStatus.PAID, ConversionStatus.REJECTED}),
    ConversionStatus.PAID: frozenset(),
    ConversionStatus.REJECTED: frozenset(),
}


def can_transition(current: ConversionStatus, new: ConversionStatus) -> bool:
    return new in ALLOWED_TRANSITIONS[current]


def _parse_amount(amount) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise InvalidInput("amount must be a number")
    if not value.is_finite() or value < 0:
        raise InvalidInput("amount must be a non-negative number")
    value = to_money(value)
    if value >= MAX_AMOUNT:
        raise InvalidInput("amount is too large")
    return value


async def record_conversion(
    session: AsyncSession,
    transaction_id: str,
    amount,
    affiliate_code: Optional[str] = None,
    attribution_token: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ConversionRow:
    transaction_id = (transaction_id or "").strip()
    if not transaction_id:
        raise InvalidInput("transaction_id is required")
    if len(transaction_id) > MAX_TRANSACTION_ID_LENGTH:
        raise InvalidInput("transaction_id is too long")
    amount = _parse_amount(amount)

    code = (affiliate_code or "").strip() or (attribution_token or "").strip()
    if not code:
        raise NoAttributionCode()

    try:
        link, program = await resolve_link(session, code)
    except InvalidLink:
        logger.warning("Conversion %s references invalid affiliate code", transaction_id)
        raise

    repo = AffiliateRepository(session)
    if await repo.get_conversion_by_transaction(transaction_id):
        logger.warning("Duplicate conversion rejected: transaction=%s", transaction_id)
        raise DuplicateConversion()

    commission = compute_commission(program.commission_type, program.commission_rate, amount)

    as_of = as_utc_naive(now) if now else utcnow()
    start, end = attribution_window(as_of, program.attribution_window_days)
    candidates = await repo.latest_clicks_in_window(link.id, start, end)
    click = select_attributed_click(candidates, as_of, program.attribution_window_days)

    conversion = ConversionRow(
        transaction_id=transaction_id,
        link_id=link.id,
        click_id=click.id if click else None,
        amount=amount,
        commission=commission,
        status=ConversionStatus.PENDING,
        converted_at=as_of,
    )
    link_id = link.id
    try:
        await repo.insert_conversion(conversion)
    except IntegrityError:
        await session.rollback()
        if await repo.get_conversion_by_transaction(transaction_id):
            logger.warning("Concurrent duplicate conversion rejected: transaction=%s", transaction_id)
            raise DuplicateConversion()
        raise

    logger.info(
        "Conversion recorded: transaction=%s link=%s click=%s amount=%s commission=%s",
        transaction_id, link_id, conversion.click_id, amount, commission,
    )
    return conversion


async def update_status(
    session: AsyncSession,
    conversion_id: int,
    new_status,
    notes: Optional[str] = None,
) -> ConversionRow:
    """Move a conversion along the approval graph (compare-and-set on status)."""
    try:
        new_status = ConversionStatus(new_status)
    except ValueError:
        allowed = ", ".join(s.value for s in ConversionStatus)
        raise InvalidInput(f"status must be one of: {allowed}")
    if notes is not None and len(notes) > MAX_NOTES_LENGTH:
        raise InvalidInput("notes is too long")

    repo = AffiliateRepository(session)
    conversion = await repo.get_conversion(conversion_id)
    if conversion is None:
        raise ConversionNotFound()

    current = ConversionStatus(conversion.status)
    if not can_transition(current, new_status):
        logger.warning(
            "Rejected status transition %s → %s for conversion %s",
            current.value, new_status.value, conversion_id,
        )
        raise InvalidTransition(f"Cannot change status from {current.value} to {new_status.value}")

    updated = await repo.update_status_if(conversion_id, current, new_status, notes)
    if not updated:
        # Another admin moved it first; their transition stands
        raise InvalidTransition("Conversion status changed concurrently, reload and retry")

    await session.refresh(conversion)
    logger.info(
        "Conversion %s status %s → %s", conversion_id, current.value, new_status.value,
    )
    return conversion


async def delete_conversion(session: AsyncSession, conversion_id: int) -> None:
    repo = AffiliateRepository(session)
    conversion = await repo.get_conversion(conversion_id)
    if conversion is None:
        raise ConversionNotFound()
    audit = (conversion.transaction_id, conversion.status, conversion.commission)
    await repo.delete_conversion(conversion)
    logger.warning(
        "Conversion deleted by admin: id=%s transaction=%s status=%s commission=%s",
        conversion_id, *audit,
    )
