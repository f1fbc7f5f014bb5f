"""
Click & impression tracking.

Every resolved visit writes one click row; counts are raw traffic, not unique
visitors. Inactive or unknown codes write nothing. The attribution token handed
back is the link code itself; the HTTP layer decides how to carry it (cookie).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_tracker.db.affiliate_tables import ClickRow, ImpressionRow
from affiliate_tracker.db.repository import AffiliateRepository
from affiliate_tracker.errors import InvalidLink
from affiliate_tracker.models import as_utc_naive, utcnow
from affiliate_tracker.services.affiliate_links import resolve_link

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 1440


@dataclass(frozen=True)
class RequestMetadata:
    """What the boundary layer knows about the visitor."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referer: Optional[str] = None
    country: Optional[str] = None  # e.g. from a CDN geo header


@dataclass(frozen=True)
class ClickResult:
    click_id: int
    link_id: int
    redirect_url: str
    attribution_token: str
    token_max_age_minutes: int


def resolve_country(header_value: Optional[str]) -> Optional[str]:
    """Best-effort ISO country code from a CDN header such as CF-IPCountry."""
    if not header_value:
        return None
    value = header_value.strip().upper()
    # Cloudflare uses XX for unknown and T1 for Tor
    if len(value) != 2 or not value.isalpha() or value == "XX":
        return None
    return value


def _clip(value: Optional[str], limit: int) -> Optional[str]:
    return value[:limit] if value else value


async def record_click(
    session: AsyncSession,
    code: str,
    meta: RequestMetadata,
    now: Optional[datetime] = None,
) -> ClickResult:
    try:
        link, program = await resolve_link(session, code)
    except InvalidLink:
        logger.warning("Click on invalid affiliate code %r ignored", code)
        raise

    click = ClickRow(
        link_id=link.id,
        ip_address=_clip(meta.ip_address, 45),
        user_agent=_clip(meta.user_agent, 500),
        referer=_clip(meta.referer, 1000),
        country=meta.country,
        clicked_at=as_utc_naive(now) if now else utcnow(),
    )
    await AffiliateRepository(session).add_click(click)
    logger.info("Affiliate click recorded: link=%s click=%s", link.id, click.id)

    return ClickResult(
        click_id=click.id,
        link_id=link.id,
        redirect_url=program.target_url,
        attribution_token=link.code,
        token_max_age_minutes=program.attribution_window_days * MINUTES_PER_DAY,
    )


async def record_impression(
    session: AsyncSession,
    code: str,
    meta: RequestMetadata,
    now: Optional[datetime] = None,
) -> ImpressionRow:
    """Append an impression for an active link; same validation as clicks."""
    try:
        link, _program = await resolve_link(session, code)
    except InvalidLink:
        logger.warning("Impression on invalid affiliate code %r ignored", code)
        raise

    impression = ImpressionRow(
        link_id=link.id,
        ip_address=_clip(meta.ip_address, 45),
        user_agent=_clip(meta.user_agent, 500),
        referer=_clip(meta.referer, 1000),
        country=meta.country,
        viewed_at=as_utc_naive(now) if now else utcnow(),
    )
    await AffiliateRepository(session).add_impression(impression)
    return impression
