"""
Affiliate link registry.

One link per (affiliate, program). Joining a program twice returns the first
link. Codes are random (not derived from the affiliate or program) so they
can't be enumerated; uniqueness is enforced by the database and a collision
just means another attempt with a fresh code.
"""
from __future__ import annotations

import logging
import secrets
import string
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from affiliate_tracker.db.affiliate_tables import LinkRow
from affiliate_tracker.db.repository import AffiliateRepository
from affiliate_tracker.db.tables import ProgramRow
from affiliate_tracker.errors import LinkInactive, LinkNotFound, ProgramInactive, ProgramNotFound

logger = logging.getLogger(__name__)

_CODE_ALPHABET = string.ascii_letters + string.digits


def generate_code(length: int | None = None) -> str:
    """Cryptographically random alphanumeric code."""
    length = length or settings.AFFILIATE_CODE_LENGTH
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(length))


def build_redirect_url(code: str, base_url: str | None = None) -> str:
    base = settings.AFFILIATE_BASE_URL if base_url is None else base_url
    return f"{base.rstrip('/')}/aff/{code}"


async def create_or_get_link(
    session: AsyncSession,
    affiliate_id: str,
    program_id: int,
    base_url: Optional[str] = None,
) -> tuple[LinkRow, bool]:
    """Join a program. Returns (link, created).

    An existing link is returned unchanged even if the program has since been
    deactivated; only new joins require an active program.
    """
    repo = AffiliateRepository(session)

    existing = await repo.find_link_for(affiliate_id, program_id)
    if existing:
        return existing, False

    program = await repo.get_program(program_id)
    if program is None:
        raise ProgramNotFound()
    if not program.is_active:
        raise ProgramInactive()

    last_error: IntegrityError | None = None
    for attempt in range(1, settings.AFFILIATE_CODE_ATTEMPTS + 1):
        code = generate_code()
        link = LinkRow(
            program_id=program_id,
            affiliate_id=affiliate_id,
            code=code,
            url=build_redirect_url(code, base_url),
            is_active=True,
        )
        try:
            await repo.insert_link(link)
        except IntegrityError as exc:
            await session.rollback()
            last_error = exc
            # A concurrent join for the same pair won the race: hand back its link
            existing = await repo.find_link_for(affiliate_id, program_id)
            if existing:
                logger.info(
                    "Concurrent join resolved to existing link: affiliate=%s program=%s link=%s",
                    affiliate_id, program_id, existing.id,
                )
                return existing, False
            logger.warning("Link code collision (attempt %d), retrying", attempt)
            continue

        logger.info(
            "Affiliate link created: affiliate=%s program=%s link=%s",
            affiliate_id, program_id, link.id,
        )
        return link, True

    logger.error(
        "Gave up creating link after %d code collisions: affiliate=%s program=%s",
        settings.AFFILIATE_CODE_ATTEMPTS, affiliate_id, program_id,
    )
    raise last_error


async def resolve_link(session: AsyncSession, code: str) -> tuple[LinkRow, ProgramRow]:
    """Look up a link by public code; both link and program must be active."""
    found = await AffiliateRepository(session).find_link_with_program(code)
    if not found:
        raise LinkNotFound()
    link, program = found
    if not link.is_active or not program.is_active:
        raise LinkInactive()
    return link, program


async def set_link_active(session: AsyncSession, link_id: int, is_active: bool) -> tuple[LinkRow, ProgramRow]:
    """Admin switch for one link. Recorded clicks and conversions are untouched."""
    repo = AffiliateRepository(session)
    link = await repo.get_link(link_id)
    if link is None:
        raise LinkNotFound("Affiliate link not found")
    link.is_active = is_active
    await session.flush()
    logger.info("Affiliate link %s %s", link_id, "activated" if is_active else "deactivated")
    return link, await repo.get_program(link.program_id)
