"""Affiliate program administration (create / update / delete / list)."""
from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_tracker.db.repository import AffiliateRepository
from affiliate_tracker.db.tables import ProgramRow
from affiliate_tracker.errors import InvalidInput, ProgramInUse, ProgramNotFound
from affiliate_tracker.models import CommissionType

logger = logging.getLogger(__name__)


def _check_rate(commission_type, rate) -> None:
    """A percentage program can never pay out more than the sale itself."""
    if rate is not None and CommissionType(commission_type) is CommissionType.PERCENTAGE and rate > 100:
        raise InvalidInput("commission_rate cannot exceed 100 for percentage programs")


async def create_program(session: AsyncSession, fields: dict) -> ProgramRow:
    _check_rate(fields.get("commission_type", CommissionType.PERCENTAGE), fields.get("commission_rate"))
    program = await AffiliateRepository(session).add_program(ProgramRow(**fields))
    logger.info("Affiliate program created: id=%s name=%r", program.id, program.name)
    return program


async def update_program(session: AsyncSession, program_id: int, fields: dict) -> ProgramRow:
    """Partial update. Existing conversions keep the commission they were created with."""
    repo = AffiliateRepository(session)
    program = await repo.get_program(program_id)
    if program is None:
        raise ProgramNotFound()
    _check_rate(
        fields.get("commission_type", program.commission_type),
        fields.get("commission_rate", program.commission_rate),
    )
    for key, value in fields.items():
        setattr(program, key, value)
    await session.flush()
    await session.refresh(program)
    logger.info("Affiliate program updated: id=%s fields=%s", program_id, sorted(fields))
    return program


async def delete_program(session: AsyncSession, program_id: int) -> None:
    """Delete a program that no affiliate has joined; joined programs are deactivated instead."""
    repo = AffiliateRepository(session)
    program = await repo.get_program(program_id)
    if program is None:
        raise ProgramNotFound()
    if await repo.count_links(program_id=program_id):
        raise ProgramInUse("Program has affiliate links; deactivate it instead")
    await repo.delete_program(program)
    logger.warning("Affiliate program deleted: id=%s", program_id)


async def list_programs_with_counts(session: AsyncSession) -> list[tuple[ProgramRow, int, int]]:
    """(program, links_count, active_links_count), newest first."""
    repo = AffiliateRepository(session)
    programs = await repo.list_programs()
    counts = await repo.link_counts_by_program()
    return [(p, *counts.get(p.id, (0, 0))) for p in programs]
