"""Affiliate repository: every query the affiliate services run.

Services never build SQL themselves; they call these narrow methods so the
attribution and commission logic stays storage-free.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, func, update, case
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_tracker.db.tables import ProgramRow
from affiliate_tracker.db.affiliate_tables import (
    LinkRow, ClickRow, ImpressionRow, ConversionRow,
)
from affiliate_tracker.models import ConversionStatus, to_money

# status → (count, commission sum)
StatusTotals = dict[ConversionStatus, tuple[int, Decimal]]


def _page_offset(page: int, per_page: int) -> int:
    return max(page - 1, 0) * per_page


class AffiliateRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    # ── Programs ────────────────────────────────────────────────────────────

    async def get_program(self, program_id: int) -> Optional[ProgramRow]:
        return await self.session.get(ProgramRow, program_id)

    async def list_programs(self, active_only: bool = False) -> list[ProgramRow]:
        stmt = select(ProgramRow).order_by(ProgramRow.created_at.desc(), ProgramRow.id.desc())
        if active_only:
            stmt = stmt.where(ProgramRow.is_active.is_(True))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def link_counts_by_program(self) -> dict[int, tuple[int, int]]:
        """program_id → (links, active links)."""
        stmt = select(
            LinkRow.program_id,
            func.count(LinkRow.id),
            func.coalesce(func.sum(case((LinkRow.is_active.is_(True), 1), else_=0)), 0),
        ).group_by(LinkRow.program_id)
        result = await self.session.execute(stmt)
        return {row[0]: (int(row[1]), int(row[2])) for row in result.all()}

    async def add_program(self, program: ProgramRow) -> ProgramRow:
        self.session.add(program)
        await self.session.flush()
        return program

    async def delete_program(self, program: ProgramRow) -> None:
        await self.session.delete(program)
        await self.session.flush()

    # ── Links ───────────────────────────────────────────────────────────────

    async def find_link_with_program(self, code: str) -> Optional[tuple[LinkRow, ProgramRow]]:
        stmt = (
            select(LinkRow, ProgramRow)
            .join(ProgramRow, ProgramRow.id == LinkRow.program_id)
            .where(LinkRow.code == code)
        )
        row = (await self.session.execute(stmt)).first()
        return (row[0], row[1]) if row else None

    async def get_link(self, link_id: int) -> Optional[LinkRow]:
        return await self.session.get(LinkRow, link_id)

    async def find_link_for(self, affiliate_id: str, program_id: int) -> Optional[LinkRow]:
        stmt = select(LinkRow).where(
            LinkRow.affiliate_id == affiliate_id,
            LinkRow.program_id == program_id,
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def insert_link(self, link: LinkRow) -> LinkRow:
        """Flush a new link; unique-constraint violations surface as IntegrityError."""
        self.session.add(link)
        await self.session.flush()
        return link

    async def links_for_affiliate(self, affiliate_id: str) -> list[tuple[LinkRow, ProgramRow]]:
        stmt = (
            select(LinkRow, ProgramRow)
            .join(ProgramRow, ProgramRow.id == LinkRow.program_id)
            .where(LinkRow.affiliate_id == affiliate_id)
            .order_by(LinkRow.created_at.desc(), LinkRow.id.desc())
        )
        result = await self.session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def list_links(
        self,
        program_id: Optional[int] = None,
        affiliate_id: Optional[str] = None,
        page: int = 1,
        per_page: int = 15,
    ) -> tuple[list[tuple[LinkRow, ProgramRow]], int]:
        filters = []
        if program_id is not None:
            filters.append(LinkRow.program_id == program_id)
        if affiliate_id is not None:
            filters.append(LinkRow.affiliate_id == affiliate_id)

        total = (await self.session.execute(
            select(func.count(LinkRow.id)).where(*filters)
        )).scalar_one()

        stmt = (
            select(LinkRow, ProgramRow)
            .join(ProgramRow, ProgramRow.id == LinkRow.program_id)
            .where(*filters)
            .order_by(LinkRow.created_at.desc(), LinkRow.id.desc())
            .offset(_page_offset(page, per_page))
            .limit(per_page)
        )
        result = await self.session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()], int(total)

    async def count_links(self, program_id: Optional[int] = None, active_only: bool = False) -> int:
        stmt = select(func.count(LinkRow.id))
        if program_id is not None:
            stmt = stmt.where(LinkRow.program_id == program_id)
        if active_only:
            stmt = stmt.where(LinkRow.is_active.is_(True))
        return int((await self.session.execute(stmt)).scalar_one())

    # ── Clicks & impressions ────────────────────────────────────────────────

    async def add_click(self, click: ClickRow) -> ClickRow:
        self.session.add(click)
        await self.session.flush()
        return click

    async def add_impression(self, impression: ImpressionRow) -> ImpressionRow:
        self.session.add(impression)
        await self.session.flush()
        return impression

    async def latest_clicks_in_window(
        self,
        link_id: int,
        start: datetime,
        end: datetime,
        limit: int = 1,
    ) -> list[ClickRow]:
        """Newest-first clicks for a link inside [start, end]; insertion order breaks ties."""
        stmt = (
            select(ClickRow)
            .where(
                ClickRow.link_id == link_id,
                ClickRow.clicked_at >= start,
                ClickRow.clicked_at <= end,
            )
            .order_by(ClickRow.clicked_at.desc(), ClickRow.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def click_counts_by_link(self, link_ids: list[int]) -> dict[int, int]:
        if not link_ids:
            return {}
        stmt = (
            select(ClickRow.link_id, func.count(ClickRow.id))
            .where(ClickRow.link_id.in_(link_ids))
            .group_by(ClickRow.link_id)
        )
        result = await self.session.execute(stmt)
        return {row[0]: int(row[1]) for row in result.all()}

    async def impression_counts_by_link(self, link_ids: list[int]) -> dict[int, int]:
        if not link_ids:
            return {}
        stmt = (
            select(ImpressionRow.link_id, func.count(ImpressionRow.id))
            .where(ImpressionRow.link_id.in_(link_ids))
            .group_by(ImpressionRow.link_id)
        )
        result = await self.session.execute(stmt)
        return {row[0]: int(row[1]) for row in result.all()}

    async def count_clicks(self) -> int:
        return int((await self.session.execute(select(func.count(ClickRow.id)))).scalar_one())

    # ── Conversions ─────────────────────────────────────────────────────────

    async def get_conversion(self, conversion_id: int) -> Optional[ConversionRow]:
        return await self.session.get(ConversionRow, conversion_id)

    async def get_conversion_by_transaction(self, transaction_id: str) -> Optional[ConversionRow]:
        stmt = select(ConversionRow).where(ConversionRow.transaction_id == transaction_id)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def insert_conversion(self, conversion: ConversionRow) -> ConversionRow:
        """Flush a new conversion; a reused transaction_id raises IntegrityError."""
        self.session.add(conversion)
        await self.session.flush()
        return conversion

    async def update_status_if(
        self,
        conversion_id: int,
        expected: ConversionStatus,
        new_status: ConversionStatus,
        notes: Optional[str],
    ) -> int:
        """Compare-and-set on status. Returns the number of rows updated (0 or 1)."""
        values: dict = {"status": new_status}
        if notes is not None:
            values["notes"] = notes
        stmt = (
            update(ConversionRow)
            .where(ConversionRow.id == conversion_id, ConversionRow.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def delete_conversion(self, conversion: ConversionRow) -> None:
        await self.session.delete(conversion)
        await self.session.flush()

    async def list_conversions(
        self,
        status: Optional[ConversionStatus] = None,
        link_id: Optional[int] = None,
        page: int = 1,
        per_page: int = 15,
    ) -> tuple[list[ConversionRow], int]:
        filters = []
        if status is not None:
            filters.append(ConversionRow.status == status)
        if link_id is not None:
            filters.append(ConversionRow.link_id == link_id)

        total = (await self.session.execute(
            select(func.count(ConversionRow.id)).where(*filters)
        )).scalar_one()

        stmt = (
            select(ConversionRow)
            .where(*filters)
            .order_by(ConversionRow.converted_at.desc(), ConversionRow.id.desc())
            .offset(_page_offset(page, per_page))
            .limit(per_page)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), int(total)

    async def status_totals_by_link(self, link_ids: list[int]) -> dict[int, StatusTotals]:
        if not link_ids:
            return {}
        stmt = (
            select(
                ConversionRow.link_id,
                ConversionRow.status,
                func.count(ConversionRow.id),
                func.coalesce(func.sum(ConversionRow.commission), 0),
            )
            .where(ConversionRow.link_id.in_(link_ids))
            .group_by(ConversionRow.link_id, ConversionRow.status)
        )
        result = await self.session.execute(stmt)
        totals: dict[int, StatusTotals] = {}
        for link_id, status, count, commission in result.all():
            totals.setdefault(link_id, {})[ConversionStatus(status)] = (int(count), to_money(commission))
        return totals

    async def status_totals(self) -> StatusTotals:
        stmt = select(
            ConversionRow.status,
            func.count(ConversionRow.id),
            func.coalesce(func.sum(ConversionRow.commission), 0),
        ).group_by(ConversionRow.status)
        result = await self.session.execute(stmt)
        return {
            ConversionStatus(status): (int(count), to_money(commission))
            for status, count, commission in result.all()
        }

    async def count_programs(self, active_only: bool = False) -> int:
        stmt = select(func.count(ProgramRow.id))
        if active_only:
            stmt = stmt.where(ProgramRow.is_active.is_(True))
        return int((await self.session.execute(stmt)).scalar_one())
