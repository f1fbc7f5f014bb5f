"""Response models shared by the public, affiliate and admin routers."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from affiliate_tracker.db.affiliate_tables import ConversionRow, LinkRow
from affiliate_tracker.db.tables import ProgramRow


def _money(value) -> Optional[float]:
    return float(value) if value is not None else None


class ProgramResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    commission_type: str
    commission_rate: float
    click_rate: Optional[float] = None
    click_unit: Optional[int] = None
    impression_rate: Optional[float] = None
    impression_unit: Optional[int] = None
    target_url: str
    is_active: bool
    attribution_window_days: int
    created_at: datetime

    @classmethod
    def from_row(cls, row: ProgramRow) -> "ProgramResponse":
        return cls(
            id=row.id,
            name=row.name,
            description=row.description,
            commission_type=getattr(row.commission_type, "value", row.commission_type),
            commission_rate=float(row.commission_rate),
            click_rate=_money(row.click_rate),
            click_unit=row.click_unit,
            impression_rate=_money(row.impression_rate),
            impression_unit=row.impression_unit,
            target_url=row.target_url,
            is_active=row.is_active,
            attribution_window_days=row.attribution_window_days,
            created_at=row.created_at,
        )


class AdminProgramResponse(ProgramResponse):
    links_count: int = 0
    active_links_count: int = 0


class LinkResponse(BaseModel):
    id: int
    code: str
    url: str
    affiliate_id: str
    program_id: int
    program_name: Optional[str] = None
    is_active: bool
    created_at: datetime

    @classmethod
    def from_row(cls, row: LinkRow, program: Optional[ProgramRow] = None) -> "LinkResponse":
        return cls(
            id=row.id,
            code=row.code,
            url=row.url,
            affiliate_id=row.affiliate_id,
            program_id=row.program_id,
            program_name=program.name if program is not None else None,
            is_active=row.is_active,
            created_at=row.created_at,
        )


class ConversionResponse(BaseModel):
    id: int
    transaction_id: str
    link_id: int
    click_id: Optional[int] = None
    amount: float
    commission: float
    status: str
    notes: Optional[str] = None
    converted_at: datetime

    @classmethod
    def from_row(cls, row: ConversionRow) -> "ConversionResponse":
        return cls(
            id=row.id,
            transaction_id=row.transaction_id,
            link_id=row.link_id,
            click_id=row.click_id,
            amount=float(row.amount),
            commission=float(row.commission),
            status=getattr(row.status, "value", row.status),
            notes=row.notes,
            converted_at=row.converted_at,
        )


class PageMeta(BaseModel):
    current_page: int
    last_page: int
    per_page: int
    total: int

    @classmethod
    def build(cls, page: int, per_page: int, total: int) -> "PageMeta":
        last_page = max(1, -(-total // per_page))
        return cls(current_page=page, last_page=last_page, per_page=per_page, total=total)
