"""
Affiliate admin endpoints.

Program management, link/conversion listings, conversion approval, and the
platform-wide commission rollup. All routes require X-Admin-Key.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import AfterValidator, BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from affiliate_tracker.auth import verify_admin
from affiliate_tracker.db.engine import get_session
from affiliate_tracker.db.repository import AffiliateRepository
from affiliate_tracker.api.schemas import (
    AdminProgramResponse, ConversionResponse, LinkResponse, PageMeta, ProgramResponse,
)
from affiliate_tracker.models import CommissionType, ConversionStatus
from affiliate_tracker.services.affiliate_conversions import delete_conversion, update_status
from affiliate_tracker.services.affiliate_dashboard import platform_summary, program_summary
from affiliate_tracker.services.affiliate_links import set_link_active
from affiliate_tracker.services.affiliate_programs import (
    create_program, delete_program, list_programs_with_counts, update_program,
)

router = APIRouter(
    prefix="/api/v1/admin/affiliate",
    tags=["Affiliate Admin"],
    dependencies=[Depends(verify_admin)],
)
logger = logging.getLogger(__name__)

# Fields an update may explicitly clear with null
_NULLABLE_PROGRAM_FIELDS = {"description", "click_rate", "click_unit", "impression_rate", "impression_unit"}


def _check_target_url(value: Optional[str]) -> Optional[str]:
    if value is not None and not value.startswith(("http://", "https://")):
        raise ValueError("target_url must be an http(s) URL")
    return value


TargetURL = Annotated[str, AfterValidator(_check_target_url)]


class ProgramCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    commission_type: CommissionType = CommissionType.PERCENTAGE
    commission_rate: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    click_rate: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    click_unit: Optional[int] = Field(None, ge=1)
    impression_rate: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    impression_unit: Optional[int] = Field(None, ge=1)
    target_url: TargetURL = Field(..., max_length=2000)
    is_active: bool = True
    attribution_window_days: int = Field(settings.DEFAULT_ATTRIBUTION_WINDOW_DAYS, ge=1, le=365)


class ProgramUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    commission_type: Optional[CommissionType] = None
    commission_rate: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    click_rate: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    click_unit: Optional[int] = Field(None, ge=1)
    impression_rate: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    impression_unit: Optional[int] = Field(None, ge=1)
    target_url: Optional[TargetURL] = Field(None, max_length=2000)
    is_active: Optional[bool] = None
    attribution_window_days: Optional[int] = Field(None, ge=1, le=365)


class LinkStatusUpdate(BaseModel):
    is_active: bool


class ConversionStatusUpdate(BaseModel):
    status: str
    notes: Optional[str] = Field(None, max_length=1000)


# ── Programs ─────────────────────────────────────────────────────────────────

@router.get("/programs")
async def admin_list_programs(session: AsyncSession = Depends(get_session)):
    """Every program with how many links joined it."""
    rows = await list_programs_with_counts(session)
    return {"data": [
        AdminProgramResponse(
            **ProgramResponse.from_row(p).model_dump(),
            links_count=links, active_links_count=active,
        )
        for p, links, active in rows
    ]}


@router.post("/programs", status_code=201)
async def admin_create_program(body: ProgramCreate, session: AsyncSession = Depends(get_session)):
    program = await create_program(session, body.model_dump())
    await session.commit()
    return {"message": "Affiliate program created successfully", "data": ProgramResponse.from_row(program)}


@router.patch("/programs/{program_id}")
async def admin_update_program(
    program_id: int,
    body: ProgramUpdate,
    session: AsyncSession = Depends(get_session),
):
    fields = {
        k: v for k, v in body.model_dump(exclude_unset=True).items()
        if v is not None or k in _NULLABLE_PROGRAM_FIELDS
    }
    program = await update_program(session, program_id, fields)
    await session.commit()
    return {"message": "Affiliate program updated successfully", "data": ProgramResponse.from_row(program)}


@router.delete("/programs/{program_id}")
async def admin_delete_program(program_id: int, session: AsyncSession = Depends(get_session)):
    await delete_program(session, program_id)
    await session.commit()
    return {"message": "Affiliate program deleted successfully"}


@router.get("/programs/{program_id}/summary")
async def admin_program_summary(program_id: int, session: AsyncSession = Depends(get_session)):
    return {"data": await program_summary(session, program_id)}


# ── Links ────────────────────────────────────────────────────────────────────

@router.get("/links")
async def admin_list_links(
    program_id: Optional[int] = None,
    affiliate_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    session: AsyncSession = Depends(get_session),
):
    """All affiliate links, filterable, with click and conversion counts."""
    repo = AffiliateRepository(session)
    per_page = settings.ADMIN_PAGE_SIZE
    rows, total = await repo.list_links(program_id, affiliate_id, page, per_page)

    link_ids = [link.id for link, _ in rows]
    clicks = await repo.click_counts_by_link(link_ids)
    conversions = await repo.status_totals_by_link(link_ids)

    data = []
    for link, program in rows:
        counts = conversions.get(link.id, {})
        data.append({
            **LinkResponse.from_row(link, program).model_dump(mode="json"),
            "clicks_count": clicks.get(link.id, 0),
            "conversions_count": sum(n for n, _ in counts.values()),
        })
    return {"data": data, "meta": PageMeta.build(page, per_page, total)}


@router.patch("/links/{link_id}")
async def admin_update_link(
    link_id: int,
    body: LinkStatusUpdate,
    session: AsyncSession = Depends(get_session),
):
    """Activate or deactivate a link. Inactive links stop tracking clicks and conversions."""
    link, program = await set_link_active(session, link_id, body.is_active)
    await session.commit()
    return {"message": "Affiliate link updated successfully", "data": LinkResponse.from_row(link, program)}


# ── Conversions ──────────────────────────────────────────────────────────────

@router.get("/conversions")
async def admin_list_conversions(
    status: Optional[ConversionStatus] = None,
    link_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    session: AsyncSession = Depends(get_session),
):
    per_page = settings.ADMIN_PAGE_SIZE
    rows, total = await AffiliateRepository(session).list_conversions(status, link_id, page, per_page)
    return {
        "data": [ConversionResponse.from_row(c) for c in rows],
        "meta": PageMeta.build(page, per_page, total),
    }


@router.patch("/conversions/{conversion_id}")
async def admin_update_conversion(
    conversion_id: int,
    body: ConversionStatusUpdate,
    session: AsyncSession = Depends(get_session),
):
    """Approve, pay or reject a conversion. Only forward transitions are allowed."""
    conversion = await update_status(session, conversion_id, body.status, body.notes)
    await session.commit()
    return {
        "message": "Conversion status updated successfully",
        "data": ConversionResponse.from_row(conversion),
    }


@router.delete("/conversions/{conversion_id}")
async def admin_delete_conversion(conversion_id: int, session: AsyncSession = Depends(get_session)):
    await delete_conversion(session, conversion_id)
    await session.commit()
    return {"message": "Conversion deleted successfully"}


# ── Stats ────────────────────────────────────────────────────────────────────

@router.get("/stats")
async def admin_stats(session: AsyncSession = Depends(get_session)):
    return {"data": await platform_summary(session)}
