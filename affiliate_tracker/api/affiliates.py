"""
Affiliate-facing endpoints: program catalog, joining, dashboard, and the
public tracking code route.

Flow:
  Affiliate joins a program → gets {base}/aff/{code}
  Visitor lands on the frontend, which calls GET /api/v1/affiliate/{code} →
  click logged + attribution cookie set + target URL returned
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from affiliate_tracker.auth import require_actor
from affiliate_tracker.db.engine import get_session
from affiliate_tracker.db.repository import AffiliateRepository
from affiliate_tracker.api.schemas import LinkResponse, ProgramResponse
from affiliate_tracker.services.affiliate_clicks import (
    RequestMetadata, record_click, record_impression, resolve_country,
)
from affiliate_tracker.services.affiliate_dashboard import affiliate_summary
from affiliate_tracker.services.affiliate_links import create_or_get_link

router = APIRouter(prefix="/api/v1/affiliate", tags=["Affiliates"])
logger = logging.getLogger(__name__)


class JoinResponse(BaseModel):
    message: str
    data: LinkResponse


class ClickResponse(BaseModel):
    message: str
    redirect_url: str
    link_id: int


def _request_metadata(request: Request) -> RequestMetadata:
    return RequestMetadata(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        referer=request.headers.get("referer"),
        country=resolve_country(request.headers.get("cf-ipcountry")),
    )


# Static paths first: /affiliate/{code} would otherwise swallow them.

@router.get("/programs", response_model=list[ProgramResponse])
async def list_active_programs(session: AsyncSession = Depends(get_session)):
    """Programs affiliates can join, newest first."""
    programs = await AffiliateRepository(session).list_programs(active_only=True)
    return [ProgramResponse.from_row(p) for p in programs]


@router.get("/dashboard")
async def dashboard(
    actor_id: str = Depends(require_actor),
    session: AsyncSession = Depends(get_session),
):
    """Per-link clicks, conversions and commission buckets for the caller."""
    summary = await affiliate_summary(session, actor_id)
    return {"data": summary.to_dict()}


@router.post("/programs/{program_id}/join", response_model=JoinResponse)
async def join_program(
    program_id: int,
    response: Response,
    actor_id: str = Depends(require_actor),
    session: AsyncSession = Depends(get_session),
):
    """Join a program. Idempotent: a second join returns the same link (200)."""
    link, created = await create_or_get_link(session, actor_id, program_id)
    program = await AffiliateRepository(session).get_program(link.program_id)
    await session.commit()

    if created:
        response.status_code = 201
        message = "Successfully joined affiliate program"
    else:
        message = "Already joined this program"
    return JoinResponse(message=message, data=LinkResponse.from_row(link, program))


@router.get("/{code}")
async def track_click(
    code: str,
    request: Request,
    redirect: bool = Query(False, description="Respond with a 302 to the target instead of JSON"),
    session: AsyncSession = Depends(get_session),
):
    """Record a click and hand back the attribution cookie + target URL."""
    result = await record_click(session, code, _request_metadata(request))
    await session.commit()

    if redirect:
        response = RedirectResponse(url=result.redirect_url, status_code=302)
    else:
        response = JSONResponse(ClickResponse(
            message="Click tracked",
            redirect_url=result.redirect_url,
            link_id=result.link_id,
        ).model_dump())

    response.set_cookie(
        settings.AFFILIATE_COOKIE_NAME,
        result.attribution_token,
        max_age=result.token_max_age_minutes * 60,
        httponly=True,
        samesite="lax",
    )
    return response


@router.post("/{code}/impressions", status_code=201)
async def track_impression(
    code: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
):
    """Record that a promo for this link was shown."""
    impression = await record_impression(session, code, _request_metadata(request))
    await session.commit()
    return {"status": "recorded", "impression_id": impression.id}
