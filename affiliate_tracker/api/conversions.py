"""
Conversion webhook.

Merchants (or the checkout flow) POST here once per completed purchase. The
affiliate code comes from the body or, failing that, the attribution cookie
set when the visitor clicked. Retrying with the same transaction_id is always
safe: the second call gets 409 and nothing is double-counted.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Cookie, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from affiliate_tracker.db.engine import get_session
from affiliate_tracker.api.schemas import ConversionResponse
from affiliate_tracker.services.affiliate_conversions import record_conversion

router = APIRouter(prefix="/api/v1/conversions", tags=["Conversions"])
logger = logging.getLogger(__name__)


class ConversionRequest(BaseModel):
    transaction_id: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    affiliate_code: Optional[str] = Field(None, max_length=64)


class ConversionCreatedResponse(BaseModel):
    message: str
    data: ConversionResponse


@router.post("", response_model=ConversionCreatedResponse, status_code=201)
async def track_conversion(
    body: ConversionRequest,
    attribution_token: Optional[str] = Cookie(None, alias=settings.AFFILIATE_COOKIE_NAME),
    session: AsyncSession = Depends(get_session),
):
    """Record a conversion exactly once per transaction_id."""
    conversion = await record_conversion(
        session,
        transaction_id=body.transaction_id,
        amount=body.amount,
        affiliate_code=body.affiliate_code,
        attribution_token=attribution_token,
    )
    await session.commit()
    return ConversionCreatedResponse(
        message="Conversion tracked successfully",
        data=ConversionResponse.from_row(conversion),
    )
