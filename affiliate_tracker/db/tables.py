"""SQLAlchemy ORM base + affiliate program configuration."""
from __future__ import annotations

from sqlalchemy import (
    Column, String, Integer, Numeric, Text, DateTime, Boolean, Enum as SAEnum, Index
)
from sqlalchemy.orm import DeclarativeBase

from config.settings import settings
from affiliate_tracker.models import CommissionType, utcnow


class Base(DeclarativeBase):
    pass


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class ProgramRow(Base):
    """A commission offer tied to a target URL."""
    __tablename__ = "affiliate_programs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    commission_type = Column(
        SAEnum(CommissionType, native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
        default=CommissionType.PERCENTAGE,
    )
    commission_rate = Column(Numeric(12, 2), nullable=False, default=0)

    # Volume-based earnings: rate per N clicks / N impressions (optional)
    click_rate = Column(Numeric(12, 2), nullable=True)
    click_unit = Column(Integer, nullable=True)
    impression_rate = Column(Numeric(12, 2), nullable=True)
    impression_unit = Column(Integer, nullable=True)

    target_url = Column(String(2000), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    attribution_window_days = Column(
        Integer, nullable=False, default=settings.DEFAULT_ATTRIBUTION_WINDOW_DAYS,
    )

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_affiliate_programs_active", "is_active"),
    )
