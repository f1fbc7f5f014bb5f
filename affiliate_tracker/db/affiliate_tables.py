"""
Database tables for affiliate links, click/impression tracking and conversions.
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, Text, DateTime, Boolean, ForeignKey, Index,
    UniqueConstraint, Enum as SAEnum,
)

from affiliate_tracker.db.tables import Base, _enum_values
from affiliate_tracker.models import ConversionStatus, utcnow


class LinkRow(Base):
    """One tracking code per (affiliate, program)."""
    __tablename__ = "affiliate_links"

    id = Column(Integer, primary_key=True, autoincrement=True)
    program_id = Column(
        Integer, ForeignKey("affiliate_programs.id", ondelete="RESTRICT"), nullable=False,
    )
    affiliate_id = Column(String(64), nullable=False, index=True)
    code = Column(String(64), nullable=False)
    url = Column(String(2000), nullable=False)  # display copy; code + program target are the source of truth
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("code", name="uq_affiliate_links_code"),
        UniqueConstraint("affiliate_id", "program_id", name="uq_affiliate_links_affiliate_program"),
        Index("ix_affiliate_links_program_active", "program_id", "is_active"),
    )


class ClickRow(Base):
    """Append-only log of every resolved visit to a link."""
    __tablename__ = "affiliate_clicks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    link_id = Column(Integer, ForeignKey("affiliate_links.id", ondelete="CASCADE"), nullable=False)
    ip_address = Column(String(45), nullable=True)  # IPv6 support
    user_agent = Column(String(500), nullable=True)
    referer = Column(String(1000), nullable=True)
    country = Column(String(2), nullable=True)
    clicked_at = Column(DateTime, default=utcnow, nullable=False)

    # Attribution lookup: latest click for a link inside a window
    __table_args__ = (
        Index("ix_affiliate_clicks_link_time", "link_id", "clicked_at"),
    )


class ImpressionRow(Base):
    """Append-only log of link views (promo shown, not clicked)."""
    __tablename__ = "affiliate_impressions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    link_id = Column(Integer, ForeignKey("affiliate_links.id", ondelete="CASCADE"), nullable=False)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    referer = Column(String(1000), nullable=True)
    country = Column(String(2), nullable=True)
    viewed_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_affiliate_impressions_link_time", "link_id", "viewed_at"),
    )


class ConversionRow(Base):
    """A reported purchase; transaction_id is the idempotency key."""
    __tablename__ = "affiliate_conversions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(String(255), nullable=False)
    link_id = Column(Integer, ForeignKey("affiliate_links.id", ondelete="CASCADE"), nullable=False)
    click_id = Column(Integer, ForeignKey("affiliate_clicks.id", ondelete="SET NULL"), nullable=True)  # NULL if unattributed
    amount = Column(Numeric(12, 2), nullable=False)
    commission = Column(Numeric(12, 2), nullable=False)  # computed once at creation
    status = Column(
        SAEnum(ConversionStatus, native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
        default=ConversionStatus.PENDING,
    )
    notes = Column(Text, nullable=True)
    converted_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("transaction_id", name="uq_affiliate_conversions_transaction"),
        Index("ix_affiliate_conversions_link_status", "link_id", "status"),
        Index("ix_affiliate_conversions_converted_at", "converted_at"),
    )
