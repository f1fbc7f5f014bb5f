"""Create affiliate programs, links, clicks, impressions and conversions.

Revision ID: 7c1e4a9b2d30
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

revision = "7c1e4a9b2d30"
down_revision = None
branch_labels = None
depends_on = None

_COMMISSION_TYPES = ("percentage", "fixed")
_STATUSES = ("pending", "approved", "paid", "rejected")


def upgrade() -> None:
    op.create_table(
        "affiliate_programs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column(
            "commission_type",
            sa.Enum(*_COMMISSION_TYPES, name="commissiontype", native_enum=False, length=16),
            nullable=False,
        ),
        sa.Column("commission_rate", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("click_rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("click_unit", sa.Integer, nullable=True),
        sa.Column("impression_rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("impression_unit", sa.Integer, nullable=True),
        sa.Column("target_url", sa.String(2000), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("attribution_window_days", sa.Integer, nullable=False, server_default="30"),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=False),
    )
    op.create_index("ix_affiliate_programs_active", "affiliate_programs", ["is_active"])

    op.create_table(
        "affiliate_links",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "program_id", sa.Integer,
            sa.ForeignKey("affiliate_programs.id", ondelete="RESTRICT"), nullable=False,
        ),
        sa.Column("affiliate_id", sa.String(64), nullable=False),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("url", sa.String(2000), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.UniqueConstraint("code", name="uq_affiliate_links_code"),
        sa.UniqueConstraint("affiliate_id", "program_id", name="uq_affiliate_links_affiliate_program"),
    )
    op.create_index("ix_affiliate_links_affiliate_id", "affiliate_links", ["affiliate_id"])
    op.create_index("ix_affiliate_links_program_active", "affiliate_links", ["program_id", "is_active"])

    op.create_table(
        "affiliate_clicks",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "link_id", sa.Integer,
            sa.ForeignKey("affiliate_links.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("referer", sa.String(1000), nullable=True),
        sa.Column("country", sa.String(2), nullable=True),
        sa.Column("clicked_at", sa.DateTime, nullable=False),
    )
    op.create_index("ix_affiliate_clicks_link_time", "affiliate_clicks", ["link_id", "clicked_at"])

    op.create_table(
        "affiliate_impressions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "link_id", sa.Integer,
            sa.ForeignKey("affiliate_links.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("referer", sa.String(1000), nullable=True),
        sa.Column("country", sa.String(2), nullable=True),
        sa.Column("viewed_at", sa.DateTime, nullable=False),
    )
    op.create_index("ix_affiliate_impressions_link_time", "affiliate_impressions", ["link_id", "viewed_at"])

    op.create_table(
        "affiliate_conversions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("transaction_id", sa.String(255), nullable=False),
        sa.Column(
            "link_id", sa.Integer,
            sa.ForeignKey("affiliate_links.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "click_id", sa.Integer,
            sa.ForeignKey("affiliate_clicks.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("commission", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*_STATUSES, name="conversionstatus", native_enum=False, length=16),
            nullable=False,
        ),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("converted_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=False),
        sa.UniqueConstraint("transaction_id", name="uq_affiliate_conversions_transaction"),
    )
    op.create_index("ix_affiliate_conversions_link_status", "affiliate_conversions", ["link_id", "status"])
    op.create_index("ix_affiliate_conversions_converted_at", "affiliate_conversions", ["converted_at"])


def downgrade() -> None:
    op.drop_table("affiliate_conversions")
    op.drop_table("affiliate_impressions")
    op.drop_table("affiliate_clicks")
    op.drop_table("affiliate_links")
    op.drop_table("affiliate_programs")
