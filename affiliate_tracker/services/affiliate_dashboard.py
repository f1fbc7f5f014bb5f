"""
Affiliate dashboard rollups. Read-only, computed on demand.

Bucket rules (same everywhere):
  conversions       = count where status != rejected
  total_commission  = sum where status != rejected
  pending_commission = sum where status == pending
  paid_commission   = sum where status == paid
Approved conversions count toward the total but neither pending nor paid.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_tracker.db.repository import AffiliateRepository, StatusTotals
from affiliate_tracker.errors import ProgramNotFound
from affiliate_tracker.models import ConversionStatus, to_money
from affiliate_tracker.services.commission import compute_volume_earnings

_ZERO = Decimal("0.00")


@dataclass
class CommissionBuckets:
    conversions: int = 0
    rejected_conversions: int = 0
    total_commission: Decimal = _ZERO
    pending_commission: Decimal = _ZERO
    approved_commission: Decimal = _ZERO
    paid_commission: Decimal = _ZERO

    @classmethod
    def from_status_totals(cls, totals: StatusTotals) -> "CommissionBuckets":
        buckets = cls()
        for status, (count, commission) in totals.items():
            if status is ConversionStatus.REJECTED:
                buckets.rejected_conversions += count
                continue
            buckets.conversions += count
            buckets.total_commission += commission
            if status is ConversionStatus.PENDING:
                buckets.pending_commission += commission
            elif status is ConversionStatus.APPROVED:
                buckets.approved_commission += commission
            elif status is ConversionStatus.PAID:
                buckets.paid_commission += commission
        return buckets

    def __add__(self, other: "CommissionBuckets") -> "CommissionBuckets":
        return CommissionBuckets(
            conversions=self.conversions + other.conversions,
            rejected_conversions=self.rejected_conversions + other.rejected_conversions,
            total_commission=self.total_commission + other.total_commission,
            pending_commission=self.pending_commission + other.pending_commission,
            approved_commission=self.approved_commission + other.approved_commission,
            paid_commission=self.paid_commission + other.paid_commission,
        )

    def to_dict(self) -> dict:
        return {
            "conversions": self.conversions,
            "rejected_conversions": self.rejected_conversions,
            "total_commission": float(to_money(self.total_commission)),
            "pending_commission": float(to_money(self.pending_commission)),
            "approved_commission": float(to_money(self.approved_commission)),
            "paid_commission": float(to_money(self.paid_commission)),
        }


@dataclass
class LinkSummary:
    link_id: int
    code: str
    url: str
    program_id: int
    program_name: str
    is_active: bool
    clicks: int
    impressions: int
    commission: CommissionBuckets
    click_earnings: Decimal = _ZERO
    impression_earnings: Decimal = _ZERO

    def to_dict(self) -> dict:
        return {
            "link_id": self.link_id,
            "code": self.code,
            "url": self.url,
            "program_id": self.program_id,
            "program_name": self.program_name,
            "is_active": self.is_active,
            "clicks": self.clicks,
            "impressions": self.impressions,
            **self.commission.to_dict(),
            "click_earnings": float(self.click_earnings),
            "impression_earnings": float(self.impression_earnings),
        }


@dataclass
class AffiliateSummary:
    affiliate_id: str
    links: list[LinkSummary] = field(default_factory=list)

    @property
    def totals(self) -> dict:
        commission = CommissionBuckets()
        for link in self.links:
            commission = commission + link.commission
        buckets = commission.to_dict()
        return {
            "total_links": len(self.links),
            "total_clicks": sum(l.clicks for l in self.links),
            "total_impressions": sum(l.impressions for l in self.links),
            "total_conversions": buckets.pop("conversions"),
            "rejected_conversions": buckets.pop("rejected_conversions"),
            **buckets,
            "click_earnings": float(sum((l.click_earnings for l in self.links), _ZERO)),
            "impression_earnings": float(sum((l.impression_earnings for l in self.links), _ZERO)),
        }

    def to_dict(self) -> dict:
        return {
            "affiliate_id": self.affiliate_id,
            "links": [l.to_dict() for l in self.links],
            "totals": self.totals,
        }


async def affiliate_summary(session: AsyncSession, affiliate_id: str) -> AffiliateSummary:
    repo = AffiliateRepository(session)
    links = await repo.links_for_affiliate(affiliate_id)
    link_ids = [link.id for link, _ in links]

    clicks = await repo.click_counts_by_link(link_ids)
    impressions = await repo.impression_counts_by_link(link_ids)
    conversions = await repo.status_totals_by_link(link_ids)

    summary = AffiliateSummary(affiliate_id=affiliate_id)
    for link, program in links:
        n_clicks = clicks.get(link.id, 0)
        n_impressions = impressions.get(link.id, 0)
        summary.links.append(LinkSummary(
            link_id=link.id,
            code=link.code,
            url=link.url,
            program_id=program.id,
            program_name=program.name,
            is_active=link.is_active,
            clicks=n_clicks,
            impressions=n_impressions,
            commission=CommissionBuckets.from_status_totals(conversions.get(link.id, {})),
            click_earnings=compute_volume_earnings(n_clicks, program.click_rate, program.click_unit),
            impression_earnings=compute_volume_earnings(
                n_impressions, program.impression_rate, program.impression_unit,
            ),
        ))
    return summary


async def program_summary(session: AsyncSession, program_id: int) -> dict:
    repo = AffiliateRepository(session)
    if await repo.get_program(program_id) is None:
        raise ProgramNotFound()
    return {
        "program_id": program_id,
        "link_count": await repo.count_links(program_id=program_id),
        "active_link_count": await repo.count_links(program_id=program_id, active_only=True),
    }


async def platform_summary(session: AsyncSession) -> dict:
    """Admin-wide rollup across every program, link, click and conversion."""
    repo = AffiliateRepository(session)
    commission = CommissionBuckets.from_status_totals(await repo.status_totals())
    buckets = commission.to_dict()
    return {
        "total_programs": await repo.count_programs(),
        "active_programs": await repo.count_programs(active_only=True),
        "total_links": await repo.count_links(),
        "active_links": await repo.count_links(active_only=True),
        "total_clicks": await repo.count_clicks(),
        "total_conversions": buckets.pop("conversions"),
        "rejected_conversions": buckets.pop("rejected_conversions"),
        **buckets,
    }
