#!/usr/bin/env python3
"""Affiliate operator CLI — reports straight from the database.

Usage:
  python -m scripts.affiliate_cli init                 # Create tables (dev/sqlite)
  python -m scripts.affiliate_cli report               # Print platform commission report
  python -m scripts.affiliate_cli affiliate <id>       # Print one affiliate's dashboard
  python -m scripts.affiliate_cli export [path]        # Export platform stats JSON
"""
import asyncio
import json
import os
import sys

from affiliate_tracker.db.engine import async_session, engine
from affiliate_tracker.db.tables import Base
from affiliate_tracker.services.affiliate_dashboard import affiliate_summary, platform_summary


async def cmd_init():
    import affiliate_tracker.db.affiliate_tables  # noqa: F401
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("✅ Tables ready")


def format_platform_report(m: dict) -> str:
    lines = [
        "=" * 60,
        "  Affiliate Commission Report",
        "=" * 60,
        "",
        "  🔗 Programs & Links",
        f"     Programs: {m['total_programs']:>6,} ({m['active_programs']:,} active)",
        f"     Links:    {m['total_links']:>6,} ({m['active_links']:,} active)",
        f"     Clicks:   {m['total_clicks']:>6,}",
        "",
        "  💰 Commission",
        f"     Conversions: {m['total_conversions']:,}  |  Rejected: {m['rejected_conversions']:,}",
        f"     Total:    ${m['total_commission']:>10.2f}",
        f"     Pending:  ${m['pending_commission']:>10.2f}",
        f"     Approved: ${m['approved_commission']:>10.2f}",
        f"     Paid:     ${m['paid_commission']:>10.2f}",
        "",
        "=" * 60,
    ]
    return "\n".join(lines)


def format_affiliate_report(data: dict) -> str:
    totals = data["totals"]
    lines = [
        f"  Affiliate {data['affiliate_id']}",
        f"     Links: {totals['total_links']}  Clicks: {totals['total_clicks']:,}  "
        f"Conversions: {totals['total_conversions']:,}",
        f"     Total ${totals['total_commission']:.2f}  Pending ${totals['pending_commission']:.2f}  "
        f"Paid ${totals['paid_commission']:.2f}",
    ]
    for link in data["links"]:
        lines.append(
            f"     {link['code']:<12} {link['program_name']:<30} "
            f"{link['clicks']:>6,} clicks  ${link['total_commission']:>9.2f}"
        )
    return "\n".join(lines)


async def cmd_report():
    async with async_session() as session:
        m = await platform_summary(session)
    print(format_platform_report(m))


async def cmd_affiliate(affiliate_id: str):
    async with async_session() as session:
        summary = await affiliate_summary(session, affiliate_id)
    print(format_affiliate_report(summary.to_dict()))


async def cmd_export(path: str = "affiliate_stats.json"):
    async with async_session() as session:
        m = await platform_summary(session)
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "w") as f:
        json.dump(m, f, indent=2, default=str)
    print(f"✅ Exported to {path}")


COMMANDS = {
    "init": cmd_init,
    "report": cmd_report,
    "affiliate": cmd_affiliate,
    "export": cmd_export,
}


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if not argv or argv[0] not in COMMANDS:
        print(__doc__)
        sys.exit(1)
    asyncio.run(COMMANDS[argv[0]](*argv[1:]))


if __name__ == "__main__":
    main()
