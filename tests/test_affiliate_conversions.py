"""Tests for conversion recording, attribution and the approval lifecycle."""
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from conftest import TestSession, make_link, make_program
from affiliate_tracker.db.affiliate_tables import ClickRow, ConversionRow
from affiliate_tracker.db.repository import AffiliateRepository
from affiliate_tracker.errors import (
    ConversionNotFound, DuplicateConversion, InvalidInput, InvalidLink,
    InvalidTransition, NoAttributionCode,
)
from affiliate_tracker.models import ConversionStatus
from affiliate_tracker.services.affiliate_conversions import (
    can_transition, delete_conversion, record_conversion, update_status,
)

T = datetime(2026, 3, 10, 12, 0, 0)


async def _add_click(link_id: int, clicked_at: datetime) -> int:
    async with TestSession() as session:
        click = ClickRow(link_id=link_id, clicked_at=clicked_at)
        session.add(click)
        await session.commit()
        return click.id


async def _conversion_count() -> int:
    async with TestSession() as session:
        return (await session.execute(select(func.count(ConversionRow.id)))).scalar_one()


async def _record(**kwargs):
    async with TestSession() as session:
        conversion = await record_conversion(session, **kwargs)
        await session.commit()
        return conversion


@pytest.mark.asyncio
async def test_percentage_commission_and_pending_status():
    program = await make_program(commission_rate=Decimal("10"))
    await make_link(program.id, code="CONV000001")

    conversion = await _record(transaction_id="tx-1", amount="250.00", affiliate_code="CONV000001", now=T)
    assert conversion.commission == Decimal("25.00")
    assert conversion.amount == Decimal("250.00")
    assert conversion.status == ConversionStatus.PENDING
    assert conversion.converted_at == T
    assert conversion.click_id is None


@pytest.mark.asyncio
async def test_fixed_commission():
    program = await make_program(commission_type="fixed", commission_rate=Decimal("7.50"))
    await make_link(program.id, code="FIXED00001")
    conversion = await _record(transaction_id="tx-1", amount="1000", affiliate_code="FIXED00001")
    assert conversion.commission == Decimal("7.50")


@pytest.mark.asyncio
async def test_duplicate_transaction_rejected():
    program = await make_program()
    await make_link(program.id, code="DUP0000001")
    await _record(transaction_id="tx-dup", amount="100", affiliate_code="DUP0000001")

    with pytest.raises(DuplicateConversion):
        await _record(transaction_id="tx-dup", amount="100", affiliate_code="DUP0000001")
    assert await _conversion_count() == 1


@pytest.mark.asyncio
async def test_concurrent_duplicate_caught_by_constraint(monkeypatch):
    """Two deliveries that both pass the read check still produce one row."""
    program = await make_program()
    await make_link(program.id, code="RACE000001")
    await _record(transaction_id="tx-race", amount="100", affiliate_code="RACE000001")

    original = AffiliateRepository.get_conversion_by_transaction
    calls = {"n": 0}

    async def stale_first_read(self, transaction_id):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return await original(self, transaction_id)

    monkeypatch.setattr(AffiliateRepository, "get_conversion_by_transaction", stale_first_read)

    with pytest.raises(DuplicateConversion):
        await _record(transaction_id="tx-race", amount="100", affiliate_code="RACE000001")
    assert await _conversion_count() == 1


@pytest.mark.asyncio
async def test_last_click_inside_window_attributed():
    program = await make_program(attribution_window_days=30)
    link = await make_link(program.id, code="WIN0000001")
    await _add_click(link.id, T - timedelta(days=40))
    recent = await _add_click(link.id, T - timedelta(days=5))

    conversion = await _record(transaction_id="tx-w", amount="50", affiliate_code="WIN0000001", now=T)
    assert conversion.click_id == recent


@pytest.mark.asyncio
async def test_click_outside_window_not_attributed():
    program = await make_program(attribution_window_days=30)
    link = await make_link(program.id, code="OLD0000001")
    await _add_click(link.id, T - timedelta(days=40))

    conversion = await _record(transaction_id="tx-o", amount="50", affiliate_code="OLD0000001", now=T)
    assert conversion.click_id is None


@pytest.mark.asyncio
async def test_clicks_on_other_links_ignored():
    program = await make_program()
    mine = await make_link(program.id, "aff-1", code="MINE000001")
    other = await make_link(program.id, "aff-2", code="OTHER00001")
    own_click = await _add_click(mine.id, T - timedelta(days=3))
    await _add_click(other.id, T - timedelta(days=1))

    conversion = await _record(transaction_id="tx-m", amount="50", affiliate_code="MINE000001", now=T)
    assert conversion.click_id == own_click


@pytest.mark.asyncio
async def test_same_instant_clicks_prefer_latest_insert():
    program = await make_program()
    link = await make_link(program.id, code="TIE0000001")
    ts = T - timedelta(hours=2)
    await _add_click(link.id, ts)
    second = await _add_click(link.id, ts)

    conversion = await _record(transaction_id="tx-t", amount="50", affiliate_code="TIE0000001", now=T)
    assert conversion.click_id == second


@pytest.mark.asyncio
async def test_explicit_code_beats_attribution_token():
    program = await make_program()
    explicit = await make_link(program.id, "aff-1", code="EXPLICIT01")
    await make_link(program.id, "aff-2", code="COOKIE0001")

    conversion = await _record(
        transaction_id="tx-e", amount="10",
        affiliate_code="EXPLICIT01", attribution_token="COOKIE0001",
    )
    assert conversion.link_id == explicit.id


@pytest.mark.asyncio
async def test_attribution_token_used_when_no_code():
    program = await make_program()
    link = await make_link(program.id, code="COOKIE0001")
    conversion = await _record(transaction_id="tx-c", amount="10", attribution_token="COOKIE0001")
    assert conversion.link_id == link.id


@pytest.mark.asyncio
async def test_no_code_at_all():
    with pytest.raises(NoAttributionCode):
        await _record(transaction_id="tx-n", amount="10", affiliate_code="  ")


@pytest.mark.asyncio
async def test_invalid_code():
    with pytest.raises(InvalidLink):
        await _record(transaction_id="tx-i", amount="10", affiliate_code="NOSUCHCODE")
    assert await _conversion_count() == 0


@pytest.mark.asyncio
async def test_inactive_link_rejected():
    program = await make_program()
    await make_link(program.id, code="PAUSED0001", is_active=False)
    with pytest.raises(InvalidLink):
        await _record(transaction_id="tx-p", amount="10", affiliate_code="PAUSED0001")


@pytest.mark.asyncio
@pytest.mark.parametrize("tx, amount", [
    ("", "10"),
    ("x" * 256, "10"),
    ("tx-bad", "-1"),
    ("tx-bad", "abc"),
    ("tx-bad", "NaN"),
    ("tx-bad", "10000000000"),
    ("tx-bad", "9999999999.995"),
])
async def test_invalid_input(tx, amount):
    program = await make_program()
    await make_link(program.id, code="INPUT00001")
    with pytest.raises(InvalidInput):
        await _record(transaction_id=tx, amount=amount, affiliate_code="INPUT00001")


@pytest.mark.asyncio
async def test_largest_storable_amount_allowed():
    program = await make_program(commission_rate=Decimal("100"))
    await make_link(program.id, code="BIG0000001")
    conversion = await _record(transaction_id="tx-big", amount="9999999999.99", affiliate_code="BIG0000001")
    assert conversion.commission == Decimal("9999999999.99")


@pytest.mark.asyncio
async def test_zero_amount_allowed():
    program = await make_program()
    await make_link(program.id, code="ZERO000001")
    conversion = await _record(transaction_id="tx-z", amount="0", affiliate_code="ZERO000001")
    assert conversion.commission == Decimal("0.00")


# ── Status lifecycle ─────────────────────────────────────────────────────────

class TestTransitionGraph:
    @pytest.mark.parametrize("current, new", [
        ("pending", "approved"),
        ("pending", "rejected"),
        ("approved", "paid"),
        ("approved", "rejected"),
    ])
    def test_allowed(self, current, new):
        assert can_transition(ConversionStatus(current), ConversionStatus(new))

    @pytest.mark.parametrize("current, new", [
        ("pending", "paid"),
        ("pending", "pending"),
        ("approved", "pending"),
        ("paid", "rejected"),
        ("paid", "approved"),
        ("rejected", "approved"),
        ("rejected", "pending"),
    ])
    def test_forbidden(self, current, new):
        assert not can_transition(ConversionStatus(current), ConversionStatus(new))


async def _pending_conversion() -> int:
    program = await make_program()
    await make_link(program.id, code="LIFE000001")
    conversion = await _record(transaction_id="tx-life", amount="100", affiliate_code="LIFE000001")
    return conversion.id


async def _update(conversion_id, status, notes=None):
    async with TestSession() as session:
        conversion = await update_status(session, conversion_id, status, notes)
        await session.commit()
        return conversion


@pytest.mark.asyncio
async def test_approve_then_pay_keeps_commission():
    conversion_id = await _pending_conversion()
    approved = await _update(conversion_id, "approved", notes="verified order")
    assert approved.status == ConversionStatus.APPROVED
    assert approved.notes == "verified order"

    paid = await _update(conversion_id, ConversionStatus.PAID)
    assert paid.status == ConversionStatus.PAID
    assert paid.commission == Decimal("10.00")
    assert paid.notes == "verified order"


@pytest.mark.asyncio
async def test_terminal_states_are_final():
    conversion_id = await _pending_conversion()
    await _update(conversion_id, "rejected")
    with pytest.raises(InvalidTransition):
        await _update(conversion_id, "approved")


@pytest.mark.asyncio
async def test_skip_to_paid_rejected():
    conversion_id = await _pending_conversion()
    with pytest.raises(InvalidTransition):
        await _update(conversion_id, "paid")


@pytest.mark.asyncio
async def test_unknown_status_and_missing_conversion():
    conversion_id = await _pending_conversion()
    with pytest.raises(InvalidInput):
        await _update(conversion_id, "refunded")
    with pytest.raises(InvalidInput):
        await _update(conversion_id, "approved", notes="n" * 1001)
    with pytest.raises(ConversionNotFound):
        await _update(9999, "approved")


@pytest.mark.asyncio
async def test_concurrent_status_change_loses(monkeypatch):
    """If the status moved between read and write, the compare-and-set refuses."""
    conversion_id = await _pending_conversion()

    async def nothing_updated(self, *args, **kwargs):
        return 0

    monkeypatch.setattr(AffiliateRepository, "update_status_if", nothing_updated)
    with pytest.raises(InvalidTransition):
        await _update(conversion_id, "approved")


@pytest.mark.asyncio
async def test_delete_conversion():
    conversion_id = await _pending_conversion()
    async with TestSession() as session:
        await delete_conversion(session, conversion_id)
        await session.commit()
    assert await _conversion_count() == 0

    async with TestSession() as session:
        with pytest.raises(ConversionNotFound):
            await delete_conversion(session, conversion_id)


# ── HTTP ─────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_conversion_endpoint(client):
    program = await make_program()
    await make_link(program.id, code="HTTPCONV01")

    payload = {"transaction_id": "order-1", "amount": 80, "affiliate_code": "HTTPCONV01"}
    resp = await client.post("/api/v1/conversions", json=payload)
    assert resp.status_code == 201, resp.text
    data = resp.json()["data"]
    assert data["commission"] == 8.0
    assert data["status"] == "pending"

    resp = await client.post("/api/v1/conversions", json=payload)
    assert resp.status_code == 409
    assert resp.json()["error"] == "duplicate_conversion"


@pytest.mark.asyncio
async def test_conversion_endpoint_reads_cookie(client):
    program = await make_program()
    link = await make_link(program.id, code="JARCOOKIE1")
    resp = await client.post(
        "/api/v1/conversions",
        json={"transaction_id": "order-2", "amount": 10},
        headers={"Cookie": "affiliate_code=JARCOOKIE1"},
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["data"]["link_id"] == link.id


@pytest.mark.asyncio
async def test_conversion_endpoint_without_code(client):
    resp = await client.post("/api/v1/conversions", json={"transaction_id": "order-3", "amount": 10})
    assert resp.status_code == 400
    assert resp.json()["error"] == "no_attribution_code"


@pytest.mark.asyncio
async def test_conversion_endpoint_validation(client):
    resp = await client.post("/api/v1/conversions", json={"transaction_id": "order-4", "amount": -5, "affiliate_code": "X"})
    assert resp.status_code == 422
    assert resp.json()["error"] == "validation_error"


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [10**13, 10**10, "12.345"])
async def test_conversion_endpoint_rejects_unstorable_amount(client, amount):
    program = await make_program()
    await make_link(program.id, code="HUGE000001")
    resp = await client.post(
        "/api/v1/conversions",
        json={"transaction_id": "order-huge", "amount": amount, "affiliate_code": "HUGE000001"},
    )
    assert resp.status_code == 422
    assert resp.json()["error"] == "validation_error"
    assert await _conversion_count() == 0
