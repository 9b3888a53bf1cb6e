# tests/services/test_risk_scoring.py
from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import OrderStatus
from app.models.order_event import OrderEvent
from app.models.system_event import SystemEvent
from app.services.risk_scoring import RiskScoringService
from tests.factories import make_order

pytestmark = pytest.mark.asyncio

PHONE = "0611111111"
OTHER_ITEMS = [("9999-FISH", 1, "4.00", "Fish Flakes")]


async def test_clean_order_scores_low_without_order_event(session: AsyncSession):
    order = await make_order(session, status=OrderStatus.NEW.value, is_confirmed=False)

    out = await RiskScoringService.score_order_risk(session, order_id=order.id)

    assert out["risk_score"] == 0
    assert out["risk_level"] == "low"
    assert out["version"] == 2
    events = (await session.execute(select(OrderEvent).where(OrderEvent.order_id == order.id))).scalars().all()
    assert events == []
    sys_ev = (
        await session.execute(select(SystemEvent).where(SystemEvent.event_type == "ORDER_RISK_SCORE"))
    ).scalars().one()
    assert sys_ev.entity_id == str(order.id)


async def test_repeat_customer_goes_on_hold(session: AsyncSession):
    await make_order(session, customer_phone=PHONE, cookie_id_hash="cookie-1")
    order = await make_order(
        session,
        status=OrderStatus.NEW.value,
        is_confirmed=False,
        customer_phone=PHONE,
        cookie_id_hash="cookie-1",
    )

    out = await RiskScoringService.score_order_risk(session, order_id=order.id)

    # same_cookie 40 + rapid_reorder 20 + same_phone 35 + exact_sku_match 30
    assert out["risk_score"] == 125
    assert out["risk_level"] == "high"
    assert out["risk_reasons"] == [
        "same_cookie (1 prior orders)",
        "rapid_reorder (1 in 2hrs)",
        "same_phone (1 prior)",
        "exact_sku_match",
    ]

    await session.refresh(order)
    assert order.status == "on_hold"
    assert order.review_required is True
    assert order.risk_level == "high"

    ev = (await session.execute(select(OrderEvent).where(OrderEvent.order_id == order.id))).scalars().one()
    assert ev.event_type == "risk_scored"
    assert ev.payload["risk_score"] == 125


async def test_phone_match_alone_is_medium(session: AsyncSession):
    await make_order(session, customer_phone=PHONE)
    order = await make_order(
        session, status=OrderStatus.NEW.value, is_confirmed=False, customer_phone=PHONE, items=OTHER_ITEMS
    )

    out = await RiskScoringService.score_order_risk(session, order_id=order.id)

    assert out["risk_score"] == 35
    assert out["risk_level"] == "medium"
    await session.refresh(order)
    assert order.status == "new"


async def test_merged_and_canceled_orders_are_ignored(session: AsyncSession):
    await make_order(session, customer_phone=PHONE, status=OrderStatus.MERGED.value, is_confirmed=False)
    await make_order(session, customer_phone=PHONE, status=OrderStatus.CANCELED.value, is_confirmed=False)
    order = await make_order(session, status=OrderStatus.NEW.value, is_confirmed=False, customer_phone=PHONE)

    out = await RiskScoringService.score_order_risk(session, order_id=order.id)
    assert out["risk_score"] == 0


async def test_sku_overlap_counts_first_matching_order_only(session: AsyncSession):
    await make_order(session, items=[("1001-CAT", 1, "10.00", "Cat Food")])
    await make_order(session, items=[("1001-CAT", 1, "10.00", "Cat Food")])
    order = await make_order(session, status=OrderStatus.NEW.value, is_confirmed=False)

    out = await RiskScoringService.score_order_risk(session, order_id=order.id)
    assert out["risk_reasons"] == ["sku_overlap"]
    assert out["risk_score"] == 20


async def test_low_confidence_address_requires_review(session: AsyncSession):
    order = await make_order(
        session, status=OrderStatus.NEW.value, is_confirmed=False, normalization_confidence=0.5
    )

    out = await RiskScoringService.score_order_risk(session, order_id=order.id)

    assert out["risk_score"] == 25
    assert out["risk_level"] == "medium"
    assert "low_confidence_address" in out["risk_reasons"]
    await session.refresh(order)
    assert order.review_required is True


async def test_request_ip_is_stored_when_missing(session: AsyncSession):
    await make_order(session, ip_address="10.0.0.7")
    order = await make_order(session, status=OrderStatus.NEW.value, is_confirmed=False, items=OTHER_ITEMS)

    out = await RiskScoringService.score_order_risk(session, order_id=order.id, ip_address="10.0.0.7")

    assert out["risk_reasons"] == ["same_ip (1 prior)"]
    await session.refresh(order)
    assert order.ip_address == "10.0.0.7"
