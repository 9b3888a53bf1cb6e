# tests/services/test_order_review_idempotency.py
from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import OrderStatus
from app.models.idempotency_key import IdempotencyKey
from app.models.order_event import OrderEvent
from app.models.system_event import SystemEvent
from app.services.batch_service import BatchService
from app.services.order_errors import OrderBadInput, OrderStateError, OrderVersionConflict
from app.services.order_review_service import OrderReviewService
from app.utils.time import utcnow
from tests.factories import make_order

pytestmark = pytest.mark.asyncio

ACTOR = "admin@example.com"


async def _system_events(session: AsyncSession, order_id: int, event_type: str) -> int:
    return int(
        (
            await session.execute(
                select(func.count(SystemEvent.event_id)).where(
                    SystemEvent.entity_id == str(order_id), SystemEvent.event_type == event_type
                )
            )
        ).scalar_one()
    )


async def test_confirm_is_idempotent_per_key(session: AsyncSession):
    order = await make_order(session, status=OrderStatus.NEW.value, is_confirmed=False, review_required=True)

    first = await OrderReviewService.confirm_order(
        session, order_id=order.id, expected_version=1, actor=ACTOR, idempotency_key="confirm-1"
    )
    # 重放：版本号已经过期，但同 key 直接返回首次结果
    again = await OrderReviewService.confirm_order(
        session, order_id=order.id, expected_version=1, actor=ACTOR, idempotency_key="confirm-1"
    )

    assert again == first
    assert first["status"] == "confirmed"
    assert first["version"] == 2
    assert await _system_events(session, order.id, "ORDER_CONFIRM") == 1

    keys = (await session.execute(select(IdempotencyKey))).scalars().all()
    assert [(k.idempotency_key, k.action_type, k.entity_id) for k in keys] == [
        ("confirm-1", "ORDER_CONFIRM", str(order.id))
    ]

    await session.refresh(order)
    assert order.is_confirmed is True
    assert order.review_required is False


async def test_different_key_with_stale_version_conflicts(session: AsyncSession):
    order = await make_order(session, status=OrderStatus.NEW.value, is_confirmed=False)

    await OrderReviewService.confirm_order(
        session, order_id=order.id, expected_version=1, actor=ACTOR, idempotency_key="k-a"
    )
    with pytest.raises(OrderVersionConflict):
        await OrderReviewService.confirm_order(
            session, order_id=order.id, expected_version=1, actor=ACTOR, idempotency_key="k-b"
        )


async def test_hold_marks_review_and_records_note(session: AsyncSession):
    order = await make_order(session)

    out = await OrderReviewService.hold_order(
        session, order_id=order.id, expected_version=1, actor=ACTOR, idempotency_key="hold-1", reason="odd address"
    )
    assert out["status"] == "on_hold"

    await session.refresh(order)
    assert order.is_confirmed is False
    assert order.review_required is True

    types = (
        await session.execute(
            select(OrderEvent.event_type).where(OrderEvent.order_id == order.id).order_by(OrderEvent.id)
        )
    ).scalars().all()
    assert list(types) == ["status_change", "note"]


async def test_cancel_refuses_released_orders(session: AsyncSession):
    order = await make_order(session, released_at=utcnow())
    with pytest.raises(OrderStateError):
        await OrderReviewService.cancel_order(
            session, order_id=order.id, expected_version=1, actor=ACTOR, idempotency_key="c-1"
        )


async def test_cancel_refuses_orders_in_open_batch(session: AsyncSession):
    order = await make_order(session)
    out = await BatchService.create_batch(session, actor=ACTOR)
    await session.refresh(order)

    with pytest.raises(OrderStateError) as ei:
        await OrderReviewService.cancel_order(
            session, order_id=order.id, expected_version=order.version, actor=ACTOR, idempotency_key="c-2"
        )
    assert f"warehouse batch {out['batch_id']}" in str(ei.value)

    with pytest.raises(OrderStateError):
        await OrderReviewService.set_order_status(
            session,
            order_id=order.id,
            status=OrderStatus.CANCELED.value,
            expected_version=order.version,
            actor=ACTOR,
            idempotency_key="s-2",
        )

    with pytest.raises(OrderStateError):
        await OrderReviewService.save_admin_fields(
            session,
            order_id=order.id,
            changes={"status": OrderStatus.CANCELED.value},
            expected_version=order.version,
            actor=ACTOR,
        )

    await session.refresh(order)
    assert order.status == OrderStatus.CONFIRMED.value
    assert await _system_events(session, order.id, "ORDER_CANCEL") == 0


async def test_terminal_orders_cannot_be_confirmed(session: AsyncSession):
    order = await make_order(session, status=OrderStatus.CANCELED.value, is_confirmed=False)
    with pytest.raises(OrderStateError):
        await OrderReviewService.confirm_order(
            session, order_id=order.id, expected_version=1, actor=ACTOR, idempotency_key="t-1"
        )


async def test_set_status_validates_value(session: AsyncSession):
    order = await make_order(session)
    with pytest.raises(OrderBadInput):
        await OrderReviewService.set_order_status(
            session, order_id=order.id, status="teleported", expected_version=1, actor=ACTOR, idempotency_key="s-1"
        )

    out = await OrderReviewService.set_order_status(
        session, order_id=order.id, status="packed", expected_version=1, actor=ACTOR, idempotency_key="s-2"
    )
    assert out["status"] == "packed"
    assert await _system_events(session, order.id, "ORDER_STATUS_SET") == 1


async def test_toggle_fulfilled_flips_flag(session: AsyncSession):
    order = await make_order(session)

    out = await OrderReviewService.toggle_fulfilled(
        session, order_id=order.id, expected_version=1, actor=ACTOR, idempotency_key="f-1"
    )
    assert out["is_fulfilled"] is True

    out = await OrderReviewService.toggle_fulfilled(
        session, order_id=order.id, expected_version=2, actor=ACTOR, idempotency_key="f-2"
    )
    assert out["is_fulfilled"] is False
    assert out["version"] == 3


async def test_save_admin_fields_writes_changed_only(session: AsyncSession):
    order = await make_order(session, assigned_to="mila")

    out = await OrderReviewService.save_admin_fields(
        session,
        order_id=order.id,
        changes={"assigned_to": "mila", "tracking_number": "RS123", "courier_name": "Onway"},
        expected_version=1,
        actor=ACTOR,
    )
    assert out["changed"] == ["courier_name", "tracking_number"]

    ev = (
        await session.execute(select(OrderEvent).where(OrderEvent.order_id == order.id))
    ).scalars().one()
    assert ev.event_type == "tracking_update"
    assert ev.payload["courier_name"] == "Onway"
    assert ev.payload["source"] == "manual"


async def test_save_admin_fields_rejects_unknown_fields(session: AsyncSession):
    order = await make_order(session)
    with pytest.raises(OrderBadInput):
        await OrderReviewService.save_admin_fields(
            session, order_id=order.id, changes={"total": "0.00"}, expected_version=1, actor=ACTOR
        )
