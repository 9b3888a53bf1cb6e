# tests/services/test_batch_lifecycle.py
from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.batch_event import BatchEvent
from app.models.batch_order import BatchOrder
from app.models.batch_print_job import BatchPrintJob
from app.models.batch_snapshot import BatchOrderItemSnapshot
from app.models.enums import BatchStatus, OrderStatus
from app.models.order import Order
from app.models.order_event import OrderEvent
from app.models.order_item import OrderItem
from app.schemas.events import parse_batch_event
from app.services.batch_errors import (
    BatchEligibilityConflictError,
    BatchStateError,
    BatchValidationError,
    NoEligibleOrdersError,
    ReprintConfirmationRequired,
    UndoReleaseBlockedError,
)
from app.services import batch_service
from app.services.batch_service import BatchService, load_batch
from tests.factories import make_order

pytestmark = pytest.mark.asyncio

ACTOR = "packer@example.com"


async def _event_types(session: AsyncSession, batch_id: int) -> list[str]:
    rows = (
        await session.execute(
            select(BatchEvent.event_type).where(BatchEvent.batch_id == batch_id).order_by(BatchEvent.id)
        )
    ).scalars().all()
    return list(rows)


async def _new_batch(session: AsyncSession, n: int = 3) -> int:
    for _ in range(n):
        await make_order(session)
    out = await BatchService.create_batch(session, actor=ACTOR)
    return int(out["batch_id"])


async def test_create_batch_stamps_orders_and_freezes_snapshot(session: AsyncSession):
    orders = [await make_order(session) for _ in range(3)]

    out = await BatchService.create_batch(session, actor=ACTOR)
    batch_id = out["batch_id"]
    assert out["order_count"] == 3

    links = (await session.execute(select(BatchOrder).where(BatchOrder.batch_id == batch_id))).scalars().all()
    assert sorted(link.order_id for link in links) == sorted(o.id for o in orders)

    snap_count = (
        await session.execute(
            select(func.count(BatchOrderItemSnapshot.id)).where(BatchOrderItemSnapshot.batch_id == batch_id)
        )
    ).scalar_one()
    assert snap_count == 6

    for o in orders:
        await session.refresh(o)
        assert o.batch_id == batch_id
        assert o.version == 2

    batch = await load_batch(session, batch_id)
    assert batch.status == BatchStatus.OPEN.value
    assert batch.created_by == ACTOR
    assert await _event_types(session, batch_id) == ["BATCH_CREATED"]


async def test_create_batch_only_takes_eligible_orders(session: AsyncSession):
    ok = await make_order(session)
    await make_order(session, status=OrderStatus.NEW.value, is_confirmed=False)
    await make_order(session, is_fulfilled=True)
    await make_order(session, status=OrderStatus.ON_HOLD.value, is_confirmed=False, review_required=True)

    out = await BatchService.create_batch(session, actor=ACTOR)
    assert out["order_count"] == 1

    ids = (
        await session.execute(select(BatchOrder.order_id).where(BatchOrder.batch_id == out["batch_id"]))
    ).scalars().all()
    assert list(ids) == [ok.id]


async def test_create_batch_without_eligible_orders_is_rejected(session: AsyncSession):
    await make_order(session, status=OrderStatus.NEW.value, is_confirmed=False)
    with pytest.raises(NoEligibleOrdersError):
        await BatchService.create_batch(session, actor=ACTOR)


async def test_orders_are_never_batched_twice(session: AsyncSession):
    await _new_batch(session, n=2)
    with pytest.raises(NoEligibleOrdersError):
        await BatchService.create_batch(session, actor=ACTOR)


async def test_concurrently_batched_order_aborts_create(session: AsyncSession, monkeypatch):
    first_batch = await _new_batch(session, n=1)
    await make_order(session)

    # 模拟并发：选单时看不到 batch_id 条件，打标时已被另一批次占用
    orig = batch_service.eligible_orders_clause
    monkeypatch.setattr(batch_service, "eligible_orders_clause", lambda: orig()[:3] + orig()[4:])

    with pytest.raises(BatchEligibilityConflictError) as ei:
        await BatchService.create_batch(session, actor=ACTOR)
    assert ei.value.selected == 2
    assert ei.value.stamped == 1

    taken = (await session.execute(select(Order).where(Order.batch_id == first_batch))).scalars().all()
    assert len(taken) == 1


async def test_snapshot_is_not_affected_by_later_item_changes(session: AsyncSession):
    order = await make_order(session, items=[("3003-BIRD", 4, "2.00", "Seed")])
    out = await BatchService.create_batch(session, actor=ACTOR)

    item = (await session.execute(select(BatchOrderItemSnapshot))).scalars().one()
    assert item.qty == 4

    live = (await session.execute(select(OrderItem).where(OrderItem.order_id == order.id))).scalars().one()
    live.quantity = 9
    await session.flush()

    snap = (
        await session.execute(
            select(BatchOrderItemSnapshot.qty).where(BatchOrderItemSnapshot.batch_id == out["batch_id"])
        )
    ).scalars().all()
    assert list(snap) == [4]


async def test_first_print_locks_batch(session: AsyncSession):
    batch_id = await _new_batch(session)

    out = await BatchService.print_packing_list(session, batch_id=batch_id, actor=ACTOR)

    assert out["status"] == BatchStatus.LOCKED.value
    assert out["print_count"] == 1
    batch = await load_batch(session, batch_id)
    await session.refresh(batch)
    assert batch.packing_list_printed_by == ACTOR
    assert batch.packing_list_printed_at is not None
    jobs = (await session.execute(select(BatchPrintJob).where(BatchPrintJob.batch_id == batch_id))).scalars().all()
    assert [(j.print_type, j.print_count) for j in jobs] == [("packing_list", 1)]


async def test_reprint_requires_confirmation(session: AsyncSession):
    batch_id = await _new_batch(session)
    await BatchService.print_packing_slips(session, batch_id=batch_id, actor=ACTOR)

    with pytest.raises(ReprintConfirmationRequired) as ei:
        await BatchService.print_packing_slips(session, batch_id=batch_id, actor=ACTOR)
    assert ei.value.print_count == 1

    out = await BatchService.print_packing_slips(session, batch_id=batch_id, actor=ACTOR, confirm_reprint=True)
    assert out["print_count"] == 2


async def test_printing_both_documents_auto_releases(session: AsyncSession):
    batch_id = await _new_batch(session)

    await BatchService.print_packing_list(session, batch_id=batch_id, actor=ACTOR)
    out = await BatchService.print_packing_slips(session, batch_id=batch_id, actor=ACTOR)

    assert out["status"] == BatchStatus.RELEASED.value
    types = await _event_types(session, batch_id)
    assert types == ["BATCH_CREATED", "PACKING_LIST_PRINTED", "PACKING_SLIPS_PRINTED", "BATCH_RELEASED"]

    released = (
        await session.execute(
            select(BatchEvent).where(BatchEvent.batch_id == batch_id, BatchEvent.event_type == "BATCH_RELEASED")
        )
    ).scalars().one()
    ev = parse_batch_event(released.event_type, released.payload)
    assert ev.trigger == "print"
    assert ev.order_count == 3

    orders = (await session.execute(select(Order).where(Order.batch_id == batch_id))).scalars().all()
    assert len(orders) == 3
    for o in orders:
        await session.refresh(o)
        assert o.released_at is not None


async def test_manual_release_stamps_orders(session: AsyncSession):
    batch_id = await _new_batch(session, n=2)

    out = await BatchService.bulk_release_batch(session, batch_id=batch_id, actor=ACTOR)
    assert out == {"batch_id": batch_id, "status": BatchStatus.RELEASED.value, "order_count": 2}

    batch = await load_batch(session, batch_id)
    await session.refresh(batch)
    assert batch.released_by == ACTOR
    assert batch.released_at is not None

    orders = (await session.execute(select(Order).where(Order.batch_id == batch_id))).scalars().all()
    for o in orders:
        await session.refresh(o)
        assert o.released_at is not None

    with pytest.raises(BatchStateError):
        await BatchService.bulk_release_batch(session, batch_id=batch_id, actor=ACTOR)


async def test_undo_release_requires_reason(session: AsyncSession):
    batch_id = await _new_batch(session, n=1)
    await BatchService.bulk_release_batch(session, batch_id=batch_id, actor=ACTOR)

    with pytest.raises(BatchValidationError):
        await BatchService.undo_release_batch(session, batch_id=batch_id, actor=ACTOR, reason="   ")


async def test_undo_release_only_from_released(session: AsyncSession):
    batch_id = await _new_batch(session, n=1)
    with pytest.raises(BatchStateError):
        await BatchService.undo_release_batch(session, batch_id=batch_id, actor=ACTOR, reason="wrong batch")


async def test_undo_release_blocked_when_orders_have_tracking(session: AsyncSession):
    batch_id = await _new_batch(session, n=2)
    await BatchService.bulk_release_batch(session, batch_id=batch_id, actor=ACTOR)

    first = (
        await session.execute(select(Order).where(Order.batch_id == batch_id).order_by(Order.id))
    ).scalars().first()
    first.tracking_number = "TRK-1"
    await session.flush()

    with pytest.raises(UndoReleaseBlockedError) as ei:
        await BatchService.undo_release_batch(session, batch_id=batch_id, actor=ACTOR, reason="courier swap")
    assert ei.value.order_ids == [first.id]


async def test_undo_release_resets_orders_and_records_events(session: AsyncSession):
    batch_id = await _new_batch(session, n=2)
    await BatchService.bulk_release_batch(session, batch_id=batch_id, actor=ACTOR)

    out = await BatchService.undo_release_batch(session, batch_id=batch_id, actor=ACTOR, reason="courier swap")
    assert out["status"] == BatchStatus.LOCKED.value

    orders = (await session.execute(select(Order).where(Order.batch_id == batch_id))).scalars().all()
    assert len(orders) == 2
    for o in orders:
        await session.refresh(o)
        assert o.released_at is None

    types = await _event_types(session, batch_id)
    assert types[-1] == "UNDO_RELEASE"
    undo = (
        await session.execute(
            select(BatchEvent).where(BatchEvent.batch_id == batch_id, BatchEvent.event_type == "UNDO_RELEASE")
        )
    ).scalars().one()
    assert undo.payload["reason"] == "courier swap"

    order_events = (
        await session.execute(select(OrderEvent.event_type).where(OrderEvent.event_type == "release_undone"))
    ).scalars().all()
    assert len(order_events) == 2


async def test_courier_export_and_labels_are_logged(session: AsyncSession):
    batch_id = await _new_batch(session, n=2)

    out = await BatchService.record_courier_export(session, batch_id=batch_id, actor=ACTOR, order_count=2)
    assert out["export_count"] == 1
    await BatchService.log_shipping_labels_generated(session, batch_id=batch_id, actor=ACTOR)

    batch = await load_batch(session, batch_id)
    await session.refresh(batch)
    assert batch.exported_by == ACTOR
    assert await _event_types(session, batch_id) == [
        "BATCH_CREATED",
        "COURIER_CSV_DOWNLOADED",
        "SHIPPING_LABELS_GENERATED",
    ]
