# tests/services/test_tracking_import.py
from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.batch_event import BatchEvent
from app.models.order import Order
from app.models.order_event import OrderEvent
from app.models.system_event import SystemEvent
from app.services.batch_errors import OrdersNotInBatchError, TrackingConflictError
from app.services.batch_service import BatchService, TrackingRow
from tests.factories import make_order

pytestmark = pytest.mark.asyncio

ACTOR = "packer@example.com"


async def _batch_with_orders(session: AsyncSession, n: int = 2) -> tuple[int, list[Order]]:
    orders = [await make_order(session) for _ in range(n)]
    out = await BatchService.create_batch(session, actor=ACTOR)
    for o in orders:
        await session.refresh(o)
    return int(out["batch_id"]), orders


async def test_import_sets_tracking_and_default_courier(session: AsyncSession):
    batch_id, (a, b) = await _batch_with_orders(session)

    out = await BatchService.import_tracking_for_batch(
        session,
        batch_id=batch_id,
        actor=ACTOR,
        rows=[TrackingRow(a.public_order_number, "RS-100"), TrackingRow(f"#{b.id}", "RS-200")],
    )
    assert out == {"updated": 2, "skipped": 0}

    await session.refresh(a)
    await session.refresh(b)
    assert (a.tracking_number, a.courier_name, a.version) == ("RS-100", "Onway", 3)
    assert b.tracking_number == "RS-200"

    ev = (
        await session.execute(
            select(OrderEvent).where(OrderEvent.order_id == a.id, OrderEvent.event_type == "tracking_update")
        )
    ).scalars().one()
    assert ev.payload["source"] == "batch_import"
    assert ev.payload["batch_id"] == batch_id

    imported = (
        await session.execute(
            select(BatchEvent).where(BatchEvent.batch_id == batch_id, BatchEvent.event_type == "TRACKING_IMPORTED")
        )
    ).scalars().one()
    assert imported.payload == {"updated": 2, "skipped": 0}

    sys_ev = (
        await session.execute(select(SystemEvent).where(SystemEvent.event_type == "COURIER_IMPORT_APPLY"))
    ).scalars().one()
    assert sys_ev.entity_type == "batch"
    assert sys_ev.payload_json["rows"] == 2


async def test_same_tracking_number_is_skipped(session: AsyncSession):
    batch_id, (a, _) = await _batch_with_orders(session)
    await BatchService.import_tracking_for_batch(
        session, batch_id=batch_id, actor=ACTOR, rows=[TrackingRow(a.public_order_number, "RS-1")]
    )

    out = await BatchService.import_tracking_for_batch(
        session, batch_id=batch_id, actor=ACTOR, rows=[TrackingRow(a.public_order_number, "RS-1")]
    )
    assert out == {"updated": 0, "skipped": 1}


async def test_conflicts_block_the_whole_file(session: AsyncSession):
    batch_id, (a, b) = await _batch_with_orders(session)
    await BatchService.import_tracking_for_batch(
        session, batch_id=batch_id, actor=ACTOR, rows=[TrackingRow(a.public_order_number, "RS-OLD")]
    )

    with pytest.raises(TrackingConflictError) as ei:
        await BatchService.import_tracking_for_batch(
            session,
            batch_id=batch_id,
            actor=ACTOR,
            rows=[TrackingRow(b.public_order_number, "RS-B"), TrackingRow(a.public_order_number, "RS-NEW")],
        )
    assert ei.value.conflicts == [
        {"order_id": a.id, "public_order_number": a.public_order_number, "existing": "RS-OLD", "incoming": "RS-NEW"}
    ]

    await session.refresh(b)
    assert b.tracking_number is None


async def test_duplicate_rows_with_different_numbers_conflict(session: AsyncSession):
    batch_id, (a, _) = await _batch_with_orders(session)

    with pytest.raises(TrackingConflictError) as ei:
        await BatchService.import_tracking_for_batch(
            session,
            batch_id=batch_id,
            actor=ACTOR,
            rows=[TrackingRow(a.public_order_number, "RS-1"), TrackingRow(a.public_order_number, "RS-2")],
        )
    assert ei.value.conflicts[0]["existing"] == "RS-1"
    assert ei.value.conflicts[0]["incoming"] == "RS-2"


async def test_orders_outside_batch_are_rejected(session: AsyncSession):
    batch_id, _ = await _batch_with_orders(session, n=1)
    outsider = await make_order(session)

    with pytest.raises(OrdersNotInBatchError) as ei:
        await BatchService.import_tracking_for_batch(
            session,
            batch_id=batch_id,
            actor=ACTOR,
            rows=[TrackingRow(outsider.public_order_number, "RS-9"), TrackingRow("CO999999", "RS-10")],
        )
    assert ei.value.order_refs == [outsider.public_order_number, "CO999999"]


async def test_existing_courier_name_is_kept(session: AsyncSession):
    order = await make_order(session, courier_name="PostExpress")
    out = await BatchService.create_batch(session, actor=ACTOR)

    await BatchService.import_tracking_for_batch(
        session, batch_id=out["batch_id"], actor=ACTOR, rows=[TrackingRow(order.public_order_number, "PE-1")]
    )
    await session.refresh(order)
    assert order.courier_name == "PostExpress"
