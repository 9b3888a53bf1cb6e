# app/services/batch_queries.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.batch import Batch
from app.models.batch_event import BatchEvent
from app.models.batch_order import BatchOrder
from app.models.batch_snapshot import BatchOrderItemSnapshot
from app.models.enums import OrderStatus
from app.models.order import Order
from app.services.batch_service import eligible_orders_clause, load_batch


async def fetch_batches(session: AsyncSession, *, status: Optional[str] = None) -> List[Dict[str, Any]]:
    """批次列表（新 → 旧），附 order_count / total_qty 聚合。"""
    order_counts = (
        select(BatchOrder.batch_id, func.count(BatchOrder.id).label("order_count"))
        .group_by(BatchOrder.batch_id)
        .subquery()
    )
    qty_sums = (
        select(BatchOrderItemSnapshot.batch_id, func.sum(BatchOrderItemSnapshot.qty).label("total_qty"))
        .group_by(BatchOrderItemSnapshot.batch_id)
        .subquery()
    )
    stmt = (
        select(
            Batch,
            func.coalesce(order_counts.c.order_count, 0),
            func.coalesce(qty_sums.c.total_qty, 0),
        )
        .outerjoin(order_counts, order_counts.c.batch_id == Batch.id)
        .outerjoin(qty_sums, qty_sums.c.batch_id == Batch.id)
        .order_by(Batch.created_at.desc(), Batch.id.desc())
    )
    if status and status != "all":
        stmt = stmt.where(Batch.status == status)

    out: List[Dict[str, Any]] = []
    for batch, order_count, total_qty in (await session.execute(stmt)).all():
        out.append({"batch": batch, "order_count": int(order_count), "total_qty": int(total_qty)})
    return out


async def fetch_batch(session: AsyncSession, batch_id: int) -> Batch:
    return await load_batch(session, batch_id)


async def fetch_batch_orders(session: AsyncSession, batch_id: int) -> List[Order]:
    return list(
        (
            await session.execute(
                select(Order)
                .join(BatchOrder, BatchOrder.order_id == Order.id)
                .where(BatchOrder.batch_id == int(batch_id))
                .order_by(Order.public_order_number)
            )
        ).scalars().all()
    )


async def fetch_snapshot(session: AsyncSession, batch_id: int) -> List[BatchOrderItemSnapshot]:
    return list(
        (
            await session.execute(
                select(BatchOrderItemSnapshot)
                .where(BatchOrderItemSnapshot.batch_id == int(batch_id))
                .order_by(BatchOrderItemSnapshot.order_id, BatchOrderItemSnapshot.id)
            )
        ).scalars().all()
    )


async def fetch_batch_events(session: AsyncSession, batch_id: int) -> List[BatchEvent]:
    return list(
        (
            await session.execute(
                select(BatchEvent)
                .where(BatchEvent.batch_id == int(batch_id))
                .order_by(BatchEvent.created_at.desc(), BatchEvent.id.desc())
            )
        ).scalars().all()
    )


async def _count(session: AsyncSession, *criteria) -> int:
    return int((await session.execute(select(func.count(Order.id)).where(*criteria))).scalar_one())


async def fetch_eligibility_summary(session: AsyncSession) -> Dict[str, Any]:
    """可建批订单数 + 不可建批原因分布。"""
    confirmed = (Order.status == OrderStatus.CONFIRMED.value, Order.is_confirmed.is_(True))

    eligible = await _count(session, *eligible_orders_clause())
    reasons: List[Dict[str, Any]] = []

    already_batched = await _count(session, *confirmed, Order.batch_id.is_not(None))
    if already_batched:
        reasons.append({"reason": "Already in a batch", "count": already_batched})

    already_released = await _count(session, *confirmed, Order.released_at.is_not(None))
    if already_released:
        reasons.append({"reason": "Already released", "count": already_released})

    not_confirmed = await _count(
        session,
        Order.is_confirmed.is_(False),
        Order.batch_id.is_(None),
        Order.released_at.is_(None),
        Order.status.not_in([OrderStatus.CANCELED.value, OrderStatus.MERGED.value]),
    )
    if not_confirmed:
        reasons.append({"reason": "Not confirmed", "count": not_confirmed})

    return {"eligible": eligible, "ineligible": reasons}


def tracking_coverage(orders: List[Order]) -> Dict[str, int]:
    with_tracking = sum(1 for o in orders if (o.tracking_number or "").strip())
    return {"orders_with_tracking": with_tracking, "order_count": len(orders)}
