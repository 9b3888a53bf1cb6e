# app/api/routers/batches_routes_query.py
from __future__ import annotations

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_session
from app.api.errors import raise_for_domain_error
from app.schemas.batch import (
    BatchDetailOut,
    BatchEventOut,
    BatchListItem,
    BatchOrderOut,
    BatchOut,
    EligibilityOut,
    SkuGroupOut,
    SnapshotItemOut,
    TrackingCoverageOut,
    WarningOut,
)
from app.services.batch_documents import group_snapshot_by_sku
from app.services.batch_errors import BatchNotFound
from app.services.batch_queries import (
    fetch_batch,
    fetch_batch_events,
    fetch_batch_orders,
    fetch_batches,
    fetch_eligibility_summary,
    fetch_snapshot,
    tracking_coverage,
)
from app.services.batch_warnings import batch_warnings


def register(router: APIRouter) -> None:
    @router.get("", response_model=List[BatchListItem])
    async def list_batches(
        status: Optional[Literal["all", "OPEN", "LOCKED", "RELEASED"]] = Query(
            None, description="按状态过滤；all / 不传 = 全部"
        ),
        session: AsyncSession = Depends(get_session),
    ) -> List[BatchListItem]:
        rows = await fetch_batches(session, status=status)
        return [
            BatchListItem(
                **BatchOut.model_validate(r["batch"]).model_dump(),
                order_count=r["order_count"],
                total_qty=r["total_qty"],
            )
            for r in rows
        ]

    @router.get("/eligibility", response_model=EligibilityOut)
    async def batch_eligibility(session: AsyncSession = Depends(get_session)) -> EligibilityOut:
        """
        当前可建批订单数 + 不可建批原因分布（已挂起 / 需审核 / 已在批次 / 已履约 ...）。
        """
        return EligibilityOut.model_validate(await fetch_eligibility_summary(session))

    @router.get("/{batch_id}", response_model=BatchDetailOut)
    async def get_batch_detail(batch_id: int, session: AsyncSession = Depends(get_session)) -> BatchDetailOut:
        try:
            batch = await fetch_batch(session, batch_id)
        except BatchNotFound as e:
            raise_for_domain_error(e)

        orders = await fetch_batch_orders(session, batch_id)
        snapshot = await fetch_snapshot(session, batch_id)
        events = await fetch_batch_events(session, batch_id)
        groups = group_snapshot_by_sku(snapshot, orders)

        return BatchDetailOut(
            batch=BatchOut.model_validate(batch),
            orders=[BatchOrderOut.model_validate(o) for o in orders],
            snapshot=[SnapshotItemOut.model_validate(s) for s in snapshot],
            events=[BatchEventOut.model_validate(ev) for ev in events],
            sku_groups=[
                SkuGroupOut(
                    sku=g.sku,
                    product_name=g.product_name,
                    orders=[f"#{number} ×{qty}" for number, qty in g.chips],
                    total_qty=g.total_qty,
                )
                for g in groups
            ],
            warnings=[WarningOut.model_validate(w) for w in batch_warnings(batch, events)],
            tracking_coverage=TrackingCoverageOut.model_validate(tracking_coverage(orders)),
            total_qty=sum(int(s.qty) for s in snapshot),
        )
