# app/api/routers/batches_routes_tracking.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import AdminActor, get_current_admin, get_session
from app.api.routers.batches_helpers import fail_batch_op
from app.schemas.batch import TrackingImportIn, TrackingImportOut
from app.services.batch_service import BatchService, TrackingRow
from app.services.tracking_import import parse_tracking_csv


def register(router: APIRouter) -> None:
    @router.post("/{batch_id}/tracking", response_model=TrackingImportOut)
    async def import_tracking(
        batch_id: int,
        payload: TrackingImportIn,
        session: AsyncSession = Depends(get_session),
        admin: AdminActor = Depends(get_current_admin),
    ) -> TrackingImportOut:
        """
        批次内运单号导入（JSON 行）：

        - 任一行匹配不到本批次订单 → 409 orders_not_in_batch
        - 任一订单已有不同运单号 → 409 tracking_conflict（逐对列出，整单不写）
        - 相同运单号 → 计入 skipped
        """
        rows = [TrackingRow(order_ref=r.order_ref, tracking_number=r.tracking_number) for r in payload.rows]
        try:
            out = await BatchService.import_tracking_for_batch(
                session, batch_id=batch_id, actor=admin.email, rows=rows
            )
            await session.commit()
        except Exception as e:
            await fail_batch_op(session, operation="tracking_import", batch_id=batch_id, e=e)
        return TrackingImportOut.model_validate(out)

    @router.post("/{batch_id}/tracking/csv", response_model=TrackingImportOut)
    async def import_tracking_csv(
        batch_id: int,
        request: Request,
        session: AsyncSession = Depends(get_session),
        admin: AdminActor = Depends(get_current_admin),
    ) -> TrackingImportOut:
        """原始 CSV 正文：order_ref,tracking_number（表头可选）。"""
        try:
            rows = parse_tracking_csv((await request.body()).decode("utf-8-sig", errors="replace"))
            out = await BatchService.import_tracking_for_batch(
                session, batch_id=batch_id, actor=admin.email, rows=rows
            )
            await session.commit()
        except Exception as e:
            await fail_batch_op(session, operation="tracking_import", batch_id=batch_id, e=e)
        return TrackingImportOut.model_validate(out)
