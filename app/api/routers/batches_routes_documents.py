# app/api/routers/batches_routes_documents.py
from __future__ import annotations

from io import BytesIO, StringIO

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import AdminActor, get_current_admin, get_session
from app.api.routers.batches_helpers import attachment, fail_batch_op
from app.services.batch_documents import render_packing_list, render_packing_slips
from app.services.batch_queries import fetch_batch, fetch_batch_orders, fetch_snapshot
from app.services.batch_service import BatchService
from app.services.courier_export_service import CourierExportService
from app.services.shipping_labels import render_shipping_labels


def register(router: APIRouter) -> None:
    @router.get("/{batch_id}/documents/packing-list", response_class=HTMLResponse)
    async def packing_list_document(batch_id: int, session: AsyncSession = Depends(get_session)):
        """装箱总单（按 SKU 汇总的快照），只读，不计打印次数。"""
        try:
            batch = await fetch_batch(session, batch_id)
            orders = await fetch_batch_orders(session, batch_id)
            snapshot = await fetch_snapshot(session, batch_id)
        except Exception as e:
            await fail_batch_op(session, operation="packing_list_document", batch_id=batch_id, e=e)
        return HTMLResponse(render_packing_list(batch, orders, snapshot))

    @router.get("/{batch_id}/documents/packing-slips", response_class=HTMLResponse)
    async def packing_slips_document(batch_id: int, session: AsyncSession = Depends(get_session)):
        try:
            batch = await fetch_batch(session, batch_id)
            orders = await fetch_batch_orders(session, batch_id)
            snapshot = await fetch_snapshot(session, batch_id)
        except Exception as e:
            await fail_batch_op(session, operation="packing_slips_document", batch_id=batch_id, e=e)
        return HTMLResponse(render_packing_slips(batch, orders, snapshot))

    @router.get("/{batch_id}/documents/shipping-labels")
    async def shipping_labels_document(
        batch_id: int,
        session: AsyncSession = Depends(get_session),
        admin: AdminActor = Depends(get_current_admin),
    ):
        """A6 面单 PDF（每单一页）；生成即记一条 shipping_labels_generated 批次事件。"""
        try:
            await fetch_batch(session, batch_id)
            orders = await fetch_batch_orders(session, batch_id)
            pdf = render_shipping_labels(orders)
            await BatchService.log_shipping_labels_generated(session, batch_id=batch_id, actor=admin.email)
            await session.commit()
        except Exception as e:
            await fail_batch_op(session, operation="shipping_labels", batch_id=batch_id, e=e)
        return StreamingResponse(
            BytesIO(pdf),
            media_type="application/pdf",
            headers=attachment(f"batch_{batch_id}_labels.pdf", inline=True),
        )

    @router.get("/{batch_id}/courier-csv")
    async def courier_csv(
        batch_id: int,
        session: AsyncSession = Depends(get_session),
        admin: AdminActor = Depends(get_current_admin),
    ):
        """
        批次快递 CSV（22 列 A..V）：

        - 下载即记录一次导出（export_count +1 / exported_at / exported_by）
        - 写 courier_csv_downloaded 批次事件
        """
        try:
            await fetch_batch(session, batch_id)
            orders = await fetch_batch_orders(session, batch_id)
            content = await CourierExportService.batch_csv(session, orders=orders)
            await BatchService.record_courier_export(
                session, batch_id=batch_id, actor=admin.email, order_count=len(orders)
            )
            await session.commit()
        except Exception as e:
            await fail_batch_op(session, operation="courier_csv", batch_id=batch_id, e=e)
        return StreamingResponse(
            StringIO(content),
            media_type="text/csv; charset=utf-8",
            headers=attachment(f"batch_{batch_id}_courier.csv"),
        )
