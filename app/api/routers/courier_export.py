# app/api/routers/courier_export.py
from __future__ import annotations

from io import StringIO

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import AdminActor, get_current_admin, get_session
from app.api.routers.batches_helpers import attachment
from app.api.routers.orders_helpers import fail_order_action
from app.metrics import ORDER_ACTIONS
from app.models.enums import SystemEntityType
from app.schemas.courier import CourierExportPreviewOut
from app.services.courier_export_service import CourierExportService
from app.utils.time import utcnow

router = APIRouter(
    prefix="/courier-export",
    tags=["courier-export"],
    dependencies=[Depends(get_current_admin)],
)


@router.get("/preview", response_model=CourierExportPreviewOut)
async def courier_export_preview(session: AsyncSession = Depends(get_session)) -> CourierExportPreviewOut:
    """
    全局快递导出预览：已确认 / 未履约 / 无需审核的 confirmed 订单（旧 → 新）。
    """
    return CourierExportPreviewOut.model_validate(await CourierExportService.preview(session))


@router.get("/download")
async def courier_export_download(
    session: AsyncSession = Depends(get_session),
    admin: AdminActor = Depends(get_current_admin),
):
    """生成 CSV；逐单写 courier_export 事件 + 一条 COURIER_EXPORT_CREATE。"""
    try:
        out = await CourierExportService.download(session, actor=admin.email)
        await session.commit()
    except Exception as e:
        await fail_order_action(
            session,
            event_type="COURIER_EXPORT_CREATE",
            entity_type=SystemEntityType.EXPORT_BATCH,
            entity_id=utcnow().strftime("%Y%m%d%H%M%S"),
            actor=admin.email,
            e=e,
        )
    ORDER_ACTIONS.labels("COURIER_EXPORT_CREATE", "success").inc()
    return StreamingResponse(
        StringIO(out["content"]),
        media_type="text/csv; charset=utf-8",
        headers={**attachment(out["filename"]), "X-Export-Ref": out["export_ref"]},
    )
