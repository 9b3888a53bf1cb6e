# app/api/routers/batches_routes_actions.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import AdminActor, get_current_admin, get_session
from app.api.routers.batches_helpers import fail_batch_op
from app.schemas.batch import BatchCreateOut, PrintIn, PrintOut, ReleaseOut, UndoReleaseIn
from app.services.batch_service import BatchService


def register(router: APIRouter) -> None:
    @router.post("", response_model=BatchCreateOut, status_code=status.HTTP_201_CREATED)
    async def create_batch(
        session: AsyncSession = Depends(get_session),
        admin: AdminActor = Depends(get_current_admin),
    ) -> BatchCreateOut:
        """
        把当前所有可建批订单收进一个新的 OPEN 批次，并冻结明细快照。

        - 无可建批订单 → 409 no_eligible_orders
        - 与其它建批并发抢单 → 409 batch_eligibility_conflict（整体回滚）
        """
        try:
            out = await BatchService.create_batch(session, actor=admin.email)
            await session.commit()
        except Exception as e:
            await fail_batch_op(session, operation="create", batch_id=None, e=e)
        return BatchCreateOut.model_validate(out)

    @router.post("/{batch_id}/print/packing-list", response_model=PrintOut)
    async def print_packing_list(
        batch_id: int,
        payload: Optional[PrintIn] = None,
        session: AsyncSession = Depends(get_session),
        admin: AdminActor = Depends(get_current_admin),
    ) -> PrintOut:
        try:
            out = await BatchService.print_packing_list(
                session,
                batch_id=batch_id,
                actor=admin.email,
                confirm_reprint=bool(payload and payload.confirm_reprint),
            )
            await session.commit()
        except Exception as e:
            await fail_batch_op(session, operation="print_packing_list", batch_id=batch_id, e=e)
        return PrintOut.model_validate(out)

    @router.post("/{batch_id}/print/packing-slips", response_model=PrintOut)
    async def print_packing_slips(
        batch_id: int,
        payload: Optional[PrintIn] = None,
        session: AsyncSession = Depends(get_session),
        admin: AdminActor = Depends(get_current_admin),
    ) -> PrintOut:
        try:
            out = await BatchService.print_packing_slips(
                session,
                batch_id=batch_id,
                actor=admin.email,
                confirm_reprint=bool(payload and payload.confirm_reprint),
            )
            await session.commit()
        except Exception as e:
            await fail_batch_op(session, operation="print_packing_slips", batch_id=batch_id, e=e)
        return PrintOut.model_validate(out)

    @router.post("/{batch_id}/release", response_model=ReleaseOut)
    async def release_batch(
        batch_id: int,
        session: AsyncSession = Depends(get_session),
        admin: AdminActor = Depends(get_current_admin),
    ) -> ReleaseOut:
        try:
            out = await BatchService.bulk_release_batch(session, batch_id=batch_id, actor=admin.email)
            await session.commit()
        except Exception as e:
            await fail_batch_op(session, operation="release", batch_id=batch_id, e=e)
        return ReleaseOut.model_validate(out)

    @router.post("/{batch_id}/undo-release", response_model=ReleaseOut)
    async def undo_release_batch(
        batch_id: int,
        payload: UndoReleaseIn,
        session: AsyncSession = Depends(get_session),
        admin: AdminActor = Depends(get_current_admin),
    ) -> ReleaseOut:
        """
        撤销放行：必须填写原因；批次内任一订单已有运单号 → 409 undo_release_blocked。
        """
        try:
            out = await BatchService.undo_release_batch(
                session, batch_id=batch_id, actor=admin.email, reason=payload.reason or ""
            )
            await session.commit()
        except Exception as e:
            await fail_batch_op(session, operation="undo_release", batch_id=batch_id, e=e)
        return ReleaseOut.model_validate(out)
