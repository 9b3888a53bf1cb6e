# app/api/routers/orders_routes_edit.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import AdminActor, get_current_admin, get_session
from app.api.routers.orders_helpers import run_order_action
from app.schemas.order import FieldsEditIn, FieldsEditOut, ItemEditOut, ItemQuantityIn, VersionedIn
from app.services.order_edit_service import OrderEditService


def register(router: APIRouter) -> None:
    @router.patch("/{order_id}/fields", response_model=FieldsEditOut)
    async def edit_order_fields(
        order_id: int,
        payload: FieldsEditIn,
        session: AsyncSession = Depends(get_session),
        admin: AdminActor = Depends(get_current_admin),
    ) -> FieldsEditOut:
        """
        客户 / 地址分区编辑：

        - 已履约或处于锁定状态 → 409 order_not_editable
        - 写 manual_edit 事件（changed_fields: {old, new}）+ ORDER_SAVE
        """
        out = await run_order_action(
            session,
            event_type="ORDER_SAVE",
            order_id=order_id,
            actor=admin.email,
            call=lambda: OrderEditService.edit_order_fields(
                session,
                order_id=order_id,
                section=payload.section,
                changes=payload.changes,
                expected_version=payload.expected_version,
                actor=admin.email,
            ),
        )
        return FieldsEditOut.model_validate(out)

    @router.patch("/{order_id}/items/{item_id}", response_model=ItemEditOut)
    async def update_item_quantity(
        order_id: int,
        item_id: int,
        payload: ItemQuantityIn,
        session: AsyncSession = Depends(get_session),
        admin: AdminActor = Depends(get_current_admin),
    ) -> ItemEditOut:
        out = await run_order_action(
            session,
            event_type="ORDER_ITEM_UPDATE",
            order_id=order_id,
            actor=admin.email,
            call=lambda: OrderEditService.update_item_quantity(
                session,
                order_id=order_id,
                item_id=item_id,
                quantity=payload.quantity,
                expected_version=payload.expected_version,
                actor=admin.email,
            ),
        )
        return ItemEditOut.model_validate(out)

    @router.delete("/{order_id}/items/{item_id}", response_model=ItemEditOut)
    async def delete_item(
        order_id: int,
        item_id: int,
        payload: VersionedIn,
        session: AsyncSession = Depends(get_session),
        admin: AdminActor = Depends(get_current_admin),
    ) -> ItemEditOut:
        out = await run_order_action(
            session,
            event_type="ORDER_ITEM_DELETE",
            order_id=order_id,
            actor=admin.email,
            call=lambda: OrderEditService.delete_item(
                session,
                order_id=order_id,
                item_id=item_id,
                expected_version=payload.expected_version,
                actor=admin.email,
            ),
        )
        return ItemEditOut.model_validate(out)
