# app/api/routers/orders_routes_query.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_admin, get_session
from app.api.errors import raise_for_domain_error
from app.models.order_event import OrderEvent
from app.models.order_item import OrderItem
from app.schemas.order import OrderDetailOut, OrderEventOut, OrderItemOut, OrderOut
from app.services.order_errors import OrderNotFound
from app.services.order_versioning import is_order_editable, load_order


def register(router: APIRouter) -> None:
    @router.get(
        "/{order_id}",
        response_model=OrderDetailOut,
        dependencies=[Depends(get_current_admin)],
    )
    async def get_order_detail(order_id: int, session: AsyncSession = Depends(get_session)) -> OrderDetailOut:
        """订单详情：订单 + 实时明细 + 订单事件（新 → 旧）。version 供后续条件更新使用。"""
        try:
            order = await load_order(session, order_id)
        except OrderNotFound as e:
            raise_for_domain_error(e)

        items = (
            await session.execute(select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.id))
        ).scalars().all()
        events = (
            await session.execute(
                select(OrderEvent)
                .where(OrderEvent.order_id == order_id)
                .order_by(OrderEvent.created_at.desc(), OrderEvent.id.desc())
            )
        ).scalars().all()

        out = OrderOut.model_validate(order).model_copy(update={"editable": is_order_editable(order)})
        return OrderDetailOut(
            order=out,
            items=[OrderItemOut.model_validate(i) for i in items],
            events=[OrderEventOut.model_validate(ev) for ev in events],
        )
