# app/services/order_versioning.py
"""
订单乐观并发写入

所有后台对 orders 的写操作都走 versioned_order_update：
  UPDATE orders SET ..., version = :expected + 1
  WHERE id = :id AND version = :expected

影响 0 行 => 别人先改了（或订单不存在），直接报错，不做合并。
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Mapping

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import LOCKED_ORDER_STATUSES
from app.models.order import Order
from app.models.order_item import OrderItem
from app.services.order_errors import OrderNotEditableError, OrderNotFound, OrderVersionConflict

_CENT = Decimal("0.01")


def money(value: Any) -> Decimal:
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def is_order_editable(order: Order) -> bool:
    return (not bool(order.is_fulfilled)) and str(order.status) not in LOCKED_ORDER_STATUSES


def ensure_order_editable(order: Order) -> None:
    if not is_order_editable(order):
        raise OrderNotEditableError(
            order_id=int(order.id), status=str(order.status), is_fulfilled=bool(order.is_fulfilled)
        )


async def load_order(session: AsyncSession, order_id: int) -> Order:
    order = (await session.execute(select(Order).where(Order.id == int(order_id)))).scalar_one_or_none()
    if order is None:
        raise OrderNotFound(f"order not found: {order_id}")
    return order


async def versioned_order_update(
    session: AsyncSession,
    *,
    order_id: int,
    expected_version: int,
    values: Mapping[str, Any],
) -> int:
    """按版本条件更新订单；成功返回新版本号。"""
    new_version = int(expected_version) + 1
    stmt = (
        update(Order)
        .where(Order.id == int(order_id), Order.version == int(expected_version))
        .values(**dict(values), version=new_version)
        .returning(Order.id)
        .execution_options(synchronize_session="fetch")
    )
    updated = (await session.execute(stmt)).scalars().all()
    if len(updated) == 1:
        return new_version

    exists = (await session.execute(select(Order.id).where(Order.id == int(order_id)))).scalar_one_or_none()
    if exists is None:
        raise OrderNotFound(f"order not found: {order_id}")
    raise OrderVersionConflict(order_id=int(order_id), expected_version=int(expected_version))


async def recompute_order_totals(session: AsyncSession, *, order_id: int) -> Dict[str, Decimal]:
    """
    以当前明细行重算金额（不落库，返回 values 交给 versioned_order_update）：

      subtotal = sum(order_items.line_total)
      total    = subtotal + shipping_fee - discount_total
    """
    await session.flush()
    subtotal_raw = (
        await session.execute(
            select(func.coalesce(func.sum(OrderItem.line_total), 0)).where(OrderItem.order_id == int(order_id))
        )
    ).scalar_one()
    row = (
        await session.execute(
            select(Order.shipping_fee, Order.discount_total).where(Order.id == int(order_id))
        )
    ).one_or_none()
    if row is None:
        raise OrderNotFound(f"order not found: {order_id}")

    subtotal = money(subtotal_raw)
    total = money(subtotal + money(row.shipping_fee) - money(row.discount_total))
    return {"subtotal": subtotal, "total": total}
