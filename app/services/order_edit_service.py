# app/services/order_edit_service.py
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import SystemEntityType
from app.models.order_item import OrderItem
from app.schemas.events import FieldChange, ItemDeleted, ItemQuantityChange, ManualEdit
from app.services.audit_writer import AuditEventWriter
from app.services.order_errors import OrderBadInput, OrderItemNotFound, OrderVersionConflict
from app.services.order_versioning import (
    ensure_order_editable,
    load_order,
    money,
    recompute_order_totals,
    versioned_order_update,
)
from app.services.system_event_service import SystemEventService

logger = logging.getLogger("codops.order_edit")

# 可编辑字段按区块划分（区块 = 订单详情页上的一个编辑卡片）
EDITABLE_SECTIONS: Dict[str, tuple[str, ...]] = {
    "customer": ("customer_name", "customer_phone", "notes_customer", "internal_note"),
    "address": (
        "city",
        "raw_city",
        "normalized_city",
        "address_line1",
        "address_line2",
        "raw_address",
        "normalized_address",
    ),
}

_REQUIRED_FIELDS = frozenset({"customer_name", "customer_phone"})


def _str_or_none(v: Any) -> str | None:
    if v is None:
        return None
    return str(v)


class OrderEditService:
    """
    订单明细 / 核心字段编辑（带护栏）

    每个操作：
      1) 可编辑校验（未履约且不在锁定状态）
      2) 改明细 / 字段
      3) 以实时明细重算 subtotal / total
      4) version 条件更新（冲突即失败，整个事务回滚）
      5) 写 system_events + order_events
    """

    @staticmethod
    async def _load_for_edit(session: AsyncSession, *, order_id: int, expected_version: int):
        order = await load_order(session, order_id)
        ensure_order_editable(order)
        if int(order.version) != int(expected_version):
            raise OrderVersionConflict(order_id=int(order_id), expected_version=int(expected_version))
        return order

    @staticmethod
    async def _load_item(session: AsyncSession, *, order_id: int, item_id: int) -> OrderItem:
        item = (
            await session.execute(
                select(OrderItem).where(OrderItem.id == int(item_id), OrderItem.order_id == int(order_id))
            )
        ).scalar_one_or_none()
        if item is None:
            raise OrderItemNotFound(f"order item not found: order={order_id} item={item_id}")
        return item

    @staticmethod
    async def update_item_quantity(
        session: AsyncSession,
        *,
        order_id: int,
        item_id: int,
        quantity: int,
        expected_version: int,
        actor: str,
    ) -> Dict[str, Any]:
        if int(quantity) < 1:
            raise OrderBadInput(
                details=[{"type": "validation", "path": "quantity", "reason": "quantity must be at least 1"}]
            )

        await OrderEditService._load_for_edit(session, order_id=order_id, expected_version=expected_version)
        item = await OrderEditService._load_item(session, order_id=order_id, item_id=item_id)

        old_qty = int(item.quantity)
        item.quantity = int(quantity)
        item.line_total = money(money(item.unit_price) * int(quantity))

        totals = await recompute_order_totals(session, order_id=order_id)
        new_version = await versioned_order_update(
            session, order_id=order_id, expected_version=expected_version, values=totals
        )

        await AuditEventWriter.order(
            session,
            order_id=order_id,
            actor=actor,
            event=ItemQuantityChange(item_id=int(item.id), sku=item.sku, from_qty=old_qty, to_qty=int(quantity)),
        )
        await SystemEventService.log(
            session,
            entity_type=SystemEntityType.ORDER,
            entity_id=order_id,
            event_type="ORDER_ITEM_UPDATE",
            actor_id=actor,
            payload={"item_id": int(item.id), "sku": item.sku, "from": old_qty, "to": int(quantity)},
        )
        logger.info("order item qty order_id=%s item_id=%s %s->%s", order_id, item_id, old_qty, quantity)
        return {"order_id": int(order_id), "version": new_version, **{k: str(v) for k, v in totals.items()}}

    @staticmethod
    async def delete_item(
        session: AsyncSession,
        *,
        order_id: int,
        item_id: int,
        expected_version: int,
        actor: str,
    ) -> Dict[str, Any]:
        await OrderEditService._load_for_edit(session, order_id=order_id, expected_version=expected_version)
        item = await OrderEditService._load_item(session, order_id=order_id, item_id=item_id)

        removed = {
            "item_id": int(item.id),
            "sku": item.sku,
            "quantity": int(item.quantity),
            "line_total": str(money(item.line_total)),
        }
        await session.delete(item)

        totals = await recompute_order_totals(session, order_id=order_id)
        new_version = await versioned_order_update(
            session, order_id=order_id, expected_version=expected_version, values=totals
        )

        await AuditEventWriter.order(session, order_id=order_id, actor=actor, event=ItemDeleted(**removed))
        await SystemEventService.log(
            session,
            entity_type=SystemEntityType.ORDER,
            entity_id=order_id,
            event_type="ORDER_ITEM_DELETE",
            actor_id=actor,
            payload=removed,
        )
        logger.info("order item deleted order_id=%s item_id=%s", order_id, item_id)
        return {"order_id": int(order_id), "version": new_version, **{k: str(v) for k, v in totals.items()}}

    @staticmethod
    async def edit_order_fields(
        session: AsyncSession,
        *,
        order_id: int,
        section: str,
        changes: Mapping[str, Any],
        expected_version: int,
        actor: str,
    ) -> Dict[str, Any]:
        allowed = EDITABLE_SECTIONS.get(section)
        if allowed is None:
            raise OrderBadInput(
                details=[{"type": "validation", "path": "section", "reason": f"unknown section: {section}"}]
            )
        bad = sorted(k for k in changes if k not in allowed)
        if bad:
            raise OrderBadInput(
                details=[
                    {"type": "validation", "path": f"changes.{k}", "reason": f"field not editable in {section}"}
                    for k in bad
                ]
            )
        for k in sorted(_REQUIRED_FIELDS & set(changes)):
            if not str(changes[k] or "").strip():
                raise OrderBadInput(
                    details=[{"type": "validation", "path": f"changes.{k}", "reason": f"{k} must not be empty"}]
                )

        order = await OrderEditService._load_for_edit(
            session, order_id=order_id, expected_version=expected_version
        )

        changed: Dict[str, FieldChange] = {}
        values: Dict[str, Any] = {}
        for field_name, new_value in changes.items():
            old_value = getattr(order, field_name)
            if _str_or_none(old_value) == _str_or_none(new_value):
                continue
            values[field_name] = new_value
            changed[field_name] = FieldChange(old=_str_or_none(old_value), new=_str_or_none(new_value))

        if not values:
            return {"order_id": int(order_id), "version": int(order.version), "changed_fields": []}

        totals = await recompute_order_totals(session, order_id=order_id)
        values.update(totals)
        new_version = await versioned_order_update(
            session, order_id=order_id, expected_version=expected_version, values=values
        )

        await AuditEventWriter.order(
            session,
            order_id=order_id,
            actor=actor,
            event=ManualEdit(section=section, changed_fields=changed),
        )
        await SystemEventService.log(
            session,
            entity_type=SystemEntityType.ORDER,
            entity_id=order_id,
            event_type="ORDER_SAVE",
            actor_id=actor,
            payload={"section": section, "fields": sorted(changed)},
        )
        return {"order_id": int(order_id), "version": new_version, "changed_fields": sorted(changed)}
