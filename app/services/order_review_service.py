# app/services/order_review_service.py
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import OrderStatus, SystemEntityType, TERMINAL_ORDER_STATUSES
from app.models.order import Order
from app.schemas.events import (
    Assignment,
    FulfillmentToggle,
    NoteUpdated,
    OrderConfirmed,
    OrderEventVariant,
    StatusChange,
    TrackingUpdate,
)
from app.services.audit_writer import AuditEventWriter
from app.services.idempotency_service import IdempotencyService
from app.services.order_errors import OrderBadInput, OrderStateError
from app.services.order_versioning import load_order, versioned_order_update
from app.services.system_event_service import SystemEventService

logger = logging.getLogger("codops.order_review")

# 已出库 / 终态订单不再允许审核类动作
_REVIEW_CLOSED_STATUSES = frozenset(TERMINAL_ORDER_STATUSES | {OrderStatus.SHIPPED})

_ADMIN_FIELDS = ("status", "assigned_to", "internal_note", "courier_name", "tracking_number", "tracking_url")


def _blank_to_none(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def _ensure_reviewable(order: Order, action: str) -> None:
    if str(order.status) in _REVIEW_CLOSED_STATUSES:
        raise OrderStateError(f"Cannot {action} an order in status '{order.status}'.")


def _ensure_not_batched(order: Order, action: str) -> None:
    # 已入批（含未放行）的订单在快照 / 装箱单里，先撤出批次再操作
    if order.released_at is not None:
        raise OrderStateError(f"Cannot {action} an order that was already released to the warehouse.")
    if order.batch_id is not None:
        raise OrderStateError(f"Cannot {action} an order that is in warehouse batch {order.batch_id}.")


class OrderReviewService:
    """
    订单审核动作（确认 / 挂起 / 取消 / 改状态 / 履约开关 / 后台字段保存）

    - 全部走 version 条件更新
    - 带 idempotency_key：同 key 重放直接返回首次结果，不写任何事件
    - 成功写 SUCCESS system event；失败由路由层回滚后写 FAILED
    """

    @staticmethod
    async def _run_idempotent(
        session: AsyncSession,
        *,
        idempotency_key: str,
        action_type: str,
        order_id: int,
        body: Callable[[], Awaitable[Dict[str, Any]]],
    ) -> Dict[str, Any]:
        stored = await IdempotencyService.check(session, idempotency_key)
        if stored is not None:
            logger.info("idempotent replay key=%s action=%s order_id=%s", idempotency_key, action_type, order_id)
            return stored

        result = await body()
        await IdempotencyService.record(
            session, key=idempotency_key, action_type=action_type, entity_id=order_id, result=result
        )
        return result

    @staticmethod
    async def _apply(
        session: AsyncSession,
        *,
        order: Order,
        expected_version: int,
        values: Dict[str, Any],
        actor: str,
        system_event_type: str,
        order_events: List[OrderEventVariant],
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        new_version = await versioned_order_update(
            session, order_id=int(order.id), expected_version=expected_version, values=values
        )
        for ev in order_events:
            await AuditEventWriter.order(session, order_id=int(order.id), actor=actor, event=ev)
        event_id = await SystemEventService.log(
            session,
            entity_type=SystemEntityType.ORDER,
            entity_id=int(order.id),
            event_type=system_event_type,
            actor_id=actor,
            payload={**payload, "version": new_version},
        )
        return {
            "order_id": int(order.id),
            "version": new_version,
            "status": str(values.get("status", order.status)),
            "event_id": event_id,
        }

    @staticmethod
    async def confirm_order(
        session: AsyncSession,
        *,
        order_id: int,
        expected_version: int,
        actor: str,
        idempotency_key: str,
    ) -> Dict[str, Any]:
        async def body() -> Dict[str, Any]:
            order = await load_order(session, order_id)
            _ensure_reviewable(order, "confirm")
            return await OrderReviewService._apply(
                session,
                order=order,
                expected_version=expected_version,
                values={"status": OrderStatus.CONFIRMED.value, "is_confirmed": True, "review_required": False},
                actor=actor,
                system_event_type="ORDER_CONFIRM",
                order_events=[OrderConfirmed(version=int(expected_version) + 1)],
                payload={"from": str(order.status)},
            )

        return await OrderReviewService._run_idempotent(
            session, idempotency_key=idempotency_key, action_type="ORDER_CONFIRM", order_id=order_id, body=body
        )

    @staticmethod
    async def hold_order(
        session: AsyncSession,
        *,
        order_id: int,
        expected_version: int,
        actor: str,
        idempotency_key: str,
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        async def body() -> Dict[str, Any]:
            order = await load_order(session, order_id)
            _ensure_reviewable(order, "hold")
            events: List[OrderEventVariant] = [
                StatusChange(from_status=str(order.status), to_status=OrderStatus.ON_HOLD.value)
            ]
            if _blank_to_none(reason):
                events.append(NoteUpdated(note=_blank_to_none(reason)))
            return await OrderReviewService._apply(
                session,
                order=order,
                expected_version=expected_version,
                values={"status": OrderStatus.ON_HOLD.value, "is_confirmed": False, "review_required": True},
                actor=actor,
                system_event_type="ORDER_HOLD",
                order_events=events,
                payload={"from": str(order.status), "reason": _blank_to_none(reason)},
            )

        return await OrderReviewService._run_idempotent(
            session, idempotency_key=idempotency_key, action_type="ORDER_HOLD", order_id=order_id, body=body
        )

    @staticmethod
    async def cancel_order(
        session: AsyncSession,
        *,
        order_id: int,
        expected_version: int,
        actor: str,
        idempotency_key: str,
    ) -> Dict[str, Any]:
        async def body() -> Dict[str, Any]:
            order = await load_order(session, order_id)
            _ensure_reviewable(order, "cancel")
            _ensure_not_batched(order, "cancel")
            return await OrderReviewService._apply(
                session,
                order=order,
                expected_version=expected_version,
                values={"status": OrderStatus.CANCELED.value, "is_confirmed": False},
                actor=actor,
                system_event_type="ORDER_CANCEL",
                order_events=[StatusChange(from_status=str(order.status), to_status=OrderStatus.CANCELED.value)],
                payload={"from": str(order.status)},
            )

        return await OrderReviewService._run_idempotent(
            session, idempotency_key=idempotency_key, action_type="ORDER_CANCEL", order_id=order_id, body=body
        )

    @staticmethod
    async def set_order_status(
        session: AsyncSession,
        *,
        order_id: int,
        status: str,
        expected_version: int,
        actor: str,
        idempotency_key: str,
    ) -> Dict[str, Any]:
        try:
            target = OrderStatus(status)
        except ValueError:
            raise OrderBadInput(
                details=[{"type": "validation", "path": "status", "reason": f"unknown status: {status}"}]
            ) from None

        async def body() -> Dict[str, Any]:
            order = await load_order(session, order_id)
            if target in (OrderStatus.CANCELED, OrderStatus.MERGED):
                _ensure_not_batched(order, f"set status '{target.value}' on")
            values: Dict[str, Any] = {"status": target.value}
            if target == OrderStatus.CONFIRMED:
                values["is_confirmed"] = True
            return await OrderReviewService._apply(
                session,
                order=order,
                expected_version=expected_version,
                values=values,
                actor=actor,
                system_event_type="ORDER_STATUS_SET",
                order_events=[StatusChange(from_status=str(order.status), to_status=target.value)],
                payload={"from": str(order.status), "to": target.value},
            )

        return await OrderReviewService._run_idempotent(
            session, idempotency_key=idempotency_key, action_type="ORDER_STATUS_SET", order_id=order_id, body=body
        )

    @staticmethod
    async def toggle_fulfilled(
        session: AsyncSession,
        *,
        order_id: int,
        expected_version: int,
        actor: str,
        idempotency_key: str,
    ) -> Dict[str, Any]:
        async def body() -> Dict[str, Any]:
            order = await load_order(session, order_id)
            flag = not bool(order.is_fulfilled)
            result = await OrderReviewService._apply(
                session,
                order=order,
                expected_version=expected_version,
                values={"is_fulfilled": flag},
                actor=actor,
                system_event_type="ORDER_FULFILL_TOGGLE",
                order_events=[FulfillmentToggle(is_fulfilled=flag)],
                payload={"is_fulfilled": flag},
            )
            result["is_fulfilled"] = flag
            return result

        return await OrderReviewService._run_idempotent(
            session,
            idempotency_key=idempotency_key,
            action_type="ORDER_FULFILL_TOGGLE",
            order_id=order_id,
            body=body,
        )

    @staticmethod
    async def save_admin_fields(
        session: AsyncSession,
        *,
        order_id: int,
        changes: Dict[str, Any],
        expected_version: int,
        actor: str,
    ) -> Dict[str, Any]:
        """后台“保存”按钮：状态 / 指派 / 内部备注 / 快递 / 运单号，只写有变化的字段。"""
        unknown = sorted(k for k in changes if k not in _ADMIN_FIELDS)
        if unknown:
            raise OrderBadInput(
                details=[{"type": "validation", "path": f"changes.{k}", "reason": "field not editable"} for k in unknown]
            )
        if "status" in changes:
            try:
                OrderStatus(str(changes["status"]))
            except ValueError:
                raise OrderBadInput(
                    details=[{"type": "validation", "path": "status", "reason": f"unknown status: {changes['status']}"}]
                ) from None

        order = await load_order(session, order_id)

        values: Dict[str, Any] = {}
        events: List[OrderEventVariant] = []

        new_status = changes.get("status")
        if new_status is not None and str(new_status) != str(order.status):
            if str(new_status) in (OrderStatus.CANCELED.value, OrderStatus.MERGED.value):
                _ensure_not_batched(order, f"set status '{new_status}' on")
            values["status"] = str(new_status)
            events.append(StatusChange(from_status=str(order.status), to_status=str(new_status)))

        if "assigned_to" in changes and _blank_to_none(changes["assigned_to"]) != order.assigned_to:
            values["assigned_to"] = _blank_to_none(changes["assigned_to"])
            events.append(Assignment(assigned_to=values["assigned_to"]))

        if "internal_note" in changes and _blank_to_none(changes["internal_note"]) != order.internal_note:
            values["internal_note"] = _blank_to_none(changes["internal_note"])
            events.append(NoteUpdated(note=values["internal_note"]))

        if "courier_name" in changes and _blank_to_none(changes["courier_name"]) != order.courier_name:
            values["courier_name"] = _blank_to_none(changes["courier_name"])

        if "tracking_url" in changes and _blank_to_none(changes["tracking_url"]) != order.tracking_url:
            values["tracking_url"] = _blank_to_none(changes["tracking_url"])

        if "tracking_number" in changes and _blank_to_none(changes["tracking_number"]) != order.tracking_number:
            values["tracking_number"] = _blank_to_none(changes["tracking_number"])
            events.append(
                TrackingUpdate(
                    tracking_number=values["tracking_number"],
                    courier_name=values.get("courier_name", order.courier_name),
                    source="manual",
                )
            )

        if not values:
            return {"order_id": int(order.id), "version": int(order.version), "status": str(order.status), "changed": []}

        result = await OrderReviewService._apply(
            session,
            order=order,
            expected_version=expected_version,
            values=values,
            actor=actor,
            system_event_type="ORDER_SAVE",
            order_events=events,
            payload={"fields": sorted(values)},
        )
        result["changed"] = sorted(values)
        return result
