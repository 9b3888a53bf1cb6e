# app/services/batch_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.metrics import BATCH_PRINTS, BATCH_TRANSITIONS
from app.models.batch import Batch
from app.models.batch_order import BatchOrder
from app.models.batch_print_job import BatchPrintJob
from app.models.batch_snapshot import BatchOrderItemSnapshot
from app.models.enums import BatchStatus, OrderStatus, PrintType, SystemEntityType
from app.models.order import Order
from app.models.order_item import OrderItem
from app.schemas.events import (
    BatchCreated,
    BatchReleased,
    CourierCsvDownloaded,
    PackingListPrinted,
    PackingSlipsPrinted,
    ReleaseUndone,
    ShippingLabelsGenerated,
    TrackingImported,
    TrackingUpdate,
    UndoRelease,
)
from app.services.audit_writer import AuditEventWriter
from app.services.batch_errors import (
    BatchEligibilityConflictError,
    BatchNotFound,
    BatchStateError,
    BatchValidationError,
    BatchVersionConflict,
    NoEligibleOrdersError,
    OrdersNotInBatchError,
    ReprintConfirmationRequired,
    TrackingConflictError,
    UndoReleaseBlockedError,
)
from app.services.order_errors import OrderVersionConflict
from app.services.system_event_service import SystemEventService
from app.utils.time import utcnow

logger = logging.getLogger("codops.batch")

NO_ELIGIBLE_ORDERS_MESSAGE = "No eligible orders found for batching."


@dataclass
class TrackingRow:
    # order_ref：公开订单号（优先）或内部 id
    order_ref: str
    tracking_number: str


def eligible_orders_clause():
    """建批资格：已确认、未履约、未入批、未放行（merged / canceled 已被 status 条件排除）。"""
    return (
        Order.status == OrderStatus.CONFIRMED.value,
        Order.is_confirmed.is_(True),
        Order.is_fulfilled.is_(False),
        Order.batch_id.is_(None),
        Order.released_at.is_(None),
    )


async def load_batch(session: AsyncSession, batch_id: int) -> Batch:
    batch = (await session.execute(select(Batch).where(Batch.id == int(batch_id)))).scalar_one_or_none()
    if batch is None:
        raise BatchNotFound(f"batch not found: {batch_id}")
    return batch


async def batch_order_ids(session: AsyncSession, batch_id: int) -> List[int]:
    rows = (
        await session.execute(
            select(BatchOrder.order_id).where(BatchOrder.batch_id == int(batch_id)).order_by(BatchOrder.order_id)
        )
    ).scalars().all()
    return [int(x) for x in rows]


class BatchService:
    """
    仓库批次状态机：OPEN → LOCKED → RELEASED（+ 撤销放行 RELEASED → LOCKED）

    约定：
      - 只 flush 不 commit；路由层持有事务，任一步失败整体回滚
      - 批次更新一律以 batches.version 为条件（并发打印 / 放行不会互相覆盖）
      - 订单更新同样 bump orders.version，使后台编辑页的旧版本失效
    """

    # ------------------------------------------------------------------
    # 内部：带版本条件的批次更新
    # ------------------------------------------------------------------

    @staticmethod
    async def _update_batch(session: AsyncSession, batch: Batch, values: Dict[str, Any]) -> int:
        expected = int(batch.version)
        updated = (
            await session.execute(
                update(Batch)
                .where(Batch.id == int(batch.id), Batch.version == expected)
                .values(**values, version=expected + 1)
                .returning(Batch.id)
                .execution_options(synchronize_session="fetch")
            )
        ).scalars().all()
        if len(updated) != 1:
            raise BatchVersionConflict(batch_id=int(batch.id), expected_version=expected)
        return expected + 1

    # ------------------------------------------------------------------
    # 建批
    # ------------------------------------------------------------------

    @staticmethod
    async def create_batch(session: AsyncSession, *, actor: str) -> Dict[str, int]:
        order_ids = [
            int(x)
            for x in (
                await session.execute(
                    select(Order.id).where(*eligible_orders_clause()).order_by(Order.created_at, Order.id)
                )
            ).scalars().all()
        ]
        if not order_ids:
            logger.info("create_batch rejected: no eligible orders actor=%s", actor)
            raise NoEligibleOrdersError(NO_ELIGIBLE_ORDERS_MESSAGE)

        batch = Batch(status=BatchStatus.OPEN.value, created_by=actor)
        session.add(batch)
        await session.flush()
        batch_id = int(batch.id)

        # 条件打标：只打仍未入批 / 未放行的订单；少打一行说明被并发建批抢走了
        stamped = (
            await session.execute(
                update(Order)
                .where(Order.id.in_(order_ids), Order.batch_id.is_(None), Order.released_at.is_(None))
                .values(batch_id=batch_id, version=Order.version + 1)
                .returning(Order.id)
                .execution_options(synchronize_session="fetch")
            )
        ).scalars().all()
        if len(stamped) != len(order_ids):
            logger.warning(
                "create_batch conflict batch_id=%s selected=%s stamped=%s",
                batch_id,
                len(order_ids),
                len(stamped),
            )
            raise BatchEligibilityConflictError(selected=len(order_ids), stamped=len(stamped))

        session.add_all([BatchOrder(batch_id=batch_id, order_id=oid) for oid in order_ids])

        items = (
            await session.execute(
                select(OrderItem).where(OrderItem.order_id.in_(order_ids)).order_by(OrderItem.order_id, OrderItem.id)
            )
        ).scalars().all()
        session.add_all(
            [
                BatchOrderItemSnapshot(
                    batch_id=batch_id,
                    order_id=int(it.order_id),
                    sku=it.sku,
                    product_name=it.title or "",
                    qty=int(it.quantity),
                )
                for it in items
            ]
        )
        await session.flush()

        await AuditEventWriter.batch(
            session, batch_id=batch_id, actor=actor, event=BatchCreated(order_count=len(order_ids))
        )
        BATCH_TRANSITIONS.labels("create").inc()
        logger.info("batch created batch_id=%s orders=%s items=%s", batch_id, len(order_ids), len(items))
        return {"batch_id": batch_id, "order_count": len(order_ids)}

    # ------------------------------------------------------------------
    # 打印（装箱总单 / 装箱单）
    # ------------------------------------------------------------------

    @staticmethod
    async def print_packing_list(
        session: AsyncSession, *, batch_id: int, actor: str, confirm_reprint: bool = False
    ) -> Dict[str, Any]:
        return await BatchService._record_print(
            session,
            batch_id=batch_id,
            actor=actor,
            print_type=PrintType.PACKING_LIST,
            confirm_reprint=confirm_reprint,
        )

    @staticmethod
    async def print_packing_slips(
        session: AsyncSession, *, batch_id: int, actor: str, confirm_reprint: bool = False
    ) -> Dict[str, Any]:
        return await BatchService._record_print(
            session,
            batch_id=batch_id,
            actor=actor,
            print_type=PrintType.PACKING_SLIPS,
            confirm_reprint=confirm_reprint,
        )

    @staticmethod
    async def _record_print(
        session: AsyncSession,
        *,
        batch_id: int,
        actor: str,
        print_type: PrintType,
        confirm_reprint: bool,
    ) -> Dict[str, Any]:
        batch = await load_batch(session, batch_id)
        prefix = print_type.value
        current = int(getattr(batch, f"{prefix}_print_count") or 0)
        if current > 0 and not confirm_reprint:
            raise ReprintConfirmationRequired(print_type=prefix, print_count=current)

        new_count = current + 1
        values: Dict[str, Any] = {
            f"{prefix}_print_count": new_count,
            f"{prefix}_printed_at": utcnow(),
            f"{prefix}_printed_by": actor,
        }
        locked_now = batch.status == BatchStatus.OPEN.value
        if locked_now:
            values["status"] = BatchStatus.LOCKED.value

        await BatchService._update_batch(session, batch, values)

        session.add(BatchPrintJob(batch_id=int(batch.id), print_type=prefix, print_count=new_count, created_by=actor))
        await session.flush()

        event = (
            PackingListPrinted(print_count=new_count)
            if print_type == PrintType.PACKING_LIST
            else PackingSlipsPrinted(print_count=new_count)
        )
        await AuditEventWriter.batch(session, batch_id=int(batch.id), actor=actor, event=event)
        BATCH_PRINTS.labels(prefix).inc()
        if locked_now:
            BATCH_TRANSITIONS.labels("lock").inc()
            logger.info("batch locked batch_id=%s by first %s print", batch.id, prefix)

        # 两类单据都打过 => 自动放行
        both_printed = int(batch.packing_list_print_count) > 0 and int(batch.packing_slips_print_count) > 0
        if both_printed and batch.status != BatchStatus.RELEASED.value:
            await BatchService._release(session, batch=batch, actor=actor, trigger="print")

        return {
            "batch_id": int(batch.id),
            "print_type": prefix,
            "print_count": new_count,
            "status": str(batch.status),
            "version": int(batch.version),
        }

    # ------------------------------------------------------------------
    # 放行 / 撤销放行
    # ------------------------------------------------------------------

    @staticmethod
    async def bulk_release_batch(session: AsyncSession, *, batch_id: int, actor: str) -> Dict[str, Any]:
        batch = await load_batch(session, batch_id)
        if batch.status == BatchStatus.RELEASED.value:
            raise BatchStateError("Batch is already released.", current_status=str(batch.status))
        return await BatchService._release(session, batch=batch, actor=actor, trigger="manual")

    @staticmethod
    async def _release(session: AsyncSession, *, batch: Batch, actor: str, trigger: str) -> Dict[str, Any]:
        ids = await batch_order_ids(session, int(batch.id))
        if not ids:
            raise BatchStateError("Cannot release an empty batch.", current_status=str(batch.status))

        now = utcnow()
        await BatchService._update_batch(
            session,
            batch,
            {"status": BatchStatus.RELEASED.value, "released_at": now, "released_by": actor},
        )
        await session.execute(
            update(Order)
            .where(Order.id.in_(ids))
            .values(released_at=now, version=Order.version + 1)
            .execution_options(synchronize_session="fetch")
        )
        await AuditEventWriter.batch(
            session,
            batch_id=int(batch.id),
            actor=actor,
            event=BatchReleased(order_count=len(ids), trigger=trigger),
        )
        BATCH_TRANSITIONS.labels("release").inc()
        logger.info("batch released batch_id=%s orders=%s trigger=%s", batch.id, len(ids), trigger)
        return {"batch_id": int(batch.id), "status": str(batch.status), "order_count": len(ids)}

    @staticmethod
    async def undo_release_batch(
        session: AsyncSession, *, batch_id: int, actor: str, reason: Optional[str]
    ) -> Dict[str, Any]:
        reason_text = (reason or "").strip()
        if not reason_text:
            raise BatchValidationError("A reason is required to undo a release.")

        batch = await load_batch(session, batch_id)
        if batch.status != BatchStatus.RELEASED.value:
            raise BatchStateError("Batch is not released.", current_status=str(batch.status))

        ids = await batch_order_ids(session, int(batch.id))
        tracked = [
            int(x)
            for x in (
                await session.execute(
                    select(Order.id)
                    .where(Order.id.in_(ids), Order.tracking_number.is_not(None), Order.tracking_number != "")
                    .order_by(Order.id)
                )
            ).scalars().all()
        ]
        if tracked:
            logger.warning("undo_release blocked batch_id=%s tracked_orders=%s", batch.id, tracked)
            raise UndoReleaseBlockedError(order_ids=tracked)

        await BatchService._update_batch(
            session,
            batch,
            {"status": BatchStatus.LOCKED.value, "released_at": None, "released_by": None},
        )
        if ids:
            await session.execute(
                update(Order)
                .where(Order.id.in_(ids))
                .values(
                    released_at=None,
                    is_confirmed=False,
                    is_fulfilled=False,
                    review_required=True,
                    version=Order.version + 1,
                )
                .execution_options(synchronize_session="fetch")
            )
            for oid in ids:
                await AuditEventWriter.order(
                    session,
                    order_id=oid,
                    actor=actor,
                    event=ReleaseUndone(batch_id=int(batch.id), reason=reason_text),
                )

        await AuditEventWriter.batch(
            session,
            batch_id=int(batch.id),
            actor=actor,
            event=UndoRelease(reason=reason_text, order_count=len(ids)),
        )
        BATCH_TRANSITIONS.labels("undo_release").inc()
        logger.info("batch release undone batch_id=%s orders=%s", batch.id, len(ids))
        return {"batch_id": int(batch.id), "status": str(batch.status), "order_count": len(ids)}

    # ------------------------------------------------------------------
    # 导出 / 面单 / 运单号导入
    # ------------------------------------------------------------------

    @staticmethod
    async def record_courier_export(
        session: AsyncSession, *, batch_id: int, actor: str, order_count: int
    ) -> Dict[str, Any]:
        batch = await load_batch(session, batch_id)
        new_count = int(batch.export_count or 0) + 1
        await BatchService._update_batch(
            session,
            batch,
            {"export_count": new_count, "exported_at": utcnow(), "exported_by": actor},
        )
        await AuditEventWriter.batch(
            session,
            batch_id=int(batch.id),
            actor=actor,
            event=CourierCsvDownloaded(order_count=int(order_count), export_count=new_count),
        )
        return {"batch_id": int(batch.id), "export_count": new_count}

    @staticmethod
    async def log_shipping_labels_generated(session: AsyncSession, *, batch_id: int, actor: str) -> None:
        batch = await load_batch(session, batch_id)
        ids = await batch_order_ids(session, int(batch.id))
        await AuditEventWriter.batch(
            session,
            batch_id=int(batch.id),
            actor=actor,
            event=ShippingLabelsGenerated(order_count=len(ids)),
        )

    @staticmethod
    async def import_tracking_for_batch(
        session: AsyncSession, *, batch_id: int, actor: str, rows: Sequence[TrackingRow]
    ) -> Dict[str, int]:
        """
        批次内运单号导入：

        - 行必须能匹配到本批次内的订单（公开订单号优先，其次内部 id），否则整单拒绝
        - 已有不同运单号 => 收集全部冲突后整单拒绝（不做部分写入）
        - 运单号相同 => 跳过
        """
        batch = await load_batch(session, batch_id)
        ids = await batch_order_ids(session, int(batch.id))
        orders = (
            (await session.execute(select(Order).where(Order.id.in_(ids)))).scalars().all() if ids else []
        )
        by_number = {str(o.public_order_number): o for o in orders}
        by_id = {str(o.id): o for o in orders}

        resolved: List[tuple[Order, str]] = []
        unknown: List[str] = []
        for r in rows:
            ref = str(r.order_ref).strip().lstrip("#")
            order = by_number.get(ref) or by_id.get(ref)
            if order is None:
                unknown.append(str(r.order_ref))
                continue
            resolved.append((order, str(r.tracking_number).strip()))
        if unknown:
            raise OrdersNotInBatchError(order_refs=unknown)

        conflicts: List[Dict[str, Any]] = []
        to_update: Dict[int, tuple[Order, str]] = {}
        skipped = 0
        for order, incoming in resolved:
            existing = order.tracking_number or None
            if existing and existing != incoming:
                conflicts.append(
                    {
                        "order_id": int(order.id),
                        "public_order_number": order.public_order_number,
                        "existing": existing,
                        "incoming": incoming,
                    }
                )
            elif existing == incoming or not incoming:
                skipped += 1
            else:
                prev = to_update.get(int(order.id))
                if prev is not None and prev[1] != incoming:
                    # 同一文件内同一订单两个不同运单号
                    conflicts.append(
                        {
                            "order_id": int(order.id),
                            "public_order_number": order.public_order_number,
                            "existing": prev[1],
                            "incoming": incoming,
                        }
                    )
                elif prev is not None:
                    skipped += 1
                else:
                    to_update[int(order.id)] = (order, incoming)

        if conflicts:
            logger.warning("tracking import blocked batch_id=%s conflicts=%s", batch.id, len(conflicts))
            raise TrackingConflictError(conflicts=conflicts)

        default_courier = get_settings().DEFAULT_COURIER_NAME
        for oid, (order, incoming) in to_update.items():
            expected = int(order.version)
            courier = order.courier_name or default_courier
            hit = (
                await session.execute(
                    update(Order)
                    .where(Order.id == oid, Order.version == expected)
                    .values(tracking_number=incoming, courier_name=courier, version=expected + 1)
                    .returning(Order.id)
                    .execution_options(synchronize_session="fetch")
                )
            ).scalars().all()
            if len(hit) != 1:
                raise OrderVersionConflict(order_id=oid, expected_version=expected)
            await AuditEventWriter.order(
                session,
                order_id=oid,
                actor=actor,
                event=TrackingUpdate(
                    tracking_number=incoming,
                    courier_name=courier,
                    source="batch_import",
                    batch_id=int(batch.id),
                ),
            )

        updated = len(to_update)
        await AuditEventWriter.batch(
            session,
            batch_id=int(batch.id),
            actor=actor,
            event=TrackingImported(updated=updated, skipped=skipped),
        )
        await SystemEventService.log(
            session,
            entity_type=SystemEntityType.BATCH,
            entity_id=int(batch.id),
            event_type="COURIER_IMPORT_APPLY",
            actor_id=actor,
            payload={"updated": updated, "skipped": skipped, "rows": len(rows)},
        )
        logger.info("tracking imported batch_id=%s updated=%s skipped=%s", batch.id, updated, skipped)
        return {"updated": updated, "skipped": skipped}
