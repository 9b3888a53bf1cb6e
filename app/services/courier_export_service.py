# app/services/courier_export_service.py
"""
快递导出（Onway 模板，22 列 A..V）

动态列（来自订单）优先于模板固定列（courier_export_settings.fixed_columns_map）：
  A 收件人姓名   B 地址（归一化 > 原始 > address_line1）   C 城市（同上）
  E 电话         G 各明细数量（逗号分隔）                   H 订单号
  I 各明细 SKU   K 订单总额                                 O 备注（客户备注 | 风险 | 内部备注）
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from io import StringIO
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.courier_export_setting import CourierExportSetting
from app.models.enums import OrderStatus, RiskLevel, SystemEntityType
from app.models.order import Order
from app.models.order_item import OrderItem
from app.schemas.events import CourierExported
from app.services.audit_writer import AuditEventWriter
from app.services.order_versioning import money
from app.services.system_event_service import SystemEventService
from app.utils.time import utcnow

logger = logging.getLogger("codops.courier_export")

COLUMNS = [chr(c) for c in range(ord("A"), ord("V") + 1)]

COLUMN_HEADERS: Dict[str, str] = {
    "A": "Shipping First Name",
    "B": "Shipping Address 1 & 2",
    "C": "Shipping City",
    "D": "Additional Location",
    "E": "Shipping Address Phone",
    "F": "Weight",
    "G": "Order Item Quantity",
    "H": "Order Number",
    "I": "SKU",
    "J": "Additional Service",
    "K": "Total Price Presentment Amount",
    "L": "Recipient Pays Services And Shipping",
    "M": "Terminal",
    "N": "SPO",
    "O": "Note",
    "P": "Sender Name",
    "Q": "Sender Address",
    "R": "Sender City",
    "S": "Sender Phone",
    "T": "Sender Company",
    "U": "Service Level",
    "V": "Type",
}


@dataclass
class ExportTemplate:
    include_headers: bool = True
    fixed_columns_map: Optional[Dict[str, Any]] = None


def _fmt_total(value: Any) -> str:
    # 12.50 -> "12.5"，12.00 -> "12"
    return format(money(value).normalize(), "f")


def build_notes(order: Order) -> str:
    notes: List[str] = []
    if order.notes_customer:
        notes.append(order.notes_customer)
    level = str(order.risk_level or RiskLevel.LOW.value)
    if level != RiskLevel.LOW.value:
        notes.append(f"RISK:{level.upper()} {', '.join(str(r) for r in (order.risk_reasons or []))}".rstrip())
    if order.internal_note:
        notes.append(order.internal_note)
    return " | ".join(notes)


def build_row(order: Order, items: Sequence[OrderItem], fixed: Mapping[str, Any]) -> List[str]:
    dynamic = {
        "A": order.customer_name or "",
        "B": order.normalized_address or order.raw_address or order.address_line1 or "",
        "C": order.normalized_city or order.raw_city or order.city or "",
        "E": order.customer_phone or "",
        "G": ",".join(str(int(i.quantity)) for i in items),
        "H": str(order.public_order_number),
        "I": ",".join(i.sku for i in items),
        "K": _fmt_total(order.total),
        "O": build_notes(order),
    }
    row: List[str] = []
    for col in COLUMNS:
        if col in dynamic:
            row.append(dynamic[col])
        elif fixed.get(col) is not None:
            row.append(str(fixed[col]))
        else:
            row.append("")
    return row


def render_csv(
    orders: Sequence[Order],
    items_by_order: Mapping[int, Sequence[OrderItem]],
    template: ExportTemplate,
) -> str:
    buf = StringIO()
    writer = csv.writer(buf)
    if template.include_headers:
        writer.writerow([COLUMN_HEADERS.get(c, c) for c in COLUMNS])
    fixed = dict(template.fixed_columns_map or {})
    for o in orders:
        writer.writerow(build_row(o, items_by_order.get(int(o.id), []), fixed))
    return buf.getvalue()


async def load_active_template(session: AsyncSession) -> ExportTemplate:
    row = (
        await session.execute(
            select(CourierExportSetting)
            .where(CourierExportSetting.is_active.is_(True))
            .order_by(CourierExportSetting.id)
            .limit(1)
        )
    ).scalar_one_or_none()
    if row is None:
        return ExportTemplate()
    return ExportTemplate(include_headers=bool(row.include_headers), fixed_columns_map=dict(row.fixed_columns_map or {}))


async def load_items_by_order(session: AsyncSession, order_ids: Sequence[int]) -> Dict[int, List[OrderItem]]:
    out: Dict[int, List[OrderItem]] = {int(i): [] for i in order_ids}
    if not order_ids:
        return out
    items = (
        await session.execute(
            select(OrderItem).where(OrderItem.order_id.in_(list(order_ids))).order_by(OrderItem.order_id, OrderItem.id)
        )
    ).scalars().all()
    for it in items:
        out[int(it.order_id)].append(it)
    return out


async def fetch_export_eligible_orders(session: AsyncSession) -> List[Order]:
    return list(
        (
            await session.execute(
                select(Order)
                .where(
                    Order.is_confirmed.is_(True),
                    Order.is_fulfilled.is_(False),
                    Order.status == OrderStatus.CONFIRMED.value,
                    Order.review_required.is_(False),
                )
                .order_by(Order.created_at.asc(), Order.id.asc())
            )
        ).scalars().all()
    )


class CourierExportService:
    @staticmethod
    async def batch_csv(session: AsyncSession, *, orders: Sequence[Order]) -> str:
        """批次维度导出：批次内订单按公开订单号排序。"""
        ordered = sorted(orders, key=lambda o: str(o.public_order_number))
        template = await load_active_template(session)
        items = await load_items_by_order(session, [int(o.id) for o in ordered])
        return render_csv(ordered, items, template)

    @staticmethod
    async def preview(session: AsyncSession) -> Dict[str, Any]:
        orders = await fetch_export_eligible_orders(session)
        total = sum((money(o.total) for o in orders), Decimal("0.00"))
        return {
            "count": len(orders),
            "earliest": orders[0].created_at if orders else None,
            "latest": orders[-1].created_at if orders else None,
            "total_sum": str(money(total)),
        }

    @staticmethod
    async def download(session: AsyncSession, *, actor: str) -> Dict[str, Any]:
        """全局导出：生成 CSV，并逐单写 courier_export 事件 + 一条 COURIER_EXPORT_CREATE。"""
        orders = await fetch_export_eligible_orders(session)
        template = await load_active_template(session)
        items = await load_items_by_order(session, [int(o.id) for o in orders])
        content = render_csv(orders, items, template)

        exported_at: datetime = utcnow()
        export_ref = exported_at.strftime("%Y%m%d%H%M%S")
        for o in orders:
            await AuditEventWriter.order(
                session,
                order_id=int(o.id),
                actor=actor,
                event=CourierExported(exported_at=exported_at, order_count=len(orders)),
            )
        event_id = await SystemEventService.log(
            session,
            entity_type=SystemEntityType.EXPORT_BATCH,
            entity_id=export_ref,
            event_type="COURIER_EXPORT_CREATE",
            actor_id=actor,
            payload={"order_count": len(orders)},
        )
        logger.info("courier export created ref=%s orders=%s", export_ref, len(orders))
        return {
            "content": content,
            "order_count": len(orders),
            "export_ref": export_ref,
            "event_id": event_id,
            "filename": f"courier_export_{exported_at.strftime('%Y-%m-%d')}.csv",
        }
