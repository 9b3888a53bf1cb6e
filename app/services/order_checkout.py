# app/services/order_checkout.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import OrderStatus, SystemEntityType
from app.models.order import Order
from app.models.order_item import OrderItem
from app.schemas.events import OrderCreated
from app.services.audit_writer import AuditEventWriter
from app.services.order_errors import OrderBadInput
from app.services.order_versioning import money
from app.services.system_event_service import SystemEventService

logger = logging.getLogger("codops.checkout")

PUBLIC_ORDER_PREFIX = "CO"


def public_order_number_for(order_id: int) -> str:
    return f"{PUBLIC_ORDER_PREFIX}{int(order_id):06d}"


@dataclass
class CheckoutLine:
    sku: str
    title: str
    quantity: int
    unit_price: Decimal
    image_url: Optional[str] = None


class CheckoutService:
    """
    货到付款下单：

    - 明细金额由请求给出的单价 × 数量计算
    - 先以临时号落库拿到 id，再按 id 分配 public_order_number
    - 写 created 订单事件 + ORDER_CREATE system event
    """

    @staticmethod
    async def create_cod_order(
        session: AsyncSession,
        *,
        customer_name: str,
        customer_phone: str,
        city: str,
        address_line1: str,
        lines: Sequence[CheckoutLine],
        address_line2: Optional[str] = None,
        customer_email: Optional[str] = None,
        notes_customer: Optional[str] = None,
        shipping_fee: Any = 0,
        discount_total: Any = 0,
        ip_address: Optional[str] = None,
        cookie_id_hash: Optional[str] = None,
        tags: Optional[List[str]] = None,
        source: str = "storefront",
    ) -> Dict[str, Any]:
        problems: List[Dict[str, Any]] = []
        if not lines:
            problems.append({"type": "validation", "path": "items", "reason": "at least one item is required"})
        for idx, ln in enumerate(lines):
            if int(ln.quantity) < 1:
                problems.append({"type": "validation", "path": f"items[{idx}].quantity", "reason": "quantity must be at least 1"})
            if money(ln.unit_price) < 0:
                problems.append({"type": "validation", "path": f"items[{idx}].unit_price", "reason": "unit_price must not be negative"})
        if not customer_name.strip():
            problems.append({"type": "validation", "path": "customer_name", "reason": "customer_name is required"})
        if not customer_phone.strip():
            problems.append({"type": "validation", "path": "customer_phone", "reason": "customer_phone is required"})
        if problems:
            raise OrderBadInput(details=problems)

        line_totals = [money(money(ln.unit_price) * int(ln.quantity)) for ln in lines]
        subtotal = money(sum(line_totals, Decimal("0")))
        shipping = money(shipping_fee)
        discount = money(discount_total)
        total = money(subtotal + shipping - discount)

        order = Order(
            public_order_number=f"tmp-{uuid.uuid4().hex[:24]}",
            status=OrderStatus.NEW.value,
            payment_method="cod",
            customer_name=customer_name.strip(),
            customer_phone=customer_phone.strip(),
            customer_email=customer_email,
            city=city.strip(),
            address_line1=address_line1.strip(),
            address_line2=address_line2,
            raw_city=city.strip(),
            raw_address=address_line1.strip(),
            notes_customer=notes_customer,
            ip_address=ip_address,
            cookie_id_hash=cookie_id_hash,
            tags=list(tags or []),
            subtotal=subtotal,
            shipping_fee=shipping,
            discount_total=discount,
            total=total,
        )
        session.add(order)
        await session.flush()

        order.public_order_number = public_order_number_for(int(order.id))
        for ln, line_total in zip(lines, line_totals):
            session.add(
                OrderItem(
                    order_id=int(order.id),
                    sku=ln.sku,
                    title=ln.title,
                    image_url=ln.image_url,
                    quantity=int(ln.quantity),
                    unit_price=money(ln.unit_price),
                    line_total=line_total,
                )
            )
        await session.flush()

        await AuditEventWriter.order(
            session,
            order_id=int(order.id),
            actor="system",
            event=OrderCreated(public_order_number=order.public_order_number, total=str(total)),
        )
        await SystemEventService.log(
            session,
            entity_type=SystemEntityType.ORDER,
            entity_id=int(order.id),
            event_type="ORDER_CREATE",
            actor_id=source,
            payload={"public_order_number": order.public_order_number, "total": str(total)},
        )
        logger.info("cod order created id=%s no=%s total=%s", order.id, order.public_order_number, total)
        return {
            "order_id": int(order.id),
            "public_order_number": order.public_order_number,
            "subtotal": str(subtotal),
            "total": str(total),
            "version": int(order.version),
        }
