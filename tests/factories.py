# tests/factories.py
from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.courier_export_setting import CourierExportSetting
from app.models.enums import OrderStatus
from app.models.order import Order
from app.models.order_item import OrderItem
from app.services.order_checkout import public_order_number_for

TEST_ADMIN_EMAIL = "ops@example.com"
TEST_ADMIN_PASSWORD = "correct-horse-battery"

# (sku, quantity, unit_price, title)
ItemSpec = Tuple[str, int, str, str]

DEFAULT_ITEMS: Sequence[ItemSpec] = (("1001-CAT", 1, "10.00", "Cat Food"), ("2002-DOG", 2, "5.50", "Dog Treats"))


def _money(v: Any) -> Decimal:
    return Decimal(str(v)).quantize(Decimal("0.01"))


async def make_order(
    session: AsyncSession,
    *,
    status: str = OrderStatus.CONFIRMED.value,
    is_confirmed: bool = True,
    is_fulfilled: bool = False,
    review_required: bool = False,
    items: Iterable[ItemSpec] = DEFAULT_ITEMS,
    shipping_fee: str = "3.00",
    discount_total: str = "0.00",
    customer_phone: Optional[str] = None,
    **fields: Any,
) -> Order:
    """落一张订单 + 明细（只 flush）；金额按明细计算，保持 subtotal / total 口径一致。"""
    specs = list(items)
    subtotal = sum((_money(price) * qty for _, qty, price, _ in specs), Decimal("0"))
    order = Order(
        public_order_number=f"tmp-{uuid.uuid4().hex[:20]}",
        status=status,
        is_confirmed=is_confirmed,
        is_fulfilled=is_fulfilled,
        review_required=review_required,
        customer_name=fields.pop("customer_name", "Ana Test"),
        customer_phone=customer_phone or f"06{uuid.uuid4().int % 10**8:08d}",
        city=fields.pop("city", "Belgrade"),
        address_line1=fields.pop("address_line1", "Knez Mihailova 12"),
        subtotal=_money(subtotal),
        shipping_fee=_money(shipping_fee),
        discount_total=_money(discount_total),
        total=_money(subtotal + _money(shipping_fee) - _money(discount_total)),
        **fields,
    )
    session.add(order)
    await session.flush()
    order.public_order_number = public_order_number_for(int(order.id))

    for sku, qty, price, title in specs:
        session.add(
            OrderItem(
                order_id=int(order.id),
                sku=sku,
                title=title,
                quantity=int(qty),
                unit_price=_money(price),
                line_total=_money(_money(price) * int(qty)),
            )
        )
    await session.flush()
    return order


async def make_export_template(
    session: AsyncSession, *, include_headers: bool = True, fixed: Optional[dict] = None
) -> CourierExportSetting:
    row = CourierExportSetting(
        name="onway",
        is_active=True,
        include_headers=include_headers,
        fixed_columns_map=dict(fixed or {"F": "1", "P": "Shop d.o.o.", "U": "standard"}),
    )
    session.add(row)
    await session.flush()
    return row
