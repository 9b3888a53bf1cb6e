# app/services/batch_documents.py
"""
批次单据（HTML）：装箱总单 / 装箱单

两者都只读建批时的快照，不读实时明细。
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from jinja2 import Environment, PackageLoader, select_autoescape

from app.metrics import DOC_RENDER_LAT
from app.models.batch import Batch
from app.models.batch_snapshot import BatchOrderItemSnapshot
from app.models.order import Order

_LEADING_INT = re.compile(r"^\s*(\d+)")

_env = Environment(
    loader=PackageLoader("app", "templates"),
    autoescape=select_autoescape(enabled_extensions=["html", "htm", "xml"], default_for_string=True),
    trim_blocks=True,
    lstrip_blocks=True,
)


@dataclass
class SkuGroup:
    sku: str
    product_name: str
    # (公开订单号, 数量)
    chips: List[Tuple[str, int]] = field(default_factory=list)
    total_qty: int = 0


@dataclass
class SlipLine:
    sku: str
    product_name: str
    qty: int


@dataclass
class PackingSlip:
    public_order_number: str
    customer_name: str
    customer_phone: str
    address: str
    tracking_number: Optional[str]
    lines: List[SlipLine] = field(default_factory=list)


def sku_sort_key(sku: str) -> Tuple[int, int, str]:
    """按 SKU 前导整数排序，无前导数字的排最后，同号再按 SKU 字符串。"""
    m = _LEADING_INT.match(sku or "")
    if m:
        return (0, int(m.group(1)), sku)
    return (1, 0, sku or "")


def group_snapshot_by_sku(
    snapshot: Sequence[BatchOrderItemSnapshot], orders: Sequence[Order]
) -> List[SkuGroup]:
    numbers: Dict[int, str] = {int(o.id): str(o.public_order_number) for o in orders}
    groups: Dict[str, SkuGroup] = {}
    for item in snapshot:
        g = groups.get(item.sku)
        if g is None:
            g = groups[item.sku] = SkuGroup(sku=item.sku, product_name=item.product_name or "")
        g.chips.append((numbers.get(int(item.order_id), str(item.order_id)), int(item.qty)))
        g.total_qty += int(item.qty)
    return sorted(groups.values(), key=lambda g: sku_sort_key(g.sku))


def format_address(order: Order) -> str:
    parts = [order.address_line1 or "", order.address_line2 or "", order.city or ""]
    return ", ".join(p.strip() for p in parts if p and p.strip())


def build_packing_slips(
    snapshot: Sequence[BatchOrderItemSnapshot], orders: Sequence[Order]
) -> List[PackingSlip]:
    by_order: Dict[int, List[SlipLine]] = {}
    for item in snapshot:
        by_order.setdefault(int(item.order_id), []).append(
            SlipLine(sku=item.sku, product_name=item.product_name or "", qty=int(item.qty))
        )
    slips: List[PackingSlip] = []
    for o in sorted(orders, key=lambda x: str(x.public_order_number)):
        slips.append(
            PackingSlip(
                public_order_number=str(o.public_order_number),
                customer_name=o.customer_name,
                customer_phone=o.customer_phone,
                address=format_address(o),
                tracking_number=(o.tracking_number or None),
                lines=by_order.get(int(o.id), []),
            )
        )
    return slips


def render_packing_list(
    batch: Batch,
    orders: Sequence[Order],
    snapshot: Sequence[BatchOrderItemSnapshot],
    *,
    today: Optional[date] = None,
) -> str:
    with DOC_RENDER_LAT.labels("packing_list").time():
        groups = group_snapshot_by_sku(snapshot, orders)
        return _env.get_template("packing_list.html").render(
            batch=batch,
            order_count=len(orders),
            groups=groups,
            today=(today or date.today()).isoformat(),
        )


def render_packing_slips(
    batch: Batch,
    orders: Sequence[Order],
    snapshot: Sequence[BatchOrderItemSnapshot],
    *,
    today: Optional[date] = None,
) -> str:
    with DOC_RENDER_LAT.labels("packing_slips").time():
        return _env.get_template("packing_slips.html").render(
            batch=batch,
            slips=build_packing_slips(snapshot, orders),
            today=(today or date.today()).isoformat(),
        )
