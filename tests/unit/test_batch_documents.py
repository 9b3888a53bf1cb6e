# tests/unit/test_batch_documents.py
from __future__ import annotations

from datetime import date

from app.models.batch import Batch
from app.models.batch_snapshot import BatchOrderItemSnapshot
from app.models.order import Order
from app.services.batch_documents import (
    build_packing_slips,
    group_snapshot_by_sku,
    render_packing_list,
    render_packing_slips,
    sku_sort_key,
)


def _order(oid: int, number: str, **kw) -> Order:
    return Order(
        id=oid,
        public_order_number=number,
        customer_name=kw.get("customer_name", "Ana"),
        customer_phone="0612345678",
        address_line1=kw.get("address_line1", "Knez Mihailova 12"),
        address_line2=kw.get("address_line2"),
        city="Belgrade",
        tracking_number=kw.get("tracking_number"),
    )


def _snap(order_id: int, sku: str, qty: int, name: str = "") -> BatchOrderItemSnapshot:
    return BatchOrderItemSnapshot(batch_id=1, order_id=order_id, sku=sku, product_name=name, qty=qty)


def test_sku_sort_key_orders_numerically_then_alpha():
    skus = ["10-A", "2-B", "ABC", "2-A", "100"]
    assert sorted(skus, key=sku_sort_key) == ["2-A", "2-B", "10-A", "100", "ABC"]


def test_group_snapshot_by_sku_collects_chips_and_totals():
    orders = [_order(1, "CO000001"), _order(2, "CO000002")]
    snapshot = [
        _snap(1, "12-TOY", 1, "Toy"),
        _snap(2, "3-BALL", 2, "Ball"),
        _snap(2, "12-TOY", 3, "Toy"),
    ]

    groups = group_snapshot_by_sku(snapshot, orders)

    assert [g.sku for g in groups] == ["3-BALL", "12-TOY"]
    toy = groups[1]
    assert toy.chips == [("CO000001", 1), ("CO000002", 3)]
    assert toy.total_qty == 4
    assert toy.product_name == "Toy"


def test_build_packing_slips_sorted_by_public_number():
    orders = [_order(2, "CO000002", address_line2="Apt 4"), _order(1, "CO000001", tracking_number="RS1")]
    snapshot = [_snap(1, "1-A", 1), _snap(2, "2-B", 2)]

    slips = build_packing_slips(snapshot, orders)

    assert [s.public_order_number for s in slips] == ["CO000001", "CO000002"]
    assert slips[0].tracking_number == "RS1"
    assert slips[1].address == "Knez Mihailova 12, Apt 4, Belgrade"
    assert [(ln.sku, ln.qty) for ln in slips[1].lines] == [("2-B", 2)]


def test_render_packing_list_html():
    batch = Batch(id=7, status="OPEN")
    orders = [_order(1, "CO000001")]
    html = render_packing_list(batch, orders, [_snap(1, "5-X", 2, "Widget")], today=date(2026, 10, 18))

    assert "Packing List - Batch 7" in html
    assert "2026-10-18 | 1 orders | Batch 7" in html
    assert "#CO000001 &times;2" in html
    assert "Widget" in html


def test_render_packing_slips_escapes_customer_data():
    batch = Batch(id=3, status="LOCKED")
    orders = [_order(1, "CO000001", customer_name="<b>Eve</b>", tracking_number="RS-9")]
    html = render_packing_slips(batch, orders, [_snap(1, "5-X", 1)], today=date(2026, 10, 18))

    assert "&lt;b&gt;Eve&lt;/b&gt;" in html
    assert "Tracking: RS-9" in html
    assert html.count('class="slip"') == 1
