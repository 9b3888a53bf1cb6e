# tests/services/test_courier_export.py
from __future__ import annotations

import csv
from io import StringIO

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import OrderStatus
from app.models.order_event import OrderEvent
from app.models.system_event import SystemEvent
from app.services.courier_export_service import COLUMN_HEADERS, COLUMNS, CourierExportService
from tests.factories import make_export_template, make_order

pytestmark = pytest.mark.asyncio


def _rows(content: str) -> list[list[str]]:
    return list(csv.reader(StringIO(content)))


async def test_preview_counts_only_exportable_orders(session: AsyncSession):
    await make_order(session)
    await make_order(session, shipping_fee="5.00")
    await make_order(session, review_required=True)
    await make_order(session, status=OrderStatus.NEW.value, is_confirmed=False)

    out = await CourierExportService.preview(session)

    assert out["count"] == 2
    assert out["total_sum"] == "50.00"
    assert out["earliest"] is not None


async def test_download_renders_dynamic_and_fixed_columns(session: AsyncSession):
    await make_export_template(session, fixed={"F": "1", "H": "IGNORED", "P": "Shop d.o.o."})
    order = await make_order(
        session,
        customer_name="Marko Markovic",
        normalized_address="Bulevar 1",
        notes_customer="ring twice",
        internal_note="vip",
    )

    out = await CourierExportService.download(session, actor="ops@example.com")

    rows = _rows(out["content"])
    assert rows[0] == [COLUMN_HEADERS[c] for c in COLUMNS]
    assert len(rows) == 2
    row = dict(zip(COLUMNS, rows[1]))
    assert row["A"] == "Marko Markovic"
    assert row["B"] == "Bulevar 1"
    assert row["E"] == order.customer_phone
    assert row["F"] == "1"
    assert row["G"] == "1,2"
    # 动态列优先于固定列
    assert row["H"] == order.public_order_number
    assert row["I"] == "1001-CAT,2002-DOG"
    assert row["K"] == "24"
    assert row["O"] == "ring twice | vip"
    assert row["P"] == "Shop d.o.o."
    assert row["V"] == ""

    assert out["order_count"] == 1
    assert out["filename"].startswith("courier_export_")
    ev = (await session.execute(select(OrderEvent).where(OrderEvent.order_id == order.id))).scalars().one()
    assert ev.event_type == "courier_export"
    sys_ev = (
        await session.execute(select(SystemEvent).where(SystemEvent.event_type == "COURIER_EXPORT_CREATE"))
    ).scalars().one()
    assert sys_ev.entity_type == "export_batch"
    assert sys_ev.entity_id == out["export_ref"]


async def test_risk_is_flagged_in_notes(session: AsyncSession):
    await make_order(session, risk_level="medium", risk_reasons=["same_phone (1 prior)"])

    out = await CourierExportService.download(session, actor="ops@example.com")

    row = dict(zip(COLUMNS, _rows(out["content"])[1]))
    assert row["O"] == "RISK:MEDIUM same_phone (1 prior)"


async def test_without_template_headers_are_written_and_fixed_columns_blank(session: AsyncSession):
    await make_order(session)

    out = await CourierExportService.download(session, actor="ops@example.com")

    rows = _rows(out["content"])
    assert rows[0][0] == "Shipping First Name"
    assert dict(zip(COLUMNS, rows[1]))["F"] == ""


async def test_batch_csv_sorts_by_public_number_and_can_skip_headers(session: AsyncSession):
    await make_export_template(session, include_headers=False)
    first = await make_order(session)
    second = await make_order(session)

    content = await CourierExportService.batch_csv(session, orders=[second, first])

    rows = _rows(content)
    assert [r[COLUMNS.index("H")] for r in rows] == [first.public_order_number, second.public_order_number]
