# tests/unit/test_shipping_labels.py
from __future__ import annotations

from reportlab.pdfbase.pdfmetrics import stringWidth

from app.models.order import Order
from app.services.shipping_labels import FONT, label_address, render_shipping_labels, wrap_text


def _order(number: str, tracking: str | None = None) -> Order:
    return Order(
        id=int(number[-1]),
        public_order_number=number,
        customer_name="Ana",
        customer_phone="0612345678",
        address_line1="Knez Mihailova 12",
        city="Belgrade",
        tracking_number=tracking,
    )


def test_wrap_text_respects_width():
    text = "Bulevar kralja Aleksandra 73, stan 14, sprat 3, Beograd"
    lines = wrap_text(text, font=FONT, size=10, max_width=100)
    assert len(lines) > 1
    assert " ".join(lines) == text
    assert all(stringWidth(ln, FONT, 10) <= 100 for ln in lines if " " in ln)


def test_wrap_text_keeps_long_single_word():
    assert wrap_text("Supercalifragilistic", font=FONT, size=10, max_width=10) == ["Supercalifragilistic"]


def test_label_address_joins_line_and_city():
    assert label_address(_order("CO000001")) == "Knez Mihailova 12, Belgrade"


def test_render_produces_pdf():
    pdf = render_shipping_labels([_order("CO000002", "RS-2"), _order("CO000001")])
    assert pdf.startswith(b"%PDF-")
    assert pdf.rstrip().endswith(b"%%EOF")
