# app/services/shipping_labels.py
"""
A6 面单 PDF（每单一页，按公开订单号排序）

版式：运单号（无则 N/A）大号粗体 / Order: #xxx / 分隔线 / 姓名 / 电话 / 地址（按页宽折行）
"""

from __future__ import annotations

from io import BytesIO
from typing import List, Sequence

from reportlab.lib.pagesizes import A6
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from app.metrics import DOC_RENDER_LAT
from app.models.order import Order

MARGIN = 15
FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"


def wrap_text(text: str, *, font: str, size: float, max_width: float) -> List[str]:
    lines: List[str] = []
    line = ""
    for word in text.split():
        candidate = f"{line} {word}" if line else word
        if line and stringWidth(candidate, font, size) > max_width:
            lines.append(line)
            line = word
        else:
            line = candidate
    if line:
        lines.append(line)
    return lines


def label_address(order: Order) -> str:
    parts = [order.address_line1 or "", order.city or ""]
    return ", ".join(p.strip() for p in parts if p and p.strip())


def render_shipping_labels(orders: Sequence[Order]) -> bytes:
    with DOC_RENDER_LAT.labels("shipping_labels").time():
        buf = BytesIO()
        width, height = A6
        pdf = canvas.Canvas(buf, pagesize=A6)
        pdf.setTitle("Shipping labels")

        for order in sorted(orders, key=lambda o: str(o.public_order_number)):
            y = height - 30

            pdf.setFillColorRGB(0, 0, 0)
            pdf.setFont(FONT_BOLD, 16)
            pdf.drawString(MARGIN, y, order.tracking_number or "N/A")
            y -= 25

            pdf.setFillColorRGB(0.3, 0.3, 0.3)
            pdf.setFont(FONT, 10)
            pdf.drawString(MARGIN, y, f"Order: #{order.public_order_number}")
            y -= 20

            pdf.setStrokeColorRGB(0.7, 0.7, 0.7)
            pdf.setLineWidth(1)
            pdf.line(MARGIN, y, width - MARGIN, y)
            y -= 18

            pdf.setFillColorRGB(0, 0, 0)
            pdf.setFont(FONT_BOLD, 12)
            pdf.drawString(MARGIN, y, order.customer_name or "")
            y -= 16

            pdf.setFillColorRGB(0.2, 0.2, 0.2)
            pdf.setFont(FONT, 10)
            pdf.drawString(MARGIN, y, order.customer_phone or "")
            y -= 18

            pdf.setFillColorRGB(0.1, 0.1, 0.1)
            for line in wrap_text(label_address(order), font=FONT, size=10, max_width=width - 2 * MARGIN):
                pdf.drawString(MARGIN, y, line)
                y -= 14

            pdf.showPage()

        pdf.save()
        return buf.getvalue()
