# app/services/tracking_import.py
from __future__ import annotations

import csv
from io import StringIO
from typing import List

from app.services.batch_errors import BatchValidationError
from app.services.batch_service import TrackingRow

_HEADER_ALIASES = {
    "order_ref": {"order_ref", "order", "order_number", "order_id", "public_order_number"},
    "tracking_number": {"tracking_number", "tracking", "tracking_no"},
}


def parse_tracking_csv(text: str) -> List[TrackingRow]:
    """
    解析运单号 CSV：两列（订单引用, 运单号），首行为表头时自动识别列顺序。
    空行忽略；缺列 / 缺值的行直接报错（带行号）。
    """
    reader = csv.reader(StringIO(text.lstrip("\ufeff")))
    try:
        rows = [r for r in reader if any(c.strip() for c in r)]
    except csv.Error as e:
        raise BatchValidationError(f"Tracking file is not valid CSV: {e}") from None
    if not rows:
        raise BatchValidationError("Tracking file is empty.")

    ref_idx, trk_idx = 0, 1
    header = [c.strip().lower() for c in rows[0]]
    if any(h in _HEADER_ALIASES["order_ref"] | _HEADER_ALIASES["tracking_number"] for h in header):
        try:
            ref_idx = next(i for i, h in enumerate(header) if h in _HEADER_ALIASES["order_ref"])
            trk_idx = next(i for i, h in enumerate(header) if h in _HEADER_ALIASES["tracking_number"])
        except StopIteration:
            raise BatchValidationError("Tracking file header must name order_ref and tracking_number.") from None
        body = rows[1:]
        first_line = 2
    else:
        body = rows
        first_line = 1

    out: List[TrackingRow] = []
    for n, r in enumerate(body, start=first_line):
        if len(r) <= max(ref_idx, trk_idx):
            raise BatchValidationError(f"Line {n}: expected order_ref and tracking_number.")
        ref = r[ref_idx].strip()
        tracking = r[trk_idx].strip()
        if not ref or not tracking:
            raise BatchValidationError(f"Line {n}: order_ref and tracking_number must not be empty.")
        out.append(TrackingRow(order_ref=ref, tracking_number=tracking))
    if not out:
        raise BatchValidationError("Tracking file has no data rows.")
    return out
