# app/services/batch_warnings.py
"""
批次提示（只提示，不拦截）：

- OPEN 超过 BATCH_OPEN_WARN_HOURS 小时仍未打印
- LOCKED 但两类单据都没打印过
- RELEASED 但装箱单（slips）从未打印
- 曾被撤销放行：永久提示，即使之后再次放行
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from app.core.config import get_settings
from app.models.batch import Batch
from app.models.batch_event import BatchEvent
from app.models.enums import BatchStatus
from app.utils.time import as_utc, utcnow


def batch_warnings(
    batch: Batch,
    events: Sequence[BatchEvent],
    *,
    now: Optional[datetime] = None,
    open_warn_hours: Optional[float] = None,
) -> List[Dict[str, str]]:
    now = now or utcnow()
    hours = float(open_warn_hours if open_warn_hours is not None else get_settings().BATCH_OPEN_WARN_HOURS)
    out: List[Dict[str, str]] = []

    status = str(batch.status)
    if status == BatchStatus.OPEN.value and as_utc(batch.created_at) < now - timedelta(hours=hours):
        out.append({"code": "open_too_long", "message": f"This batch has been OPEN for over {hours:g} hours."})

    if (
        status == BatchStatus.LOCKED.value
        and int(batch.packing_list_print_count or 0) == 0
        and int(batch.packing_slips_print_count or 0) == 0
    ):
        out.append({"code": "locked_without_prints", "message": "Batch is LOCKED but nothing has been printed."})

    if status == BatchStatus.RELEASED.value and int(batch.packing_slips_print_count or 0) == 0:
        out.append({"code": "released_without_slips", "message": "Batch is RELEASED but packing slips were not printed."})

    if any(e.event_type == "UNDO_RELEASE" for e in events):
        out.append({"code": "previously_undone", "message": "This batch was previously released and then undone."})

    return out
