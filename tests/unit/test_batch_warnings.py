# tests/unit/test_batch_warnings.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from app.models.batch import Batch
from app.models.batch_event import BatchEvent
from app.services.batch_warnings import batch_warnings

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def _batch(status: str, *, age_hours: float = 1, list_prints: int = 0, slip_prints: int = 0) -> Batch:
    return Batch(
        id=1,
        status=status,
        created_at=NOW - timedelta(hours=age_hours),
        packing_list_print_count=list_prints,
        packing_slips_print_count=slip_prints,
    )


def _codes(batch: Batch, events=(), **kw) -> list[str]:
    return [w["code"] for w in batch_warnings(batch, list(events), now=NOW, open_warn_hours=24, **kw)]


def test_fresh_open_batch_has_no_warnings():
    assert _codes(_batch("OPEN", age_hours=2)) == []


def test_stale_open_batch_warns():
    warnings = batch_warnings(_batch("OPEN", age_hours=30), [], now=NOW, open_warn_hours=24)
    assert warnings == [{"code": "open_too_long", "message": "This batch has been OPEN for over 24 hours."}]


def test_naive_created_at_is_treated_as_utc():
    batch = _batch("OPEN", age_hours=30)
    batch.created_at = batch.created_at.replace(tzinfo=None)
    assert _codes(batch) == ["open_too_long"]


def test_locked_without_prints():
    assert _codes(_batch("LOCKED")) == ["locked_without_prints"]
    assert _codes(_batch("LOCKED", list_prints=1)) == []


def test_released_without_slips():
    assert _codes(_batch("RELEASED", list_prints=1)) == ["released_without_slips"]
    assert _codes(_batch("RELEASED", list_prints=1, slip_prints=1)) == []


def test_undo_history_is_permanent():
    events = [
        BatchEvent(batch_id=1, event_type="BATCH_RELEASED", payload={}),
        BatchEvent(batch_id=1, event_type="UNDO_RELEASE", payload={"reason": "x", "order_count": 1}),
        BatchEvent(batch_id=1, event_type="BATCH_RELEASED", payload={}),
    ]
    assert _codes(_batch("RELEASED", list_prints=1, slip_prints=1), events) == ["previously_undone"]
