# tests/unit/test_events_schema.py
from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.schemas.events import (
    BatchReleased,
    FieldChange,
    ItemQuantityChange,
    ManualEdit,
    StatusChange,
    UndoRelease,
    parse_batch_event,
    parse_order_event,
)


def test_payload_excludes_event_type_and_uses_aliases():
    ev = StatusChange(from_status="new", to_status="confirmed")
    assert ev.event_type == "status_change"
    assert ev.payload() == {"from": "new", "to": "confirmed"}

    qty = ItemQuantityChange(item_id=5, sku="1-A", from_qty=1, to_qty=3)
    assert qty.payload() == {"item_id": 5, "sku": "1-A", "from": 1, "to": 3}


def test_batch_event_roundtrip_through_storage_shape():
    stored = BatchReleased(order_count=4, trigger="print")
    parsed = parse_batch_event(stored.event_type, stored.payload())
    assert isinstance(parsed, BatchReleased)
    assert parsed.trigger == "print"

    undo = parse_batch_event("UNDO_RELEASE", {"reason": "wrong courier", "order_count": 2})
    assert isinstance(undo, UndoRelease)
    assert undo.reason == "wrong courier"


def test_manual_edit_nested_changes():
    ev = ManualEdit(section="address", changed_fields={"city": FieldChange(old="Nis", new="Novi Sad")})
    parsed = parse_order_event("manual_edit", ev.payload())
    assert parsed.changed_fields["city"].new == "Novi Sad"


def test_unknown_event_type_is_rejected():
    with pytest.raises(ValidationError):
        parse_batch_event("BATCH_EXPLODED", {})
    with pytest.raises(ValidationError):
        parse_order_event("teleported", {})


def test_extra_payload_keys_are_rejected():
    with pytest.raises(ValidationError):
        parse_batch_event("BATCH_CREATED", {"order_count": 1, "surprise": True})


def test_order_events_do_not_parse_as_batch_events():
    with pytest.raises(ValidationError):
        parse_batch_event("status_change", {"from": "new", "to": "confirmed"})
