# app/schemas/events.py
"""
审计事件的封闭变体集合（按 event_type 区分）

- 批次事件（batch_events）：大写口径，BATCH_CREATED / PACKING_LIST_PRINTED ...
- 订单事件（order_events）：小写口径，status_change / manual_edit ...

写入方只接受这里定义的变体；读取方用 parse_batch_event / parse_order_event
把库里的 (event_type, payload) 还原成变体。未知 event_type 直接抛 ValidationError。
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _EventBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    def payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude={"event_type"})


# ---------------------------------------------------------------------------
# 批次事件
# ---------------------------------------------------------------------------


class BatchCreated(_EventBase):
    event_type: Literal["BATCH_CREATED"] = "BATCH_CREATED"
    order_count: int


class PackingListPrinted(_EventBase):
    event_type: Literal["PACKING_LIST_PRINTED"] = "PACKING_LIST_PRINTED"
    print_count: int


class PackingSlipsPrinted(_EventBase):
    event_type: Literal["PACKING_SLIPS_PRINTED"] = "PACKING_SLIPS_PRINTED"
    print_count: int


class BatchReleased(_EventBase):
    event_type: Literal["BATCH_RELEASED"] = "BATCH_RELEASED"
    order_count: int
    # manual = 手动放行；print = 两类单据都已打印后自动放行
    trigger: Literal["manual", "print"] = "manual"


class UndoRelease(_EventBase):
    event_type: Literal["UNDO_RELEASE"] = "UNDO_RELEASE"
    reason: str
    order_count: int


class ShippingLabelsGenerated(_EventBase):
    event_type: Literal["SHIPPING_LABELS_GENERATED"] = "SHIPPING_LABELS_GENERATED"
    order_count: int


class CourierCsvDownloaded(_EventBase):
    event_type: Literal["COURIER_CSV_DOWNLOADED"] = "COURIER_CSV_DOWNLOADED"
    order_count: int
    export_count: int


class TrackingImported(_EventBase):
    event_type: Literal["TRACKING_IMPORTED"] = "TRACKING_IMPORTED"
    updated: int
    skipped: int


BatchEventVariant = Annotated[
    Union[
        BatchCreated,
        PackingListPrinted,
        PackingSlipsPrinted,
        BatchReleased,
        UndoRelease,
        ShippingLabelsGenerated,
        CourierCsvDownloaded,
        TrackingImported,
    ],
    Field(discriminator="event_type"),
]

_BATCH_EVENT_ADAPTER: TypeAdapter[BatchEventVariant] = TypeAdapter(BatchEventVariant)


def parse_batch_event(event_type: str, payload: Optional[Dict[str, Any]]) -> BatchEventVariant:
    return _BATCH_EVENT_ADAPTER.validate_python({**(payload or {}), "event_type": event_type})


# ---------------------------------------------------------------------------
# 订单事件
# ---------------------------------------------------------------------------


class FieldChange(BaseModel):
    old: Optional[str] = None
    new: Optional[str] = None


class OrderCreated(_EventBase):
    event_type: Literal["created"] = "created"
    public_order_number: str
    total: str


class OrderConfirmed(_EventBase):
    event_type: Literal["confirmed"] = "confirmed"
    version: int


class StatusChange(_EventBase):
    event_type: Literal["status_change"] = "status_change"
    from_status: str = Field(alias="from")
    to_status: str = Field(alias="to")


class Assignment(_EventBase):
    event_type: Literal["assignment"] = "assignment"
    assigned_to: Optional[str] = None


class NoteUpdated(_EventBase):
    event_type: Literal["note"] = "note"
    note: Optional[str] = None


class TrackingUpdate(_EventBase):
    event_type: Literal["tracking_update"] = "tracking_update"
    tracking_number: Optional[str] = None
    courier_name: Optional[str] = None
    # manual / batch_import
    source: str = "manual"
    batch_id: Optional[int] = None


class ManualEdit(_EventBase):
    event_type: Literal["manual_edit"] = "manual_edit"
    section: Literal["customer", "address"]
    changed_fields: Dict[str, FieldChange]


class ItemQuantityChange(_EventBase):
    event_type: Literal["item_quantity_change"] = "item_quantity_change"
    item_id: int
    sku: str
    from_qty: int = Field(alias="from")
    to_qty: int = Field(alias="to")


class ItemDeleted(_EventBase):
    event_type: Literal["item_deleted"] = "item_deleted"
    item_id: int
    sku: str
    quantity: int
    line_total: str


class FulfillmentToggle(_EventBase):
    event_type: Literal["fulfillment_toggle"] = "fulfillment_toggle"
    is_fulfilled: bool


class ReleaseUndone(_EventBase):
    event_type: Literal["release_undone"] = "release_undone"
    batch_id: int
    reason: str


class CourierExported(_EventBase):
    event_type: Literal["courier_export"] = "courier_export"
    exported_at: datetime
    order_count: int


class RiskScored(_EventBase):
    event_type: Literal["risk_scored"] = "risk_scored"
    risk_score: int
    risk_level: str
    risk_reasons: List[str]


OrderEventVariant = Annotated[
    Union[
        OrderCreated,
        OrderConfirmed,
        StatusChange,
        Assignment,
        NoteUpdated,
        TrackingUpdate,
        ManualEdit,
        ItemQuantityChange,
        ItemDeleted,
        FulfillmentToggle,
        ReleaseUndone,
        CourierExported,
        RiskScored,
    ],
    Field(discriminator="event_type"),
]

_ORDER_EVENT_ADAPTER: TypeAdapter[OrderEventVariant] = TypeAdapter(OrderEventVariant)


def parse_order_event(event_type: str, payload: Optional[Dict[str, Any]]) -> OrderEventVariant:
    return _ORDER_EVENT_ADAPTER.validate_python({**(payload or {}), "event_type": event_type})
