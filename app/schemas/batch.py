# app/schemas/batch.py
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Base(BaseModel):
    """
    - from_attributes: 允许 ORM 对象直接序列化
    - extra="ignore": 忽略冗余字段
    """

    model_config = ConfigDict(
        from_attributes=True,
        extra="ignore",
        populate_by_name=True,
    )


# ========= 读模型 =========
class BatchOut(_Base):
    id: int
    status: str
    created_by: Optional[str] = None
    created_at: datetime

    packing_list_print_count: int = 0
    packing_list_printed_at: Optional[datetime] = None
    packing_list_printed_by: Optional[str] = None
    packing_slips_print_count: int = 0
    packing_slips_printed_at: Optional[datetime] = None
    packing_slips_printed_by: Optional[str] = None

    released_at: Optional[datetime] = None
    released_by: Optional[str] = None

    export_count: int = 0
    exported_at: Optional[datetime] = None
    exported_by: Optional[str] = None

    version: int


class BatchListItem(BatchOut):
    order_count: int = 0
    total_qty: int = 0


class BatchOrderOut(_Base):
    id: int
    public_order_number: str
    customer_name: str
    customer_phone: str
    city: str
    address_line1: str
    address_line2: Optional[str] = None
    normalized_city: Optional[str] = None
    normalized_address: Optional[str] = None
    notes_customer: Optional[str] = None
    tracking_number: Optional[str] = None
    total: str
    released_at: Optional[datetime] = None

    @field_validator("total", mode="before")
    @classmethod
    def _money_to_str(cls, v: Any) -> str:
        return str(v)


class SnapshotItemOut(_Base):
    id: int
    batch_id: int
    order_id: int
    sku: str
    product_name: str
    qty: int


class BatchEventOut(_Base):
    id: int
    batch_id: int
    created_by: Optional[str] = None
    event_type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class SkuGroupOut(_Base):
    sku: str
    product_name: str
    orders: List[str]
    total_qty: int


class WarningOut(_Base):
    code: str
    message: str


class TrackingCoverageOut(_Base):
    orders_with_tracking: int
    order_count: int


class BatchDetailOut(_Base):
    batch: BatchOut
    orders: List[BatchOrderOut]
    snapshot: List[SnapshotItemOut]
    events: List[BatchEventOut]
    sku_groups: List[SkuGroupOut]
    warnings: List[WarningOut]
    tracking_coverage: TrackingCoverageOut
    total_qty: int


class IneligibleReasonOut(_Base):
    reason: str
    count: int


class EligibilityOut(_Base):
    eligible: int
    ineligible: List[IneligibleReasonOut]


# ========= 写模型 =========
class BatchCreateOut(_Base):
    batch_id: int
    order_count: int


class PrintIn(_Base):
    confirm_reprint: bool = False


class PrintOut(_Base):
    batch_id: int
    print_type: str
    print_count: int
    status: str
    version: int


class ReleaseOut(_Base):
    batch_id: int
    status: str
    order_count: int


class UndoReleaseIn(_Base):
    # 不在 schema 层做 min_length：空原因统一走 batch_validation_error
    reason: Optional[str] = None


class TrackingRowIn(_Base):
    order_ref: Annotated[str, Field(min_length=1, max_length=128)]
    tracking_number: Annotated[str, Field(min_length=1, max_length=128)]

    @field_validator("order_ref", "tracking_number", mode="before")
    @classmethod
    def _trim(cls, v: Any) -> str:
        return str(v or "").strip()


class TrackingImportIn(_Base):
    rows: List[TrackingRowIn] = Field(..., min_length=1)


class TrackingImportOut(_Base):
    updated: int
    skipped: int
