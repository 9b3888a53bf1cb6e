# app/schemas/order.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Base(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        extra="ignore",
        populate_by_name=True,
    )


def _money_str(v: Any) -> str:
    return str(v) if v is not None else "0.00"


# ========= 下单 =========
class CheckoutItemIn(_Base):
    sku: Annotated[str, Field(min_length=1, max_length=128)]
    title: Annotated[str, Field(min_length=1, max_length=255)]
    quantity: Annotated[int, Field(ge=1)]
    unit_price: Annotated[Decimal, Field(ge=0, max_digits=12, decimal_places=2)]
    image_url: Optional[str] = None


class CheckoutIn(_Base):
    customer_name: Annotated[str, Field(min_length=1, max_length=255)]
    customer_phone: Annotated[str, Field(min_length=1, max_length=64)]
    customer_email: Optional[str] = None
    city: Annotated[str, Field(min_length=1, max_length=128)]
    address_line1: Annotated[str, Field(min_length=1, max_length=512)]
    address_line2: Optional[str] = None
    notes_customer: Optional[str] = None
    shipping_fee: Annotated[Decimal, Field(ge=0)] = Decimal("0")
    discount_total: Annotated[Decimal, Field(ge=0)] = Decimal("0")
    cookie_id_hash: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    items: List[CheckoutItemIn] = Field(..., min_length=1)

    @field_validator("customer_name", "customer_phone", "city", "address_line1", mode="before")
    @classmethod
    def _trim(cls, v: Any) -> str:
        return str(v or "").strip()


class CheckoutOut(_Base):
    order_id: int
    public_order_number: str
    subtotal: str
    total: str
    version: int


# ========= 读模型 =========
class OrderItemOut(_Base):
    id: int
    sku: str
    title: str
    image_url: Optional[str] = None
    quantity: int
    unit_price: str
    line_total: str

    @field_validator("unit_price", "line_total", mode="before")
    @classmethod
    def _money(cls, v: Any) -> str:
        return _money_str(v)


class OrderEventOut(_Base):
    id: int
    actor: str
    event_type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class OrderOut(_Base):
    id: int
    public_order_number: str
    status: str
    payment_method: str
    is_confirmed: bool
    is_fulfilled: bool
    review_required: bool

    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    city: str
    address_line1: str
    address_line2: Optional[str] = None
    raw_city: Optional[str] = None
    raw_address: Optional[str] = None
    normalized_city: Optional[str] = None
    normalized_address: Optional[str] = None
    normalization_confidence: Optional[float] = None
    notes_customer: Optional[str] = None
    internal_note: Optional[str] = None
    assigned_to: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    courier_name: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None

    risk_score: int = 0
    risk_level: str = "low"
    risk_reasons: List[Any] = Field(default_factory=list)

    batch_id: Optional[int] = None
    released_at: Optional[datetime] = None

    subtotal: str
    shipping_fee: str
    discount_total: str
    total: str

    version: int
    editable: bool = False
    created_at: datetime
    updated_at: datetime

    @field_validator("subtotal", "shipping_fee", "discount_total", "total", mode="before")
    @classmethod
    def _money(cls, v: Any) -> str:
        return _money_str(v)


class OrderDetailOut(_Base):
    order: OrderOut
    items: List[OrderItemOut]
    events: List[OrderEventOut]


# ========= 动作 =========
class VersionedIn(_Base):
    expected_version: Annotated[int, Field(ge=1)]


class HoldIn(VersionedIn):
    reason: Optional[str] = None


class StatusSetIn(VersionedIn):
    status: str


class OrderActionOut(_Base):
    order_id: int
    version: int
    status: str
    event_id: Optional[int] = None
    is_fulfilled: Optional[bool] = None


class AdminFieldsIn(VersionedIn):
    status: Optional[str] = None
    assigned_to: Optional[str] = None
    internal_note: Optional[str] = None
    courier_name: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None


class AdminFieldsOut(_Base):
    order_id: int
    version: int
    status: str
    changed: List[str] = Field(default_factory=list)


class FieldsEditIn(VersionedIn):
    section: Literal["customer", "address"]
    changes: Dict[str, Optional[str]] = Field(..., min_length=1)


class FieldsEditOut(_Base):
    order_id: int
    version: int
    changed_fields: List[str] = Field(default_factory=list)


class ItemQuantityIn(VersionedIn):
    quantity: Annotated[int, Field(ge=1)]


class ItemEditOut(_Base):
    order_id: int
    version: int
    subtotal: str
    total: str


class RiskScoreIn(_Base):
    ip_address: Optional[str] = None


class RiskScoreOut(_Base):
    order_id: int
    version: int
    risk_score: int
    risk_level: str
    risk_reasons: List[str]
