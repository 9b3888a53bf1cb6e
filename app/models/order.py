# app/models/order.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.types import BigIntPK, JSONDoc
from app.utils.time import utcnow


class Order(Base):
    """
    货到付款订单主档

    - 审核维度：status / is_confirmed / review_required / risk_*
    - 履约维度：is_fulfilled / tracking_number / batch_id / released_at
    - version：乐观并发计数；后台所有写操作都以 version 为条件并 +1
    - 金额口径：subtotal = sum(order_items.line_total)，total = subtotal + shipping_fee - discount_total
    """

    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_status_confirmed", "status", "is_confirmed"),
        Index("ix_orders_batch_id", "batch_id"),
        Index("ix_orders_customer_phone", "customer_phone"),
        Index("ix_orders_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    public_order_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="new", server_default=text("'new'")
    )
    payment_method: Mapped[str] = mapped_column(
        String(16), nullable=False, default="cod", server_default=text("'cod'")
    )
    is_confirmed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    is_fulfilled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    review_required: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    # 客户 / 地址（raw_* 为原始录入，normalized_* 为归一化结果）
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(64), nullable=False)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str] = mapped_column(String(128), nullable=False, default="", server_default="")
    address_line1: Mapped[str] = mapped_column(String(512), nullable=False, default="", server_default="")
    address_line2: Mapped[str | None] = mapped_column(String(512), nullable=True)
    raw_city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    raw_address: Mapped[str | None] = mapped_column(String(512), nullable=True)
    normalized_city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    normalized_address: Mapped[str | None] = mapped_column(String(512), nullable=True)
    normalization_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)

    notes_customer: Mapped[str | None] = mapped_column(Text, nullable=True)
    internal_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    assigned_to: Mapped[str | None] = mapped_column(String(255), nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSONDoc, nullable=False, default=list)

    # 物流
    courier_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    tracking_number: Mapped[str | None] = mapped_column(String(128), nullable=True)
    tracking_url: Mapped[str | None] = mapped_column(String(512), nullable=True)

    # 风控信号
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cookie_id_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    risk_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    risk_level: Mapped[str] = mapped_column(
        String(16), nullable=False, default="low", server_default=text("'low'")
    )
    risk_reasons: Mapped[list[Any]] = mapped_column(JSONDoc, nullable=False, default=list)

    # 批次 / 放行
    batch_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("batches.id", ondelete="SET NULL"), nullable=True
    )
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    merged_into_order_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    # 金额
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    shipping_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    discount_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return (
            f"<Order id={self.id} no={self.public_order_number!r} status={self.status} "
            f"batch={self.batch_id} v={self.version}>"
        )
