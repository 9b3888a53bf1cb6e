# app/models/order_event.py
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.types import BigIntPK, JSONDoc
from app.utils.time import utcnow


class OrderEvent(Base):
    """
    订单时间线事件（轻量审计，append-only）

    与 system_events 的区别：这里面向订单详情页的时间线展示，
    event_type 为小写口径（status_change / manual_edit / tracking_update ...）。
    """

    __tablename__ = "order_events"
    __table_args__ = (Index("ix_order_events_order_time", "order_id", "created_at"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    actor: Mapped[str] = mapped_column(String(255), nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSONDoc, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<OrderEvent id={self.id} order={self.order_id} type={self.event_type}>"
