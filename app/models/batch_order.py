# app/models/batch_order.py
from __future__ import annotations

from sqlalchemy import BigInteger, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.types import BigIntPK


class BatchOrder(Base):
    """批次 ↔ 订单 关联：每个批次内每个订单一行。"""

    __tablename__ = "batch_orders"
    __table_args__ = (
        UniqueConstraint("batch_id", "order_id", name="uq_batch_orders_batch_order"),
        Index("ix_batch_orders_order_id", "order_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    batch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("batches.id", ondelete="CASCADE"), nullable=False
    )
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False
    )

    def __repr__(self) -> str:
        return f"<BatchOrder batch={self.batch_id} order={self.order_id}>"
