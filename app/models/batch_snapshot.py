# app/models/batch_snapshot.py
from __future__ import annotations

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.types import BigIntPK


class BatchOrderItemSnapshot(Base):
    """
    建批时刻的订单明细快照（只插入，不更新 / 不删除）

    装箱总单 / 装箱单一律以快照为准，即使之后线上订单被改动。
    """

    __tablename__ = "batch_order_items_snapshot"
    __table_args__ = (Index("ix_batch_snapshot_batch_id", "batch_id"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    batch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("batches.id", ondelete="CASCADE"), nullable=False
    )
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False
    )
    sku: Mapped[str] = mapped_column(String(128), nullable=False)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False, default="", server_default="")
    qty: Mapped[int] = mapped_column(Integer, nullable=False)

    def __repr__(self) -> str:
        return f"<Snapshot batch={self.batch_id} order={self.order_id} sku={self.sku!r} qty={self.qty}>"
