# app/models/batch_print_job.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.types import BigIntPK
from app.utils.time import utcnow


class BatchPrintJob(Base):
    """
    批次打印记录：每次打印（含重打）一行

    - print_type: packing_list / packing_slips
    - print_count: 本次打印后的累计次数
    """

    __tablename__ = "batch_print_jobs"
    __table_args__ = (Index("ix_batch_print_jobs_batch_id", "batch_id"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    batch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("batches.id", ondelete="CASCADE"), nullable=False
    )
    print_type: Mapped[str] = mapped_column(String(32), nullable=False)
    print_count: Mapped[int] = mapped_column(Integer, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<BatchPrintJob batch={self.batch_id} type={self.print_type} count={self.print_count}>"
