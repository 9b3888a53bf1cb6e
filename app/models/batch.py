# app/models/batch.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, func, text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.types import BigIntPK
from app.utils.time import utcnow


class Batch(Base):
    """
    仓库批次（一组同时下发仓库拣货 / 打包的订单）

    - status: OPEN / LOCKED / RELEASED（见 BatchStatus）
    - 打印计数：装箱总单（packing list）/ 装箱单（packing slips）各自计数 + 最近一次时间/操作人
    - 快递导出计数：export_count
    - version：乐观并发计数，所有批次更新都以 version 为条件
    """

    __tablename__ = "batches"
    __table_args__ = (
        Index("ix_batches_status", "status"),
        Index("ix_batches_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="OPEN", server_default=text("'OPEN'")
    )

    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    packing_list_print_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    packing_list_printed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    packing_list_printed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    packing_slips_print_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    packing_slips_printed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    packing_slips_printed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    released_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    export_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    exported_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    exported_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")

    def __repr__(self) -> str:
        return (
            f"<Batch id={self.id} status={self.status} "
            f"list={self.packing_list_print_count} slips={self.packing_slips_print_count} v={self.version}>"
        )
