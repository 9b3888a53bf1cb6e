# app/models/system_event.py
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.types import BigIntPK, JSONDoc
from app.utils.time import utcnow


class SystemEvent(Base):
    """
    系统级结构化审计（append-only）

    字段：
      - entity_type / entity_id：作用对象（order / batch / export_batch ...）
      - event_type：大写口径（ORDER_CONFIRM / ORDER_ITEM_UPDATE / COURIER_EXPORT_CREATE ...）
      - status：SUCCESS / FAILED；FAILED 时 error_message 非空
      - event_id 即“回执号”，返回给调用方
    """

    __tablename__ = "system_events"
    __table_args__ = (
        Index("ix_system_events_entity", "entity_type", "entity_id"),
        Index("ix_system_events_type_time", "event_type", "created_at"),
    )

    event_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    actor_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payload_json: Mapped[dict[str, Any]] = mapped_column(JSONDoc, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="SUCCESS", server_default=text("'SUCCESS'")
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    def __repr__(self) -> str:
        return (
            f"<SystemEvent id={self.event_id} {self.entity_type}:{self.entity_id} "
            f"type={self.event_type} status={self.status}>"
        )
