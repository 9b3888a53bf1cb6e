# app/models/idempotency_key.py
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.types import BigIntPK, JSONDoc
from app.utils.time import utcnow


class IdempotencyKey(Base):
    """
    幂等键：每个逻辑操作写一次

    同一 key 再次提交时直接返回 result_json，不再执行副作用。
    """

    __tablename__ = "idempotency_keys"
    __table_args__ = (UniqueConstraint("idempotency_key", name="uq_idempotency_keys_key"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    idempotency_key: Mapped[str] = mapped_column(String(128), nullable=False)
    action_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    result_json: Mapped[dict[str, Any]] = mapped_column(JSONDoc, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<IdempotencyKey key={self.idempotency_key!r} action={self.action_type} entity={self.entity_id}>"
