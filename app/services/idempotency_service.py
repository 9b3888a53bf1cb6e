# app/services/idempotency_service.py
from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.idempotency_key import IdempotencyKey


def new_idempotency_key() -> str:
    """调用方未带 Idempotency-Key 时，每次调用生成一个新 key。"""
    return uuid.uuid4().hex


class IdempotencyService:
    @staticmethod
    async def check(session: AsyncSession, key: str) -> Optional[Dict[str, Any]]:
        """命中则返回当时记录的结果，否则 None。"""
        row = (
            await session.execute(select(IdempotencyKey).where(IdempotencyKey.idempotency_key == key))
        ).scalar_one_or_none()
        if row is None:
            return None
        return dict(row.result_json or {})

    @staticmethod
    async def record(
        session: AsyncSession,
        *,
        key: str,
        action_type: str,
        entity_id: Any,
        result: Dict[str, Any],
    ) -> None:
        # 并发下同 key 二次写入会撞唯一约束（IntegrityError），由调用方回滚后重新 check
        session.add(
            IdempotencyKey(
                idempotency_key=key,
                action_type=action_type,
                entity_id=str(entity_id),
                result_json=dict(result),
            )
        )
        await session.flush()
