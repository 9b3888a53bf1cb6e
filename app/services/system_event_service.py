# app/services/system_event_service.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import SystemEntityType, SystemEventStatus
from app.models.system_event import SystemEvent

logger = logging.getLogger("codops.system_events")

# 结构化审计的 event_type 封闭集合
SYSTEM_EVENT_TYPES = frozenset(
    {
        "ORDER_CREATE",
        "ORDER_CONFIRM",
        "ORDER_HOLD",
        "ORDER_CANCEL",
        "ORDER_STATUS_SET",
        "ORDER_FULFILL_TOGGLE",
        "ORDER_SAVE",
        "ORDER_ITEM_UPDATE",
        "ORDER_ITEM_DELETE",
        "ORDER_RISK_SCORE",
        "COURIER_EXPORT_CREATE",
        "COURIER_IMPORT_APPLY",
    }
)


class SystemEventService:
    """
    system_events 写入 / 查询

    - log：SUCCESS，跟随调用方事务
    - log_failed：FAILED + error_message；调用方必须先回滚失败事务，再用同一 session 单独提交
    """

    @staticmethod
    async def log(
        session: AsyncSession,
        *,
        entity_type: SystemEntityType | str,
        entity_id: Any,
        event_type: str,
        actor_id: Optional[str],
        payload: Optional[Dict[str, Any]] = None,
    ) -> int:
        return await SystemEventService._insert(
            session,
            entity_type=entity_type,
            entity_id=entity_id,
            event_type=event_type,
            actor_id=actor_id,
            payload=payload,
            status=SystemEventStatus.SUCCESS,
            error_message=None,
        )

    @staticmethod
    async def log_failed(
        session: AsyncSession,
        *,
        entity_type: SystemEntityType | str,
        entity_id: Any,
        event_type: str,
        actor_id: Optional[str],
        error_message: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> int:
        event_id = await SystemEventService._insert(
            session,
            entity_type=entity_type,
            entity_id=entity_id,
            event_type=event_type,
            actor_id=actor_id,
            payload=payload,
            status=SystemEventStatus.FAILED,
            error_message=error_message,
        )
        await session.commit()
        logger.warning(
            "system_event FAILED type=%s %s:%s err=%s", event_type, entity_type, entity_id, error_message
        )
        return event_id

    @staticmethod
    async def _insert(
        session: AsyncSession,
        *,
        entity_type: SystemEntityType | str,
        entity_id: Any,
        event_type: str,
        actor_id: Optional[str],
        payload: Optional[Dict[str, Any]],
        status: SystemEventStatus,
        error_message: Optional[str],
    ) -> int:
        if event_type not in SYSTEM_EVENT_TYPES:
            raise ValueError(f"unknown system event type: {event_type}")
        row = SystemEvent(
            entity_type=str(SystemEntityType(entity_type)),
            entity_id=str(entity_id),
            event_type=event_type,
            actor_id=actor_id,
            payload_json=dict(payload or {}),
            status=str(status),
            error_message=error_message,
        )
        session.add(row)
        await session.flush()
        return int(row.event_id)

    @staticmethod
    async def list_events(
        session: AsyncSession,
        *,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        event_type: Optional[str] = None,
        limit: int = 100,
    ) -> List[SystemEvent]:
        stmt = select(SystemEvent)
        if entity_type:
            stmt = stmt.where(SystemEvent.entity_type == entity_type)
        if entity_id:
            stmt = stmt.where(SystemEvent.entity_id == str(entity_id))
        if event_type:
            stmt = stmt.where(SystemEvent.event_type == event_type)
        stmt = stmt.order_by(SystemEvent.created_at.desc(), SystemEvent.event_id.desc()).limit(int(limit))
        return list((await session.execute(stmt)).scalars().all())
