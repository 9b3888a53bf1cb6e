# app/services/audit_writer.py
from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.batch_event import BatchEvent
from app.models.order_event import OrderEvent
from app.schemas.events import BatchEventVariant, OrderEventVariant

logger = logging.getLogger("codops.audit")


class AuditEventWriter:
    """
    统一审计写入器：

    - batch_events / order_events 都是 append-only，只插入不更新
    - 只接受 app.schemas.events 中的变体；event_type 与 payload 由变体决定
    - 不 commit：跟随调用方事务，业务写失败时审计一起回滚
    """

    @staticmethod
    async def batch(
        session: AsyncSession,
        *,
        batch_id: int,
        actor: str | None,
        event: BatchEventVariant,
    ) -> BatchEvent:
        row = BatchEvent(
            batch_id=int(batch_id),
            created_by=actor,
            event_type=event.event_type,
            payload=event.payload(),
        )
        session.add(row)
        await session.flush()
        logger.info("batch_event batch_id=%s type=%s actor=%s", batch_id, event.event_type, actor)
        return row

    @staticmethod
    async def order(
        session: AsyncSession,
        *,
        order_id: int,
        actor: str,
        event: OrderEventVariant,
    ) -> OrderEvent:
        row = OrderEvent(
            order_id=int(order_id),
            actor=actor,
            event_type=event.event_type,
            payload=event.payload(),
        )
        session.add(row)
        await session.flush()
        return row
