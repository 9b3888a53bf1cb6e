# app/api/routers/orders_helpers.py
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, NoReturn, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import raise_for_domain_error
from app.metrics import ORDER_ACTIONS
from app.models.enums import SystemEntityType
from app.services.idempotency_service import IdempotencyService, new_idempotency_key
from app.services.system_event_service import SystemEventService

logger = logging.getLogger("codops.api.orders")


def resolve_idempotency_key(header_value: Optional[str]) -> str:
    """未带 Idempotency-Key 时，每次调用生成新 key（不做去重）。"""
    key = (header_value or "").strip()
    return key or new_idempotency_key()


async def fail_order_action(
    session: AsyncSession,
    *,
    event_type: str,
    entity_id: Any,
    actor: str,
    e: Exception,
    entity_type: SystemEntityType = SystemEntityType.ORDER,
) -> NoReturn:
    """
    失败路径：
      1) 回滚业务事务（不留下任何部分写入）
      2) 单独提交一条 FAILED system event
      3) 翻译为 Problem
    """
    await session.rollback()
    await SystemEventService.log_failed(
        session,
        entity_type=entity_type,
        entity_id=entity_id,
        event_type=event_type,
        actor_id=actor,
        error_message=str(e) or type(e).__name__,
    )
    ORDER_ACTIONS.labels(event_type, "failed").inc()
    raise_for_domain_error(e)


async def run_order_action(
    session: AsyncSession,
    *,
    event_type: str,
    order_id: int,
    actor: str,
    call: Callable[[], Awaitable[Dict[str, Any]]],
    idempotency_key: Optional[str] = None,
) -> Dict[str, Any]:
    try:
        out = await call()
        await session.commit()
    except IntegrityError as e:
        # 同 key 并发：另一请求先落了幂等记录，回滚后返回它的结果
        await session.rollback()
        if idempotency_key:
            stored = await IdempotencyService.check(session, idempotency_key)
            if stored is not None:
                ORDER_ACTIONS.labels(event_type, "replay").inc()
                logger.info("idempotency race resolved key=%s order_id=%s", idempotency_key, order_id)
                return stored
        await fail_order_action(session, event_type=event_type, entity_id=order_id, actor=actor, e=e)
    except Exception as e:
        await fail_order_action(session, event_type=event_type, entity_id=order_id, actor=actor, e=e)
    ORDER_ACTIONS.labels(event_type, "success").inc()
    return out
