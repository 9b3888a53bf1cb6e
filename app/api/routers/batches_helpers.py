# app/api/routers/batches_helpers.py
from __future__ import annotations

import logging
from typing import NoReturn

from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import raise_for_domain_error
from app.metrics import BATCH_REJECTIONS

logger = logging.getLogger("codops.api.batches")


async def fail_batch_op(session: AsyncSession, *, operation: str, batch_id: int | None, e: Exception) -> NoReturn:
    """回滚当前事务、计数、翻译为 Problem。"""
    await session.rollback()
    BATCH_REJECTIONS.labels(operation, type(e).__name__).inc()
    logger.warning("batch %s rejected batch_id=%s err=%s: %s", operation, batch_id, type(e).__name__, e)
    raise_for_domain_error(e)


def attachment(filename: str, *, inline: bool = False) -> dict[str, str]:
    disposition = "inline" if inline else "attachment"
    return {"Content-Disposition": f'{disposition}; filename="{filename}"'}
