# app/api/routers/system_events.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_admin, get_session
from app.schemas.system_event import SystemEventOut
from app.services.system_event_service import SystemEventService

router = APIRouter(
    prefix="/system-events",
    tags=["system-events"],
    dependencies=[Depends(get_current_admin)],
)


@router.get("", response_model=List[SystemEventOut])
async def list_system_events(
    entity_type: Optional[str] = Query(None, description="order / export_batch / batch ..."),
    entity_id: Optional[str] = Query(None),
    event_type: Optional[str] = Query(None, description="例如 ORDER_CONFIRM"),
    limit: int = Query(100, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
) -> List[SystemEventOut]:
    rows = await SystemEventService.list_events(
        session, entity_type=entity_type, entity_id=entity_id, event_type=event_type, limit=limit
    )
    return [SystemEventOut.model_validate(r) for r in rows]
