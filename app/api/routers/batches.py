# app/api/routers/batches.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.deps import get_current_admin
from app.api.routers import (
    batches_routes_actions,
    batches_routes_documents,
    batches_routes_query,
    batches_routes_tracking,
)

router = APIRouter(
    prefix="/batches",
    tags=["batches"],
    dependencies=[Depends(get_current_admin)],
)


def _register_all_routes() -> None:
    # 静态路径（/eligibility）必须先于 /{batch_id} 注册
    batches_routes_query.register(router)
    batches_routes_actions.register(router)
    batches_routes_documents.register(router)
    batches_routes_tracking.register(router)


_register_all_routes()

__all__ = ["router"]
