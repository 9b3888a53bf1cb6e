# app/api/routers/orders.py
from __future__ import annotations

from fastapi import APIRouter

from app.api.routers import (
    orders_routes_checkout,
    orders_routes_edit,
    orders_routes_query,
    orders_routes_review,
)

router = APIRouter(prefix="/orders", tags=["orders"])


def _register_all_routes() -> None:
    # 下单为店铺侧公开入口；其余路由各自要求管理员 token
    orders_routes_checkout.register(router)
    orders_routes_query.register(router)
    orders_routes_review.register(router)
    orders_routes_edit.register(router)


_register_all_routes()

__all__ = ["router"]
