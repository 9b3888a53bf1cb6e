# app/api/routers/orders_routes_review.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import AdminActor, get_current_admin, get_session
from app.api.routers.orders_helpers import resolve_idempotency_key, run_order_action
from app.schemas.order import (
    AdminFieldsIn,
    AdminFieldsOut,
    HoldIn,
    OrderActionOut,
    RiskScoreIn,
    RiskScoreOut,
    StatusSetIn,
    VersionedIn,
)
from app.services.order_review_service import OrderReviewService
from app.services.risk_scoring import RiskScoringService

_IDEM_HEADER = Header(None, alias="Idempotency-Key", description="同 key 重放返回首次结果")


def register(router: APIRouter) -> None:
    @router.post("/{order_id}/confirm", response_model=OrderActionOut)
    async def confirm_order(
        order_id: int,
        payload: VersionedIn,
        idempotency_key: Optional[str] = _IDEM_HEADER,
        session: AsyncSession = Depends(get_session),
        admin: AdminActor = Depends(get_current_admin),
    ) -> OrderActionOut:
        """
        确认订单：

        - version 不符 → 409 order_version_conflict（next_actions: refresh）
        - 同一 Idempotency-Key 只产生一次 ORDER_CONFIRM
        """
        key = resolve_idempotency_key(idempotency_key)
        out = await run_order_action(
            session,
            event_type="ORDER_CONFIRM",
            order_id=order_id,
            actor=admin.email,
            idempotency_key=key,
            call=lambda: OrderReviewService.confirm_order(
                session,
                order_id=order_id,
                expected_version=payload.expected_version,
                actor=admin.email,
                idempotency_key=key,
            ),
        )
        return OrderActionOut.model_validate(out)

    @router.post("/{order_id}/hold", response_model=OrderActionOut)
    async def hold_order(
        order_id: int,
        payload: HoldIn,
        idempotency_key: Optional[str] = _IDEM_HEADER,
        session: AsyncSession = Depends(get_session),
        admin: AdminActor = Depends(get_current_admin),
    ) -> OrderActionOut:
        key = resolve_idempotency_key(idempotency_key)
        out = await run_order_action(
            session,
            event_type="ORDER_HOLD",
            order_id=order_id,
            actor=admin.email,
            idempotency_key=key,
            call=lambda: OrderReviewService.hold_order(
                session,
                order_id=order_id,
                expected_version=payload.expected_version,
                actor=admin.email,
                idempotency_key=key,
                reason=payload.reason,
            ),
        )
        return OrderActionOut.model_validate(out)

    @router.post("/{order_id}/cancel", response_model=OrderActionOut)
    async def cancel_order(
        order_id: int,
        payload: VersionedIn,
        idempotency_key: Optional[str] = _IDEM_HEADER,
        session: AsyncSession = Depends(get_session),
        admin: AdminActor = Depends(get_current_admin),
    ) -> OrderActionOut:
        key = resolve_idempotency_key(idempotency_key)
        out = await run_order_action(
            session,
            event_type="ORDER_CANCEL",
            order_id=order_id,
            actor=admin.email,
            idempotency_key=key,
            call=lambda: OrderReviewService.cancel_order(
                session,
                order_id=order_id,
                expected_version=payload.expected_version,
                actor=admin.email,
                idempotency_key=key,
            ),
        )
        return OrderActionOut.model_validate(out)

    @router.post("/{order_id}/status", response_model=OrderActionOut)
    async def set_order_status(
        order_id: int,
        payload: StatusSetIn,
        idempotency_key: Optional[str] = _IDEM_HEADER,
        session: AsyncSession = Depends(get_session),
        admin: AdminActor = Depends(get_current_admin),
    ) -> OrderActionOut:
        key = resolve_idempotency_key(idempotency_key)
        out = await run_order_action(
            session,
            event_type="ORDER_STATUS_SET",
            order_id=order_id,
            actor=admin.email,
            idempotency_key=key,
            call=lambda: OrderReviewService.set_order_status(
                session,
                order_id=order_id,
                status=payload.status,
                expected_version=payload.expected_version,
                actor=admin.email,
                idempotency_key=key,
            ),
        )
        return OrderActionOut.model_validate(out)

    @router.post("/{order_id}/fulfilled", response_model=OrderActionOut)
    async def toggle_fulfilled(
        order_id: int,
        payload: VersionedIn,
        idempotency_key: Optional[str] = _IDEM_HEADER,
        session: AsyncSession = Depends(get_session),
        admin: AdminActor = Depends(get_current_admin),
    ) -> OrderActionOut:
        key = resolve_idempotency_key(idempotency_key)
        out = await run_order_action(
            session,
            event_type="ORDER_FULFILL_TOGGLE",
            order_id=order_id,
            actor=admin.email,
            idempotency_key=key,
            call=lambda: OrderReviewService.toggle_fulfilled(
                session,
                order_id=order_id,
                expected_version=payload.expected_version,
                actor=admin.email,
                idempotency_key=key,
            ),
        )
        return OrderActionOut.model_validate(out)

    @router.patch("/{order_id}", response_model=AdminFieldsOut)
    async def save_admin_fields(
        order_id: int,
        payload: AdminFieldsIn,
        session: AsyncSession = Depends(get_session),
        admin: AdminActor = Depends(get_current_admin),
    ) -> AdminFieldsOut:
        """后台保存：只提交请求里出现的字段（exclude_unset），无变化时不升版本。"""
        changes = payload.model_dump(exclude_unset=True, exclude={"expected_version"})
        out = await run_order_action(
            session,
            event_type="ORDER_SAVE",
            order_id=order_id,
            actor=admin.email,
            call=lambda: OrderReviewService.save_admin_fields(
                session,
                order_id=order_id,
                changes=changes,
                expected_version=payload.expected_version,
                actor=admin.email,
            ),
        )
        return AdminFieldsOut.model_validate(out)

    @router.post("/{order_id}/risk-score", response_model=RiskScoreOut)
    async def score_order_risk(
        order_id: int,
        payload: Optional[RiskScoreIn] = None,
        session: AsyncSession = Depends(get_session),
        admin: AdminActor = Depends(get_current_admin),
    ) -> RiskScoreOut:
        out = await run_order_action(
            session,
            event_type="ORDER_RISK_SCORE",
            order_id=order_id,
            actor=admin.email,
            call=lambda: RiskScoringService.score_order_risk(
                session,
                order_id=order_id,
                actor=admin.email,
                ip_address=payload.ip_address if payload else None,
            ),
        )
        return RiskScoreOut.model_validate(out)
