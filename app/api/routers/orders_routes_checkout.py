# app/api/routers/orders_routes_checkout.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_session
from app.api.errors import raise_for_domain_error
from app.metrics import ORDER_ACTIONS
from app.schemas.order import CheckoutIn, CheckoutOut
from app.services.order_checkout import CheckoutLine, CheckoutService
from app.services.risk_scoring import RiskScoringService

logger = logging.getLogger("codops.api.checkout")


def register(router: APIRouter) -> None:
    @router.post("", response_model=CheckoutOut, status_code=status.HTTP_201_CREATED)
    async def checkout(
        payload: CheckoutIn,
        request: Request,
        session: AsyncSession = Depends(get_session),
    ) -> CheckoutOut:
        """
        货到付款下单（店铺侧）：

        - 建单 + 明细 + created 事件 + ORDER_CREATE
        - 同一事务内按启发式规则打风险分（高风险直接挂起待审）
        """
        ip_address = request.client.host if request.client else None
        try:
            out = await CheckoutService.create_cod_order(
                session,
                customer_name=payload.customer_name,
                customer_phone=payload.customer_phone,
                customer_email=payload.customer_email,
                city=payload.city,
                address_line1=payload.address_line1,
                address_line2=payload.address_line2,
                notes_customer=payload.notes_customer,
                shipping_fee=payload.shipping_fee,
                discount_total=payload.discount_total,
                ip_address=ip_address,
                cookie_id_hash=payload.cookie_id_hash,
                tags=payload.tags,
                lines=[
                    CheckoutLine(
                        sku=it.sku,
                        title=it.title,
                        quantity=it.quantity,
                        unit_price=it.unit_price,
                        image_url=it.image_url,
                    )
                    for it in payload.items
                ],
            )
            scored = await RiskScoringService.score_order_risk(session, order_id=out["order_id"])
            await session.commit()
        except Exception as e:
            await session.rollback()
            ORDER_ACTIONS.labels("ORDER_CREATE", "failed").inc()
            logger.warning("checkout rejected: %s: %s", type(e).__name__, e)
            raise_for_domain_error(e)
        ORDER_ACTIONS.labels("ORDER_CREATE", "success").inc()
        return CheckoutOut.model_validate({**out, "version": scored["version"]})
