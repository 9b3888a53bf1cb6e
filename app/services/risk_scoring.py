# app/services/risk_scoring.py
"""
COD 订单风险评分（纯启发式）

对比窗口：最近 RISK_LOOKBACK_DAYS 天内的其它订单（排除 merged 与自身），
且只看“活”订单（已确认 / 已履约 / new / on_hold）。

加分项：
  same_cookie     +40   同 cookie 历史订单
  rapid_reorder   +20   同 cookie 2 小时内
  same_phone      +35
  same_address    +25   归一化地址（长度 > 5）相同
  same_ip         +15
  exact_sku_match +30 / sku_overlap +20（只计第一条有交集的历史订单）
  phone_invalid   +15   电话长度 < 9
  address_too_short +10 地址行长度 < 8
  low_confidence_address：归一化置信度 < 0.75，分数至少 25

分级：>= 50 high，>= 25 medium，其余 low。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.models.enums import OrderStatus, RiskLevel, SystemEntityType
from app.models.order import Order
from app.models.order_item import OrderItem
from app.schemas.events import RiskScored
from app.services.audit_writer import AuditEventWriter
from app.services.order_versioning import load_order, versioned_order_update
from app.services.system_event_service import SystemEventService
from app.utils.time import as_utc, utcnow

logger = logging.getLogger("codops.risk")

LOW_CONFIDENCE_THRESHOLD = 0.75
RAPID_REORDER_WINDOW = timedelta(hours=2)


@dataclass
class PastOrder:
    id: int
    customer_phone: Optional[str]
    normalized_address: Optional[str]
    ip_address: Optional[str]
    cookie_id_hash: Optional[str]
    created_at: datetime
    skus: List[str] = field(default_factory=list)


@dataclass
class RiskResult:
    score: int
    level: str
    reasons: List[str]


def risk_level_for(score: int) -> str:
    if score >= 50:
        return RiskLevel.HIGH.value
    if score >= 25:
        return RiskLevel.MEDIUM.value
    return RiskLevel.LOW.value


def compute_risk(
    *,
    cookie_id_hash: Optional[str],
    customer_phone: Optional[str],
    normalized_address: Optional[str],
    ip_address: Optional[str],
    address_line1: Optional[str],
    skus: Sequence[str],
    confidence: Optional[float],
    past_orders: Sequence[PastOrder],
    now: Optional[datetime] = None,
) -> RiskResult:
    now = now or utcnow()
    score = 0
    reasons: List[str] = []

    if past_orders:
        if cookie_id_hash:
            cookie_matches = [p for p in past_orders if p.cookie_id_hash == cookie_id_hash]
            if cookie_matches:
                score += 40
                reasons.append(f"same_cookie ({len(cookie_matches)} prior orders)")
            recent = [p for p in cookie_matches if as_utc(p.created_at) >= now - RAPID_REORDER_WINDOW]
            if recent:
                score += 20
                reasons.append(f"rapid_reorder ({len(recent)} in 2hrs)")

        phone_matches = [p for p in past_orders if p.customer_phone == customer_phone]
        if phone_matches:
            score += 35
            reasons.append(f"same_phone ({len(phone_matches)} prior)")

        if normalized_address and len(normalized_address) > 5:
            addr_matches = [p for p in past_orders if p.normalized_address == normalized_address]
            if addr_matches:
                score += 25
                reasons.append(f"same_address ({len(addr_matches)} prior)")

        if ip_address:
            ip_matches = [p for p in past_orders if p.ip_address == ip_address]
            if ip_matches:
                score += 15
                reasons.append(f"same_ip ({len(ip_matches)} prior)")

        own = sorted(skus)
        own_set = set(own)
        for past in past_orders:
            if own_set.intersection(past.skus):
                if sorted(past.skus) == own:
                    score += 30
                    reasons.append("exact_sku_match")
                else:
                    score += 20
                    reasons.append("sku_overlap")
                break

    phone = customer_phone or ""
    if len(phone) < 9:
        score += 15
        reasons.append("phone_invalid")
    if len(address_line1 or "") < 8:
        score += 10
        reasons.append("address_too_short")

    if confidence is not None and confidence < LOW_CONFIDENCE_THRESHOLD:
        reasons.append("low_confidence_address")
        score = max(score, 25)

    return RiskResult(score=score, level=risk_level_for(score), reasons=reasons)


async def _load_past_orders(session: AsyncSession, *, order_id: int, since: datetime) -> List[PastOrder]:
    rows = (
        await session.execute(
            select(Order)
            .where(
                Order.id != int(order_id),
                Order.status != OrderStatus.MERGED.value,
                Order.created_at >= since,
                or_(
                    Order.is_confirmed.is_(True),
                    Order.is_fulfilled.is_(True),
                    Order.status.in_([OrderStatus.NEW.value, OrderStatus.ON_HOLD.value]),
                ),
            )
            .order_by(Order.created_at.asc(), Order.id.asc())
        )
    ).scalars().all()
    if not rows:
        return []

    ids = [int(o.id) for o in rows]
    sku_map: Dict[int, List[str]] = {i: [] for i in ids}
    for oid, sku in (
        await session.execute(select(OrderItem.order_id, OrderItem.sku).where(OrderItem.order_id.in_(ids)))
    ).all():
        sku_map[int(oid)].append(str(sku))

    return [
        PastOrder(
            id=int(o.id),
            customer_phone=o.customer_phone,
            normalized_address=o.normalized_address,
            ip_address=o.ip_address,
            cookie_id_hash=o.cookie_id_hash,
            created_at=o.created_at,
            skus=sku_map[int(o.id)],
        )
        for o in rows
    ]


class RiskScoringService:
    @staticmethod
    async def score_order_risk(
        session: AsyncSession,
        *,
        order_id: int,
        actor: str = "system",
        ip_address: Optional[str] = None,
    ) -> Dict[str, Any]:
        order = await load_order(session, order_id)
        settings = get_settings()
        since = utcnow() - timedelta(days=int(settings.RISK_LOOKBACK_DAYS))
        past = await _load_past_orders(session, order_id=int(order.id), since=since)

        skus = list(
            (
                await session.execute(select(OrderItem.sku).where(OrderItem.order_id == int(order.id)))
            ).scalars().all()
        )

        effective_ip = ip_address or order.ip_address
        result = compute_risk(
            cookie_id_hash=order.cookie_id_hash,
            customer_phone=order.customer_phone,
            normalized_address=order.normalized_address,
            ip_address=effective_ip,
            address_line1=order.address_line1,
            skus=skus,
            confidence=order.normalization_confidence,
            past_orders=past,
        )

        values: Dict[str, Any] = {
            "risk_score": result.score,
            "risk_level": result.level,
            "risk_reasons": list(result.reasons),
        }
        if ip_address and not order.ip_address:
            values["ip_address"] = ip_address
        if result.level == RiskLevel.HIGH.value:
            values["review_required"] = True
            values["status"] = OrderStatus.ON_HOLD.value
        elif order.normalization_confidence is not None and order.normalization_confidence < LOW_CONFIDENCE_THRESHOLD:
            values["review_required"] = True

        new_version = await versioned_order_update(
            session, order_id=int(order.id), expected_version=int(order.version), values=values
        )

        if result.score > 0:
            await AuditEventWriter.order(
                session,
                order_id=int(order.id),
                actor=actor,
                event=RiskScored(risk_score=result.score, risk_level=result.level, risk_reasons=result.reasons),
            )
        await SystemEventService.log(
            session,
            entity_type=SystemEntityType.ORDER,
            entity_id=int(order.id),
            event_type="ORDER_RISK_SCORE",
            actor_id=actor,
            payload={"risk_score": result.score, "risk_level": result.level},
        )
        logger.info("risk scored order_id=%s score=%s level=%s", order.id, result.score, result.level)
        return {
            "order_id": int(order.id),
            "version": new_version,
            "risk_score": result.score,
            "risk_level": result.level,
            "risk_reasons": list(result.reasons),
        }
