# app/models/enums.py
from __future__ import annotations

from enum import StrEnum


class OrderStatus(StrEnum):
    """
    订单状态：

    - NEW / CONFIRMED / ON_HOLD   审核阶段
    - PACKED / SHIPPED            履约阶段
    - DELIVERED / CANCELED / RETURNED / MERGED   终态（MERGED = 已并入另一订单）
    """

    NEW = "new"
    CONFIRMED = "confirmed"
    PACKED = "packed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELED = "canceled"
    RETURNED = "returned"
    ON_HOLD = "on_hold"
    MERGED = "merged"


TERMINAL_ORDER_STATUSES = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.CANCELED, OrderStatus.RETURNED, OrderStatus.MERGED}
)

# 明细 / 核心字段只在这些状态之外可编辑（另需 is_fulfilled = false）
LOCKED_ORDER_STATUSES = frozenset(
    {
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELED,
        OrderStatus.RETURNED,
        OrderStatus.MERGED,
    }
)


class BatchStatus(StrEnum):
    """
    仓库批次状态机：OPEN → LOCKED → RELEASED

    唯一的回退边：RELEASED → LOCKED（撤销放行，必须带原因并留痕）。
    """

    OPEN = "OPEN"
    LOCKED = "LOCKED"
    RELEASED = "RELEASED"


class PrintType(StrEnum):
    PACKING_LIST = "packing_list"
    PACKING_SLIPS = "packing_slips"


class RiskLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SystemEventStatus(StrEnum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class SystemEntityType(StrEnum):
    ORDER = "order"
    VARIANT = "variant"
    IMPORT_BATCH = "import_batch"
    EXPORT_BATCH = "export_batch"
    BATCH = "batch"
