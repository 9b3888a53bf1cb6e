# app/services/batch_errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class BatchNotFound(Exception):
    pass


class NoEligibleOrdersError(Exception):
    pass


@dataclass
class BatchValidationError(Exception):
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class BatchStateError(Exception):
    """状态机不允许的转换（例如对已放行批次再次放行）。"""

    message: str
    current_status: str | None = None

    def __str__(self) -> str:
        return self.message


@dataclass
class BatchVersionConflict(Exception):
    batch_id: int
    expected_version: int


@dataclass
class BatchEligibilityConflictError(Exception):
    """建批时部分订单已被其它批次抢先占用。"""

    selected: int
    stamped: int


@dataclass
class ReprintConfirmationRequired(Exception):
    print_type: str
    print_count: int


@dataclass
class UndoReleaseBlockedError(Exception):
    order_ids: list[int] = field(default_factory=list)


@dataclass
class OrdersNotInBatchError(Exception):
    order_refs: list[str] = field(default_factory=list)


@dataclass
class TrackingConflictError(Exception):
    # 每项：order_id / public_order_number / existing / incoming
    conflicts: list[dict[str, Any]] = field(default_factory=list)
