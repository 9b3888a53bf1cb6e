# app/services/order_errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

ORDER_VERSION_CONFLICT_MESSAGE = "Order was updated by another user. Please refresh and try again."


class OrderNotFound(Exception):
    pass


class OrderItemNotFound(Exception):
    pass


@dataclass
class OrderVersionConflict(Exception):
    order_id: int
    expected_version: int

    def __str__(self) -> str:
        return ORDER_VERSION_CONFLICT_MESSAGE


@dataclass
class OrderNotEditableError(Exception):
    order_id: int
    status: str
    is_fulfilled: bool

    def __str__(self) -> str:
        if self.is_fulfilled:
            return "Order is fulfilled and can no longer be edited."
        return f"Order in status '{self.status}' can no longer be edited."


@dataclass
class OrderStateError(Exception):
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class OrderBadInput(Exception):
    details: list[dict[str, Any]] = field(default_factory=list)

    def __str__(self) -> str:
        if self.details:
            return str(self.details[0].get("reason") or "invalid input")
        return "invalid input"
