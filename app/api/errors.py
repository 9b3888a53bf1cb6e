# app/api/errors.py
"""
领域异常 → Problem（HTTP）翻译表

路由层统一：
    except Exception as e:
        await session.rollback()
        raise_for_domain_error(e)   # 已知领域异常 → 4xx Problem；其它原样抛出 → 500
"""

from __future__ import annotations

from typing import NoReturn

from app.api.problem import raise_404, raise_409, raise_422
from app.services.batch_errors import (
    BatchEligibilityConflictError,
    BatchNotFound,
    BatchStateError,
    BatchValidationError,
    BatchVersionConflict,
    NoEligibleOrdersError,
    OrdersNotInBatchError,
    ReprintConfirmationRequired,
    TrackingConflictError,
    UndoReleaseBlockedError,
)
from app.services.order_errors import (
    ORDER_VERSION_CONFLICT_MESSAGE,
    OrderBadInput,
    OrderItemNotFound,
    OrderNotEditableError,
    OrderNotFound,
    OrderStateError,
    OrderVersionConflict,
)

_REFRESH = [{"action": "refresh", "label": "Refresh and try again"}]


def raise_for_domain_error(e: Exception) -> NoReturn:
    # ---------- 422 ----------
    if isinstance(e, BatchValidationError):
        raise_422("batch_validation_error", str(e), details=[{"type": "validation", "reason": str(e)}])
    if isinstance(e, OrderBadInput):
        raise_422("order_validation_error", str(e), details=e.details)

    # ---------- 404 ----------
    if isinstance(e, BatchNotFound):
        raise_404("batch_not_found", str(e))
    if isinstance(e, OrderNotFound):
        raise_404("order_not_found", str(e))
    if isinstance(e, OrderItemNotFound):
        raise_404("order_item_not_found", str(e))

    # ---------- 409 冲突 ----------
    if isinstance(e, OrderVersionConflict):
        raise_409(
            "order_version_conflict",
            ORDER_VERSION_CONFLICT_MESSAGE,
            details=[
                {"type": "conflict", "order_id": e.order_id, "expected_version": e.expected_version}
            ],
            next_actions=_REFRESH,
        )
    if isinstance(e, BatchVersionConflict):
        raise_409(
            "batch_version_conflict",
            "Batch was updated by another user. Please refresh and try again.",
            details=[{"type": "conflict", "batch_id": e.batch_id, "expected_version": e.expected_version}],
            next_actions=_REFRESH,
        )
    if isinstance(e, TrackingConflictError):
        raise_409(
            "tracking_conflict",
            f"{len(e.conflicts)} tracking conflict(s) found",
            details=[
                {
                    "type": "conflict",
                    "order_id": int(c["order_id"]),
                    "public_order_number": str(c["public_order_number"]),
                    "existing": str(c["existing"]),
                    "incoming": str(c["incoming"]),
                }
                for c in e.conflicts
            ],
        )
    if isinstance(e, BatchEligibilityConflictError):
        raise_409(
            "batch_eligibility_conflict",
            "Some orders were batched by another user while this batch was being created. Please try again.",
            details=[{"type": "conflict", "reason": f"selected={e.selected} stamped={e.stamped}"}],
            next_actions=_REFRESH,
        )
    if isinstance(e, ReprintConfirmationRequired):
        raise_409(
            "reprint_confirmation_required",
            f"This document was already printed {e.print_count} time(s). Confirm to reprint.",
            details=[{"type": "state", "print_type": e.print_type, "print_count": e.print_count}],
            next_actions=[{"action": "confirm_reprint", "label": "Reprint"}],
        )

    # ---------- 409 业务规则 ----------
    if isinstance(e, NoEligibleOrdersError):
        raise_409("no_eligible_orders", str(e))
    if isinstance(e, BatchStateError):
        raise_409("batch_state_error", str(e), details=[{"type": "state", "reason": str(e.current_status or "")}])
    if isinstance(e, UndoReleaseBlockedError):
        raise_409(
            "undo_release_blocked",
            f"{len(e.order_ids)} order(s) in this batch already have a tracking number.",
            details=[{"type": "state", "order_id": oid, "reason": "has_tracking_number"} for oid in e.order_ids],
        )
    if isinstance(e, OrdersNotInBatchError):
        raise_409(
            "orders_not_in_batch",
            f"{len(e.order_refs)} order(s) not found in batch: {', '.join(e.order_refs)}",
            details=[{"type": "not_found", "order_ref": ref, "reason": "order not found in batch"} for ref in e.order_refs],
        )
    if isinstance(e, OrderNotEditableError):
        raise_409("order_not_editable", str(e), details=[{"type": "state", "order_id": e.order_id, "reason": e.status}])
    if isinstance(e, OrderStateError):
        raise_409("order_state_error", str(e))

    raise e
