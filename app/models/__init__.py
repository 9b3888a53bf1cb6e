# app/models/__init__.py
"""
统一导出 ORM 模型。
"""

from importlib import import_module


def _export(module_name: str, class_name: str) -> None:
    module = import_module(module_name)
    globals()[class_name] = getattr(module, class_name)


MODEL_SPECS = [
    # -------- 订单 --------
    ("app.models.order", "Order"),
    ("app.models.order_item", "OrderItem"),
    ("app.models.order_event", "OrderEvent"),
    # -------- 仓库批次 --------
    ("app.models.batch", "Batch"),
    ("app.models.batch_order", "BatchOrder"),
    ("app.models.batch_snapshot", "BatchOrderItemSnapshot"),
    ("app.models.batch_event", "BatchEvent"),
    ("app.models.batch_print_job", "BatchPrintJob"),
    # -------- 审计 / 幂等 --------
    ("app.models.system_event", "SystemEvent"),
    ("app.models.idempotency_key", "IdempotencyKey"),
    # -------- 配置 / 账号 --------
    ("app.models.admin_user", "AdminUser"),
    ("app.models.courier_export_setting", "CourierExportSetting"),
]

for _mod, _cls in MODEL_SPECS:
    _export(_mod, _cls)

__all__ = [cls for _, cls in MODEL_SPECS]
