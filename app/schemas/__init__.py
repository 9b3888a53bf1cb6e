# app/schemas/__init__.py
"""
Schemas package

本包保持“安静”：不做聚合导出，需要时显式从具体模块导入，例如：
    from app.schemas.batch import BatchDetailOut
    from app.schemas.events import parse_order_event
"""

__all__: list[str] = []
