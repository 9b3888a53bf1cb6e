# app/models/courier_export_setting.py
from __future__ import annotations

from typing import Any

from sqlalchemy import Boolean, String, text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.types import BigIntPK, JSONDoc


class CourierExportSetting(Base):
    """
    快递导出模板

    - fixed_columns_map：{列字母: 固定值}，动态列（姓名 / 地址 / 电话 ...）优先于固定值
    - 同一时刻只取一条 is_active = true 的模板
    """

    __tablename__ = "courier_export_settings"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, default="default")
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    include_headers: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    fixed_columns_map: Mapped[dict[str, Any]] = mapped_column(JSONDoc, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<CourierExportSetting id={self.id} name={self.name!r} active={self.is_active}>"
