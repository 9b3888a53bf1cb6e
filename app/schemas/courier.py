# app/schemas/courier.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class CourierExportPreviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    count: int
    earliest: Optional[datetime] = None
    latest: Optional[datetime] = None
    total_sum: str
