# app/schemas/system_event.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class SystemEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    event_id: int
    entity_type: str
    entity_id: str
    event_type: str
    actor_id: Optional[str] = None
    payload_json: Dict[str, Any] = Field(default_factory=dict)
    status: str
    error_message: Optional[str] = None
    created_at: datetime
