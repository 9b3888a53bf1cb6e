# app/schemas/auth.py
from __future__ import annotations

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128


class _Base(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        extra="ignore",
        populate_by_name=True,
    )


class AdminLoginIn(_Base):
    email: EmailStr
    password: Annotated[str, Field(min_length=1, max_length=MAX_PASSWORD_LENGTH)]

    @field_validator("email", mode="before")
    @classmethod
    def _norm_email(cls, v: str) -> str:
        return str(v or "").strip().lower()


class Token(_Base):
    access_token: str = Field(..., description="访问令牌")
    token_type: str = Field("bearer", description="令牌类型，默认 bearer")
    expires_in: Optional[int] = Field(None, description="有效期（秒）")


class AdminOut(_Base):
    id: int
    email: str
    is_active: bool
