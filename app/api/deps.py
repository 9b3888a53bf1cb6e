# app/api/deps.py
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.problem import raise_problem
from app.db.session import get_session
from app.services.admin_auth_service import AdminAuthService

__all__ = ["AdminActor", "get_current_admin", "get_session", "oauth2_scheme"]


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/admin/login", auto_error=False)


@dataclass(frozen=True)
class AdminActor:
    """已认证的后台管理员；email 写入审计事件的 actor 字段。"""

    id: int
    email: str


async def get_current_admin(
    token: str | None = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_session),
) -> AdminActor:
    """
    严格版当前管理员：

    - 必须带 Authorization: Bearer <token>
    - token 无效 / 过期 / 管理员已停用 → 401
    """
    token = (token or "").strip()
    if not token:
        raise_problem(status_code=401, error_code="not_authenticated", message="Not authenticated")

    user = await AdminAuthService.user_from_token(session, token)
    if user is None:
        raise_problem(status_code=401, error_code="invalid_token", message="Invalid or expired token")

    return AdminActor(id=int(user.id), email=str(user.email))
