# app/api/routers/admin_auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import AdminActor, get_current_admin, get_session
from app.api.problem import raise_problem
from app.core.config import get_settings
from app.schemas.auth import AdminLoginIn, AdminOut, Token
from app.services.admin_auth_service import AdminAuthService

router = APIRouter(prefix="/admin", tags=["admin-auth"])


@router.post("/login", response_model=Token)
async def admin_login(payload: AdminLoginIn, session: AsyncSession = Depends(get_session)) -> Token:
    """
    管理员登录：返回 bearer token。

    - 邮箱不存在 / 密码错误 / 已停用 → 统一 401，不区分原因
    """
    user = await AdminAuthService.authenticate(session, email=payload.email, password=payload.password)
    if user is None:
        raise_problem(status_code=401, error_code="invalid_credentials", message="Invalid email or password")

    minutes = int(get_settings().ACCESS_TOKEN_EXPIRE_MINUTES)
    return Token(
        access_token=AdminAuthService.issue_token(user, expires_minutes=minutes),
        token_type="bearer",
        expires_in=minutes * 60,
    )


@router.get("/me", response_model=AdminOut)
async def admin_me(
    admin: AdminActor = Depends(get_current_admin),
    session: AsyncSession = Depends(get_session),
) -> AdminOut:
    user = await AdminAuthService.get_by_email(session, admin.email)
    return AdminOut.model_validate(user)
