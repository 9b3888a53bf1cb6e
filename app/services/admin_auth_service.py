# app/services/admin_auth_service.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import create_access_token, decode_access_token, get_password_hash, verify_password
from app.models.admin_user import AdminUser

logger = logging.getLogger("codops.auth")


def _norm_email(email: str) -> str:
    return (email or "").strip().lower()


class AdminAuthService:
    """
    后台管理员认证：

    - token 的 sub 为管理员 email（即审计里的 actor）
    - 停用的管理员不能登录，已签发的 token 也随之失效
    """

    @staticmethod
    async def get_by_email(session: AsyncSession, email: str) -> Optional[AdminUser]:
        return (
            await session.execute(select(AdminUser).where(func.lower(AdminUser.email) == _norm_email(email)))
        ).scalar_one_or_none()

    @staticmethod
    async def authenticate(session: AsyncSession, *, email: str, password: str) -> Optional[AdminUser]:
        user = await AdminAuthService.get_by_email(session, email)
        if user is None or not user.is_active:
            logger.info("admin login rejected email=%s", _norm_email(email))
            return None
        if not verify_password(password, user.password_hash):
            logger.info("admin login rejected email=%s", _norm_email(email))
            return None
        return user

    @staticmethod
    def issue_token(user: AdminUser, *, expires_minutes: Optional[int] = None) -> str:
        return create_access_token({"sub": user.email, "uid": int(user.id)}, expires_minutes=expires_minutes)

    @staticmethod
    async def user_from_token(session: AsyncSession, token: str) -> Optional[AdminUser]:
        payload = decode_access_token(token)
        if not payload or not payload.get("sub"):
            return None
        user = await AdminAuthService.get_by_email(session, str(payload["sub"]))
        if user is None or not user.is_active:
            return None
        return user

    @staticmethod
    async def create_admin(session: AsyncSession, *, email: str, password: str, is_active: bool = True) -> AdminUser:
        user = AdminUser(email=_norm_email(email), password_hash=get_password_hash(password), is_active=is_active)
        session.add(user)
        await session.flush()
        return user
