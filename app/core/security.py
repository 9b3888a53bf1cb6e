# app/core/security.py
"""
安全工具（统一入口）：

- PyJWT（HS256）签发 / 校验管理员 token
- passlib[pbkdf2_sha256] 做密码哈希
- 强制规则：
    * 非 dev 环境必须显式配置 JWT_SECRET
    * 禁止使用 dev 默认 secret 启动服务
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext

from app.core.config import get_settings

settings = get_settings()

_ENV = settings.ENV
_JWT_SECRET = settings.JWT_SECRET
_JWT_EXP_MIN = int(settings.ACCESS_TOKEN_EXPIRE_MINUTES)
_JWT_ALG = "HS256"

_DEV_SECRETS = {
    "",
    "dev-temp-secret",
    "dev-secret-change-me",
}

if _ENV != "dev" and _JWT_SECRET in _DEV_SECRETS:
    raise RuntimeError(
        "SECURITY ERROR: JWT_SECRET is not properly configured.\n\n"
        f"ENV = {_ENV!r}\n"
        "You are running in a non-dev environment, but JWT_SECRET is missing "
        "or still using a development default value."
    )


_pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
)


def get_password_hash(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        return _pwd_context.verify(plain_password, password_hash)
    except (ValueError, TypeError):
        return False


def create_access_token(
    data: Dict[str, Any],
    expires_minutes: Optional[int] = None,
) -> str:
    payload = dict(data)
    payload["exp"] = int(time.time()) + 60 * (expires_minutes or _JWT_EXP_MIN)
    return jwt.encode(payload, _JWT_SECRET, algorithm=_JWT_ALG)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """无效 / 过期 / alg 不符 → None。"""
    try:
        out = jwt.decode(token, _JWT_SECRET, algorithms=[_JWT_ALG])
    except jwt.PyJWTError:
        return None
    return out if isinstance(out, dict) else None
