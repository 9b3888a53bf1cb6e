# app/db/session.py
# 统一的异步会话工厂 + FastAPI 依赖（get_session）
from __future__ import annotations

import logging
import os
import re
from collections.abc import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import get_settings

log = logging.getLogger("codops.db")


# ---- DSN 归一：PG 统一到 psycopg3，SQLite 统一到 aiosqlite ----
def normalize_async_dsn(url: str) -> str:
    url = (url or "").strip()
    # 有些环境会把值写成 '"postgresql+psycopg://..."'，这里统一剥掉两侧引号
    if (url.startswith('"') and url.endswith('"')) or (url.startswith("'") and url.endswith("'")):
        url = url[1:-1].strip()

    if url.startswith("sqlite:///") or url == "sqlite://":
        return "sqlite+aiosqlite://" + url[len("sqlite://") :]
    if url.startswith("postgresql+asyncpg://") or url.startswith("postgres+asyncpg://"):
        return re.sub(r"^postgres(?:ql)?\+asyncpg://", "postgresql+psycopg://", url)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def create_engine_for(url: str, *, echo: bool = False, **kwargs) -> AsyncEngine:
    """PG 打开 pool_pre_ping；SQLite 关闭 check_same_thread。"""
    dsn = normalize_async_dsn(url)
    backend = make_url(dsn).get_backend_name()
    if backend.startswith("postgresql"):
        kwargs.setdefault("pool_pre_ping", True)
    if backend.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_async_engine(dsn, echo=echo, **kwargs)


# 优先级：
#  1) CODOPS_DATABASE_URL
#  2) DATABASE_URL（AppSettings，可来自 .env）
_settings = get_settings()
RAW_URL = os.getenv("CODOPS_DATABASE_URL") or _settings.DATABASE_URL
ASYNC_URL = normalize_async_dsn(RAW_URL)

log.info("[DB] Using DSN (async): %s", make_url(ASYNC_URL).render_as_string(hide_password=True))

async_engine: AsyncEngine = create_engine_for(ASYNC_URL, echo=_settings.SQL_ECHO)

AsyncSessionLocal: async_sessionmaker[AsyncSession] = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---- FastAPI 依赖 ----
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session


# ---- 关闭引擎（测试/生命周期） ----
async def close_engines() -> None:
    await async_engine.dispose()
