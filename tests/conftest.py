# tests/conftest.py
from __future__ import annotations

import os
from typing import AsyncGenerator, Dict

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# ============================================================
# ★★ 关键：在 import app.* 之前固定测试环境 ★★
#   - get_settings() 有 lru_cache，必须先设环境变量
#   - 非 dev 环境禁止使用默认 JWT_SECRET
# ============================================================
os.environ["ENV"] = "test"
os.environ["JWT_SECRET"] = "codops-test-secret"
os.environ["CODOPS_DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from app.db.base import Base, init_models  # noqa: E402
from app.db.session import get_session  # noqa: E402
from app.main import app  # noqa: E402
from app.services.admin_auth_service import AdminAuthService  # noqa: E402
from tests.factories import TEST_ADMIN_EMAIL, TEST_ADMIN_PASSWORD  # noqa: E402


# =========================================
# 每用例独立的内存库（StaticPool：同一连接，create_all 后即可用）
# =========================================
@pytest_asyncio.fixture(scope="function")
async def async_engine() -> AsyncGenerator[AsyncEngine, None]:
    init_models()
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture(scope="function")
def async_session_maker(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def session(async_session_maker) -> AsyncGenerator[AsyncSession, None]:
    """
    服务层测试用 Session：服务只 flush 不 commit，用例结束统一回滚。
    """
    async with async_session_maker() as sess:
        try:
            yield sess
        finally:
            if sess.in_transaction():
                await sess.rollback()


# =========================================
# FastAPI / httpx AsyncClient
#   - get_session 覆盖为测试库
#   - API 用例的种子数据必须先 commit 再发请求
# =========================================
@pytest_asyncio.fixture(scope="function")
async def client(async_session_maker) -> AsyncGenerator[httpx.AsyncClient, None]:
    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with async_session_maker() as sess:
            yield sess

    app.dependency_overrides[get_session] = _override_session
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(
            transport=transport,
            base_url="http://testserver",
            timeout=httpx.Timeout(10.0, connect=5.0, read=10.0, write=5.0, pool=5.0),
        ) as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_session, None)


@pytest_asyncio.fixture(scope="function")
async def admin_headers(async_session_maker) -> Dict[str, str]:
    async with async_session_maker() as sess:
        user = await AdminAuthService.create_admin(sess, email=TEST_ADMIN_EMAIL, password=TEST_ADMIN_PASSWORD)
        await sess.commit()
        token = AdminAuthService.issue_token(user)
    return {"Authorization": f"Bearer {token}"}
