# tests/api/test_admin_auth_api.py
from __future__ import annotations

import httpx
import pytest

from app.services.admin_auth_service import AdminAuthService
from tests._problem import as_problem
from tests.factories import TEST_ADMIN_EMAIL, TEST_ADMIN_PASSWORD

pytestmark = pytest.mark.asyncio


async def _create_admin(async_session_maker, *, is_active: bool = True) -> None:
    async with async_session_maker() as s:
        await AdminAuthService.create_admin(
            s, email=TEST_ADMIN_EMAIL, password=TEST_ADMIN_PASSWORD, is_active=is_active
        )
        await s.commit()


async def test_login_and_me(client: httpx.AsyncClient, async_session_maker):
    await _create_admin(async_session_maker)

    r = await client.post("/admin/login", json={"email": "  OPS@example.com ", "password": TEST_ADMIN_PASSWORD})
    assert r.status_code == 200, r.text
    token = r.json()
    assert token["token_type"] == "bearer"
    assert token["expires_in"] > 0

    r = await client.get("/admin/me", headers={"Authorization": f"Bearer {token['access_token']}"})
    assert r.status_code == 200
    assert r.json()["email"] == TEST_ADMIN_EMAIL
    assert r.json()["is_active"] is True


async def test_wrong_password_is_401(client: httpx.AsyncClient, async_session_maker):
    await _create_admin(async_session_maker)

    r = await client.post("/admin/login", json={"email": TEST_ADMIN_EMAIL, "password": "nope-nope"})
    assert r.status_code == 401
    assert as_problem(r.json())["error_code"] == "invalid_credentials"


async def test_inactive_admin_cannot_login(client: httpx.AsyncClient, async_session_maker):
    await _create_admin(async_session_maker, is_active=False)

    r = await client.post("/admin/login", json={"email": TEST_ADMIN_EMAIL, "password": TEST_ADMIN_PASSWORD})
    assert r.status_code == 401


async def test_me_without_token(client: httpx.AsyncClient):
    r = await client.get("/admin/me")
    assert r.status_code == 401
    assert as_problem(r.json())["error_code"] == "not_authenticated"


async def test_healthz_is_public(client: httpx.AsyncClient):
    r = await client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"ok": True}
