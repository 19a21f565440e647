"""
Registration, login sessions, logout and request-level security.
"""

from __future__ import annotations

import pytest
from sqlmodel import select

from app.core.config import get_settings
from app.models.user import UserSession

settings = get_settings()

REGISTER = {"email": "Ada@Example.com", "password": "correct-horse", "name": "Ada", "username": "ada"}


async def register_and_login(client):
    await client.post("/api/v1/auth/register", json=REGISTER)
    return await client.post(
        "/api/v1/auth/login", json={"email": REGISTER["email"], "password": REGISTER["password"]}
    )


class TestRegister:

    @pytest.mark.asyncio
    async def test_register(self, client):
        response = await client.post("/api/v1/auth/register", json=REGISTER)

        assert response.status_code == 201
        body = response.json()
        assert body["email"] == "ada@example.com"
        assert body["role"] == "member"
        assert "passwordHash" not in body

    @pytest.mark.asyncio
    async def test_duplicate_email(self, client):
        await client.post("/api/v1/auth/register", json=REGISTER)
        again = await client.post(
            "/api/v1/auth/register", json={**REGISTER, "username": "ada2", "email": "ada@example.com"}
        )

        assert again.status_code == 409

    @pytest.mark.asyncio
    async def test_short_password(self, client):
        response = await client.post("/api/v1/auth/register", json={**REGISTER, "password": "short"})

        assert response.status_code == 400
        body = response.json()
        assert body["error"].startswith("Invalid input.")
        assert body["details"]


class TestLogin:

    @pytest.mark.asyncio
    async def test_login_issues_token_and_records_session(self, client, session):
        response = await register_and_login(client)

        assert response.status_code == 200
        body = response.json()
        assert body["tokenType"] == "bearer"
        assert body["accessToken"]
        assert response.cookies.get(settings.session_cookie_name) == body["accessToken"]
        assert response.cookies.get(settings.csrf_cookie_name)

        rows = (await session.execute(select(UserSession))).scalars().all()
        assert len(rows) == 1
        assert str(rows[0].user_id) == body["user"]["id"]

        me = await client.get(
            "/api/v1/notifications/unread-count",
            headers={"Authorization": f"Bearer {body['accessToken']}"},
        )
        assert me.status_code == 200

    @pytest.mark.asyncio
    async def test_wrong_password(self, client):
        await client.post("/api/v1/auth/register", json=REGISTER)

        response = await client.post(
            "/api/v1/auth/login", json={"email": REGISTER["email"], "password": "wrong-password"}
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid email or password"}

    @pytest.mark.asyncio
    async def test_logout_revokes_token(self, client, redis_mock):
        token = (await register_and_login(client)).json()["accessToken"]
        headers = {"Authorization": f"Bearer {token}"}

        response = await client.post("/api/v1/auth/logout", headers=headers)

        assert response.status_code == 200
        redis_mock.setex.assert_awaited_once()
        key = redis_mock.setex.await_args.args[0]
        assert key.startswith("jwt:revoked:")

        redis_mock.exists.return_value = 1
        after = await client.get("/api/v1/notifications/unread-count", headers=headers)
        assert after.status_code == 401
        assert after.json() == {"error": "Session has been revoked"}

    @pytest.mark.asyncio
    async def test_garbage_token(self, client):
        response = await client.get(
            "/api/v1/notifications", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 401


class TestCookieSessions:

    @pytest.mark.asyncio
    async def test_cookie_auth_requires_csrf_for_writes(self, client):
        await register_and_login(client)
        # the client now carries the session and CSRF cookies

        read = await client.get("/api/v1/notifications/unread-count")
        assert read.status_code == 200

        blocked = await client.patch("/api/v1/notifications", json={"markAllAsRead": True})
        assert blocked.status_code == 403
        assert blocked.json() == {"error": "Invalid or missing CSRF token."}

        csrf = client.cookies.get(settings.csrf_cookie_name)
        allowed = await client.patch(
            "/api/v1/notifications", json={"markAllAsRead": True}, headers={"X-CSRF-Token": csrf}
        )
        assert allowed.status_code == 200

    @pytest.mark.asyncio
    async def test_wrong_csrf_token_is_rejected(self, client):
        await register_and_login(client)

        response = await client.patch(
            "/api/v1/notifications", json={"markAllAsRead": True}, headers={"X-CSRF-Token": "forged"}
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_webhook_is_exempt_from_csrf(self, client):
        await register_and_login(client)

        # a browser session cookie must not turn the signature gate into a CSRF 403
        response = await client.post("/api/v1/billing/stripe-webhooks", content="{}")

        assert response.status_code == 400
        assert response.json() == {"error": "Webhook signature or secret missing."}
