"""Tests for registration, approval and login."""

import pytest

from conftest import auth_headers


async def _register(client, email: str = "new@example.com", password: str = "secret123"):
    return await client.post(
        "/api/v1/auth/register",
        json={"email": email, "name": "New User", "password": password},
    )


@pytest.mark.asyncio
async def test_register_creates_pending_account(client) -> None:
    response = await _register(client)

    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "new@example.com"
    assert body["approval_status"] == "pending"
    assert body["role"] == "user"
    assert "password_hash" not in body


@pytest.mark.asyncio
async def test_register_rejects_duplicate_email(client) -> None:
    await _register(client)

    response = await _register(client, email="NEW@example.com")

    assert response.status_code == 409
    assert response.json()["code"] == "EMAIL_TAKEN"


@pytest.mark.asyncio
async def test_register_rejects_short_password(client) -> None:
    response = await _register(client, password="123")

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["details"][0]["field"] == "password"


@pytest.mark.asyncio
async def test_pending_user_cannot_log_in_until_approved(client, seed) -> None:
    admin = await seed.user(name="Admin", role="admin")
    registered = (await _register(client)).json()
    credentials = {"email": "new@example.com", "password": "secret123"}

    pending = await client.post("/api/v1/auth/login", json=credentials)
    assert pending.status_code == 403
    assert pending.json()["code"] == "ACCOUNT_NOT_APPROVED"

    approved = await client.post(
        f"/api/v1/users/{registered['id']}/approve", headers=auth_headers(admin)
    )
    assert approved.status_code == 200
    assert approved.json()["approval_status"] == "approved"

    login = await client.post("/api/v1/auth/login", json=credentials)
    assert login.status_code == 200
    body = login.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["id"] == registered["id"]

    me = await client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"}
    )
    assert me.status_code == 200
    assert me.json()["email"] == "new@example.com"


@pytest.mark.asyncio
async def test_rejected_user_cannot_log_in(client, seed) -> None:
    await seed.user(approval_status="rejected", email="gone@example.com")

    response = await client.post(
        "/api/v1/auth/login", json={"email": "gone@example.com", "password": "secret123"}
    )

    assert response.status_code == 403
    assert response.json()["code"] == "ACCOUNT_REJECTED"


@pytest.mark.asyncio
async def test_wrong_password_is_unauthorized(client, seed) -> None:
    await seed.user(email="alice@example.com")

    response = await client.post(
        "/api/v1/auth/login", json={"email": "alice@example.com", "password": "wrong-pass"}
    )

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_CREDENTIALS"


@pytest.mark.asyncio
async def test_requests_without_token_are_unauthorized(client) -> None:
    response = await client.get("/api/v1/auth/me")

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"
    assert response.json()["code"] == "NOT_AUTHENTICATED"


@pytest.mark.asyncio
async def test_invalid_token_is_unauthorized(client) -> None:
    response = await client.get(
        "/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"}
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unapproved_user_token_is_refused(client, seed) -> None:
    user = await seed.user(approval_status="pending")

    response = await client.get("/api/v1/auth/me", headers=auth_headers(user))

    assert response.status_code == 401
    assert response.json()["code"] == "ACCOUNT_NOT_APPROVED"


@pytest.mark.asyncio
async def test_only_admins_can_approve(client, seed) -> None:
    user = await seed.user()
    pending = await seed.user(approval_status="pending")

    response = await client.post(
        f"/api/v1/users/{pending.id}/approve", headers=auth_headers(user)
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_non_admins_only_list_approved_users(client, seed) -> None:
    user = await seed.user(name="Alice")
    await seed.user(name="Bob", approval_status="pending")

    response = await client.get("/api/v1/users", headers=auth_headers(user))

    assert response.status_code == 200
    assert [u["name"] for u in response.json()] == ["Alice"]
