"""
Registration, login and the /me endpoint.
"""
from datetime import datetime

import pytest
from httpx import AsyncClient
from jose import jwt

from app.core.config import settings


@pytest.mark.anyio
async def test_register_returns_token_and_user(client: AsyncClient):
    response = await client.post(
        "/api/auth/register",
        json={"username": "newbie", "email": "newbie@example.com", "password": "secret1"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["access_token"]
    assert data["user"]["username"] == "newbie"
    assert "hashed_password" not in data["user"]


@pytest.mark.anyio
async def test_register_duplicate_is_rejected(client: AsyncClient, register):
    await register("taken")

    response = await client.post(
        "/api/auth/register",
        json={"username": "taken", "email": "other@example.com", "password": "secret1"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "User already exists"


@pytest.mark.anyio
async def test_register_short_password(client: AsyncClient):
    response = await client.post(
        "/api/auth/register",
        json={"username": "shorty", "email": "shorty@example.com", "password": "123"},
    )
    assert response.status_code == 422


@pytest.mark.anyio
async def test_login_and_me(client: AsyncClient, register):
    user_id, _ = await register("loginuser", password="Password123!")

    response = await client.post(
        "/api/auth/login",
        json={"email": "loginuser@example.com", "password": "Password123!"},
    )
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["id"] == user_id


@pytest.mark.anyio
async def test_login_wrong_password(client: AsyncClient, register):
    await register("loginuser")

    response = await client.post(
        "/api/auth/login",
        json={"email": "loginuser@example.com", "password": "not-it"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid credentials"


@pytest.mark.anyio
async def test_me_with_bad_token(client: AsyncClient):
    response = await client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


@pytest.mark.anyio
async def test_token_expires_after_configured_hours(client: AsyncClient):
    response = await client.post(
        "/api/auth/register",
        json={"username": "timed", "email": "timed@example.com", "password": "secret1"},
    )
    claims = jwt.get_unverified_claims(response.json()["access_token"])

    lifetime = datetime.utcfromtimestamp(claims["exp"]) - datetime.utcnow()
    assert abs(lifetime.total_seconds() - settings.JWT_EXPIRATION_HOURS * 3600) < 60
    assert claims["username"] == "timed"
