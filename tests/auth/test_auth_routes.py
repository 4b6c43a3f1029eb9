"""Tests for authentication endpoints."""

from collections.abc import Callable
from datetime import timedelta

import httpx
import pytest
from fastapi import FastAPI


def session_cookie(session_id: str) -> dict[str, str]:
    return {"Cookie": f"proxy_session={session_id}"}


@pytest.mark.asyncio
async def test_login_success(client: httpx.AsyncClient, app: FastAPI) -> None:
    response = await client.post(
        "/auth/login", json={"username": "admin", "password": "admin123"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["user"]["role"] == "admin"
    assert data["user"]["permissions"] == ["read", "write", "delete"]
    assert data["token_type"] == "Bearer"
    assert data["expires_in"] == 24 * 3600
    assert app.state.token_manager.verify(data["token"]).username == "admin"

    set_cookie = response.headers["set-cookie"]
    assert f"proxy_session={data['session_id']}" in set_cookie
    assert "httponly" in set_cookie.lower()
    assert await app.state.session_store.get_session_count() == 1


@pytest.mark.asyncio
async def test_login_wrong_password(client: httpx.AsyncClient, app: FastAPI) -> None:
    response = await client.post(
        "/auth/login", json={"username": "admin", "password": "wrong-password"}
    )

    assert response.status_code == 401
    assert response.json()["error"] == "unauthorized"
    assert "set-cookie" not in response.headers
    assert await app.state.session_store.get_session_count() == 0


@pytest.mark.asyncio
async def test_login_unknown_user(client: httpx.AsyncClient) -> None:
    response = await client.post(
        "/auth/login", json={"username": "nobody", "password": "secret"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"username": "ad", "password": "admin123"},
        {"username": "bad-name!", "password": "admin123"},
        {"username": "admin", "password": "ab"},
        {"username": "admin"},
        {},
    ],
)
async def test_login_malformed_payload(client: httpx.AsyncClient, payload: dict) -> None:
    response = await client.post("/auth/login", json=payload)

    assert response.status_code == 400
    assert response.json()["error"] == "bad_request"


@pytest.mark.asyncio
async def test_me_with_session(client: httpx.AsyncClient, login: Callable) -> None:
    data = await login()
    client.cookies.clear()

    response = await client.get("/auth/me", headers=session_cookie(data["session_id"]))

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["username"] == "admin"
    assert body["session"]["session_id"] == data["session_id"]


@pytest.mark.asyncio
async def test_me_with_token(client: httpx.AsyncClient, login: Callable) -> None:
    data = await login("user", "user123")
    client.cookies.clear()

    response = await client.get(
        "/auth/me", headers={"Authorization": f"Bearer {data['token']}"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["username"] == "user"
    assert body["user"]["role"] == "user"
    assert body["session"] is None


@pytest.mark.asyncio
async def test_me_requires_auth(client: httpx.AsyncClient) -> None:
    response = await client.get("/auth/me")

    assert response.status_code == 401
    assert response.json()["error"] == "unauthorized"


@pytest.mark.asyncio
async def test_expired_session(client: httpx.AsyncClient, app: FastAPI, login: Callable) -> None:
    data = await login()
    client.cookies.clear()
    app.state.session_store.timeout = timedelta(0)

    response = await client.get("/auth/me", headers=session_cookie(data["session_id"]))

    assert response.status_code == 401
    assert response.json()["error"] == "session_expired"
    assert await app.state.session_store.get_session_count() == 0


@pytest.mark.asyncio
async def test_status_anonymous(client: httpx.AsyncClient) -> None:
    response = await client.get("/auth/status")

    assert response.status_code == 200
    assert response.json() == {"is_authenticated": False, "user": None, "session_valid": False}


@pytest.mark.asyncio
async def test_status_with_session(client: httpx.AsyncClient, login: Callable) -> None:
    data = await login()
    client.cookies.clear()

    response = await client.get("/auth/status", headers=session_cookie(data["session_id"]))

    body = response.json()
    assert body["is_authenticated"] is True
    assert body["session_valid"] is True
    assert body["user"]["username"] == "admin"


@pytest.mark.asyncio
async def test_logout_destroys_session(
    client: httpx.AsyncClient, app: FastAPI, login: Callable
) -> None:
    data = await login()
    client.cookies.clear()

    response = await client.post("/auth/logout", headers=session_cookie(data["session_id"]))

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert await app.state.session_store.get_session_count() == 0

    after = await client.get("/auth/me", headers=session_cookie(data["session_id"]))
    assert after.status_code == 401


@pytest.mark.asyncio
async def test_relogin_replaces_session(
    client: httpx.AsyncClient, app: FastAPI, login: Callable
) -> None:
    first = await login()
    client.cookies.clear()

    response = await client.post(
        "/auth/login",
        json={"username": "admin", "password": "admin123"},
        headers=session_cookie(first["session_id"]),
    )

    assert response.status_code == 200
    assert response.json()["session_id"] != first["session_id"]
    assert await app.state.session_store.get_session_count() == 1


@pytest.mark.asyncio
async def test_refresh_token(client: httpx.AsyncClient, app: FastAPI, login: Callable) -> None:
    data = await login()

    response = await client.post("/auth/refresh", json={"refreshToken": data["token"]})

    assert response.status_code == 200
    token = response.json()["token"]
    assert token != data["token"]
    assert app.state.token_manager.verify(token).username == "admin"


@pytest.mark.asyncio
async def test_refresh_invalid_token(client: httpx.AsyncClient) -> None:
    response = await client.post("/auth/refresh", json={"refresh_token": "garbage"})

    assert response.status_code == 401
    assert response.json()["error"] == "unauthorized"


@pytest.mark.asyncio
async def test_refresh_malformed(client: httpx.AsyncClient) -> None:
    response = await client.post("/auth/refresh", json={})

    assert response.status_code == 400
    assert response.json()["error"] == "bad_request"
