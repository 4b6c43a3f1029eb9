"""Shared pytest fixtures for the proxy gateway tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable

import httpx
import pytest
from fastapi import FastAPI

from proxy_gateway.config import ProxySettings
from proxy_gateway.main import create_app

CORE_PORTS = {4001: "core-api-1", 4002: "core-api-2", 4003: "core-api-3"}


class FakeCores:
    """
    Backend cores served through ``httpx.MockTransport``.

    Each core echoes which backend answered along with the request it saw.
    Cores listed in ``down`` fail their health checks and refuse connections.
    """

    def __init__(self) -> None:
        self.down: set[str] = set()
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        name = CORE_PORTS[request.url.port]

        if name in self.down:
            raise httpx.ConnectError("Connection refused", request=request)

        if request.url.path == "/health":
            return httpx.Response(200, json={"status": "ok"})

        self.requests.append(request)
        return httpx.Response(
            200,
            json={
                "backend": name,
                "method": request.method,
                "path": request.url.path,
                "query": request.url.query.decode(),
                "body": request.content.decode(),
            },
            headers={"X-Backend": name},
        )


@pytest.fixture
def settings() -> ProxySettings:
    """Settings with background behaviour switched off."""
    return ProxySettings(
        ENABLE_METRICS=False,
        HEALTH_CHECK_ON_STARTUP=False,
        HEALTH_CHECK_SAMPLE_RATE=0.0,
        JWT_SECRET="test-secret",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def fake_cores() -> FakeCores:
    return FakeCores()


@pytest.fixture
def app(settings: ProxySettings, fake_cores: FakeCores) -> FastAPI:
    return create_app(settings, backend_transport=httpx.MockTransport(fake_cores.handler))


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


@pytest.fixture
def login(client: httpx.AsyncClient) -> Callable:
    """Log in and return the response body."""

    async def _login(username: str = "admin", password: str = "admin123") -> dict:
        response = await client.post(
            "/auth/login", json={"username": username, "password": password}
        )
        assert response.status_code == 200
        return response.json()

    return _login
