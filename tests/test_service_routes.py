"""Tests for gateway service endpoints, error rendering and configuration."""

import json
from collections.abc import Callable

import httpx
import pytest
from fastapi import FastAPI

from proxy_gateway.config import ProxySettings
from proxy_gateway.main import create_app


@pytest.mark.asyncio
async def test_root_info(client: httpx.AsyncClient) -> None:
    response = await client.get("/")

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Core Proxy Gateway"
    assert body["cores"] == ["core-api-1", "core-api-2", "core-api-3"]


@pytest.mark.asyncio
async def test_health_all_backends_up(client: httpx.AsyncClient) -> None:
    response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["cores"][0] == {
        "name": "core-api-1",
        "url": "http://localhost:4001",
        "healthy": True,
    }
    assert body["healthy_count"] == 3
    assert body["total_count"] == 3
    assert body["active_sessions"] == 0


@pytest.mark.asyncio
async def test_health_reports_each_core_and_sessions(
    client: httpx.AsyncClient, app: FastAPI, login: Callable
) -> None:
    await login("user", "user123")
    app.state.registry.set_healthy("core-api-2", False)

    body = (await client.get("/health")).json()

    assert [(c["name"], c["healthy"]) for c in body["cores"]] == [
        ("core-api-1", True),
        ("core-api-2", False),
        ("core-api-3", True),
    ]
    assert body["healthy_count"] == 2
    assert body["active_sessions"] == 1


@pytest.mark.asyncio
async def test_health_degraded_and_unhealthy(client: httpx.AsyncClient, app: FastAPI) -> None:
    app.state.registry.set_healthy("core-api-2", False)
    assert (await client.get("/health")).json()["status"] == "degraded"

    app.state.registry.set_healthy("core-api-1", False)
    app.state.registry.set_healthy("core-api-3", False)
    assert (await client.get("/health")).json()["status"] == "unhealthy"


@pytest.mark.asyncio
async def test_readiness(client: httpx.AsyncClient, app: FastAPI) -> None:
    ready = await client.get("/ready")
    assert ready.status_code == 200
    assert ready.json() == {
        "ready": True,
        "healthy_cores": ["core-api-1", "core-api-2", "core-api-3"],
    }

    app.state.registry.set_healthy("core-api-1", False)
    assert (await client.get("/ready")).json()["healthy_cores"] == ["core-api-2", "core-api-3"]

    for backend in app.state.registry.list():
        app.state.registry.set_healthy(backend.name, False)

    not_ready = await client.get("/ready")
    assert not_ready.status_code == 503
    assert not_ready.json()["error"] == "service_unavailable"


@pytest.mark.asyncio
async def test_liveness(client: httpx.AsyncClient) -> None:
    response = await client.get("/live")

    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


@pytest.mark.asyncio
async def test_trace_id_header(client: httpx.AsyncClient) -> None:
    response = await client.get("/live")
    assert response.headers["x-trace-id"]


@pytest.mark.asyncio
async def test_unknown_route_is_not_found(client: httpx.AsyncClient) -> None:
    response = await client.get("/does-not-exist")

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


@pytest.mark.asyncio
async def test_lifespan_runs_startup_sweep(settings: ProxySettings, fake_cores) -> None:
    settings = settings.model_copy(update={"HEALTH_CHECK_ON_STARTUP": True})
    app = create_app(settings, backend_transport=httpx.MockTransport(fake_cores.handler))
    fake_cores.down.add("core-api-2")

    async with app.router.lifespan_context(app):
        assert app.state.registry.get("core-api-2").healthy is False
        assert app.state.health_monitor.running

    assert not app.state.health_monitor.running


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(
        "PROXY_BACKENDS",
        json.dumps([{"name": "edge", "url": "http://edge:9000", "health_check": "/ping"}]),
    )
    monkeypatch.setenv("PROXY_PATH_ROUTES", json.dumps({"/api/edge": "edge"}))
    monkeypatch.setenv("PROXY_SESSION_TIMEOUT_SECONDS", "60")

    settings = ProxySettings()

    assert settings.BACKENDS[0].name == "edge"
    assert settings.BACKENDS[0].health_check == "/ping"
    assert settings.PATH_ROUTES == {"/api/edge": "edge"}
    assert settings.SESSION_TIMEOUT_SECONDS == 60
