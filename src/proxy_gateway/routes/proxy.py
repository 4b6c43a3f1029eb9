"""
Proxy Routes

Backend administration endpoints under ``/proxy`` and the proxied request
path under ``/api``.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Query, Request, Response

from proxy_gateway.auth.dependencies import optional_auth, require_admin, require_auth
from proxy_gateway.auth.models import Identity
from proxy_gateway.errors import NotFound, ServiceUnavailable
from proxy_gateway.models.proxy import (
    BackendStatus,
    BackendStatusResponse,
    HealthSweepResponse,
    MetricsResponse,
    ProxyHealthResponse,
)
from proxy_gateway.monitoring.metrics import NO_BACKEND_AVAILABLE

logger = structlog.get_logger()

router = APIRouter(prefix="/proxy", tags=["proxy"])
api_router = APIRouter(tags=["proxied"])

PROXIED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def _backend_statuses(request: Request) -> list[BackendStatus]:
    return [BackendStatus(**b.to_dict()) for b in request.app.state.registry.list()]


@router.get("/status", response_model=BackendStatusResponse)
async def backend_status(
    request: Request,
    identity: Annotated[Identity, Depends(require_auth)],
) -> BackendStatusResponse:
    """List backend cores with their health flags."""
    cores = _backend_statuses(request)
    return BackendStatusResponse(
        cores=cores,
        active_count=sum(1 for c in cores if c.healthy),
        total_count=len(cores),
    )


@router.get("/cores/{name}", response_model=BackendStatus)
async def core_detail(
    request: Request,
    name: str,
    identity: Annotated[Identity, Depends(require_auth)],
) -> BackendStatus:
    """Get one backend core by name."""
    backend = request.app.state.registry.get(name)
    if backend is None:
        raise NotFound(f"Unknown core: {name}")
    return BackendStatus(**backend.to_dict())


@router.get("/metrics", response_model=MetricsResponse)
async def request_metrics(
    request: Request,
    identity: Annotated[Identity, Depends(require_admin)],
    limit: Annotated[int | None, Query(ge=0, le=1000, description="Recent records to return")] = None,
) -> MetricsResponse:
    """Summarize forwarded request outcomes. Admin only."""
    store = request.app.state.metrics_store
    if limit is None:
        limit = request.app.state.settings.METRICS_RECENT_DEFAULT

    return MetricsResponse(summary=store.summarize(), recent=store.recent(limit))


@router.post("/health-check", response_model=HealthSweepResponse)
async def force_health_check(
    request: Request,
    identity: Annotated[Identity, Depends(require_admin)],
) -> HealthSweepResponse:
    """Probe every backend now and return the updated flags. Admin only."""
    logger.info("Manual health check requested", username=identity.username)
    await request.app.state.health_monitor.sweep(trigger="manual")
    return HealthSweepResponse(cores=_backend_statuses(request))


@router.get("/health", response_model=ProxyHealthResponse)
async def proxy_health(request: Request) -> ProxyHealthResponse:
    """Public liveness endpoint of the proxy itself."""
    return ProxyHealthResponse(
        timestamp=datetime.now(UTC).isoformat(),
        uptime_seconds=time.monotonic() - request.app.state.started_at,
    )


@api_router.api_route("/api/{path:path}", methods=PROXIED_METHODS)
async def route_and_forward(
    request: Request,
    path: str,
    identity: Annotated[Identity | None, Depends(optional_auth)],
) -> Response:
    """
    Route a request to a backend core and relay its response.

    Raises:
        ServiceUnavailable: If no backend is healthy (nothing is forwarded)
        BadGateway: If the selected backend fails
    """
    state = request.app.state
    state.health_monitor.maybe_trigger_sweep()

    selection = state.selector.select(request.url.path, identity)
    if selection is None:
        NO_BACKEND_AVAILABLE.inc()
        raise ServiceUnavailable()

    return await state.forwarding_engine.forward(request, selection.backend)
