"""
Health Check Endpoints

Gateway health, readiness and liveness endpoints for monitoring and load
balancing, plus the service information root.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import structlog
from fastapi import APIRouter, Request

from proxy_gateway.errors import ServiceUnavailable
from proxy_gateway.models.health import (
    CoreHealth,
    GatewayHealthResponse,
    LivenessResponse,
    ReadinessResponse,
)

router = APIRouter()
logger = structlog.get_logger()


@router.get(
    "/health",
    response_model=GatewayHealthResponse,
    summary="Gateway health check",
    description="""
Check gateway health including the last known state of every backend core.

**Health Status:**
- `healthy`: All backend cores reachable
- `degraded`: Some backend cores down
- `unhealthy`: No backend core reachable

Backend state comes from the most recent health sweep; this endpoint does
not probe.

**No authentication required** - public endpoint for monitoring.
    """,
)
async def health_check(request: Request) -> GatewayHealthResponse:
    """Report gateway status with per-backend details."""
    state = request.app.state
    backends = state.registry.list()
    healthy = sum(1 for b in backends if b.healthy)

    if healthy == len(backends):
        overall = "healthy"
    elif healthy:
        overall = "degraded"
    else:
        overall = "unhealthy"

    return GatewayHealthResponse(
        status=overall,
        version=state.settings.GATEWAY_VERSION,
        timestamp=datetime.now(UTC).isoformat(),
        cores=[CoreHealth(name=b.name, url=b.url, healthy=b.healthy) for b in backends],
        healthy_count=healthy,
        total_count=len(backends),
        active_sessions=await state.session_store.get_session_count(),
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Service readiness check",
    description="""
Check if the gateway can route traffic right now.

**Returns 503 if no backend core is healthy.**

**No authentication required** - public endpoint for orchestration.
    """,
)
async def readiness_check(request: Request) -> ReadinessResponse:
    """
    Readiness check based on the healthy set.

    Raises:
        ServiceUnavailable: If no backend is healthy
    """
    healthy = request.app.state.registry.healthy_backends()

    if not healthy:
        logger.warning("Readiness check failed, no healthy backend")
        raise ServiceUnavailable("Service not ready")

    return ReadinessResponse(healthy_cores=[b.name for b in healthy])


@router.get("/live", response_model=LivenessResponse, summary="Service liveness check")
async def liveness_check() -> LivenessResponse:
    """Always alive while the process serves requests."""
    return LivenessResponse()


@router.get("/", summary="Service information")
async def service_info(request: Request) -> dict[str, Any]:
    """Describe the gateway and its main endpoints."""
    settings = request.app.state.settings
    return {
        "name": settings.GATEWAY_NAME,
        "version": settings.GATEWAY_VERSION,
        "endpoints": {
            "auth": "/auth",
            "proxy": "/proxy",
            "api": "/api",
            "health": "/health",
        },
        "cores": [b.name for b in request.app.state.registry.list()],
    }
