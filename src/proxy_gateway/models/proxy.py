"""
Proxy Administration Models

Pydantic models for backend status, health sweeps and request metrics.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from proxy_gateway.monitoring.outcomes import MetricsSummary, RequestOutcome


class BackendStatus(BaseModel):
    """Backend core with its current health flag."""

    name: str = Field(..., description="Backend name")
    url: str = Field(..., description="Backend base URL")
    health_check: str = Field(..., description="Health check path")
    weight: int = Field(..., description="Relative weight")
    healthy: bool = Field(..., description="Current health flag")


class BackendStatusResponse(BaseModel):
    """Backend list response."""

    success: bool = True
    cores: list[BackendStatus]
    active_count: int = Field(..., description="Number of healthy backends")
    total_count: int = Field(..., description="Number of configured backends")


class HealthSweepResponse(BaseModel):
    """Forced health sweep response."""

    success: bool = True
    message: str = "Health check completed"
    cores: list[BackendStatus]


class MetricsResponse(BaseModel):
    """Request metrics response."""

    success: bool = True
    summary: MetricsSummary
    recent: list[RequestOutcome]


class ProxyHealthResponse(BaseModel):
    """Proxy liveness response."""

    success: bool = True
    status: str = "healthy"
    timestamp: str
    uptime_seconds: float
