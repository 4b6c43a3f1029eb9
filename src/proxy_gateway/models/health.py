"""
Gateway Health Models

Responses of the public monitoring endpoints. Backend state is the last
value written by a health sweep.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

GatewayStatus = Literal["healthy", "degraded", "unhealthy"]


class CoreHealth(BaseModel):
    """Last known reachability of one backend core."""

    name: str = Field(..., description="Backend name")
    url: str = Field(..., description="Backend base URL")
    healthy: bool


class GatewayHealthResponse(BaseModel):
    """
    Gateway health with one entry per backend core.

    ``status`` is ``healthy`` when every core is up, ``degraded`` when some
    are, and ``unhealthy`` when none is.
    """

    status: GatewayStatus
    version: str = Field(..., description="Gateway version")
    timestamp: str = Field(..., description="Check timestamp in ISO format")
    cores: list[CoreHealth]
    healthy_count: int = Field(..., ge=0)
    total_count: int = Field(..., ge=0)
    active_sessions: int = Field(..., ge=0, description="Sessions currently held in memory")


class ReadinessResponse(BaseModel):
    ready: bool = True
    healthy_cores: list[str] = Field(..., description="Cores eligible for routing")


class LivenessResponse(BaseModel):
    status: Literal["alive"] = "alive"
