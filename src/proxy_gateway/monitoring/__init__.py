"""
Gateway Monitoring

Request outcome store and Prometheus metrics.
"""

from __future__ import annotations

from .metrics import (
    AUTH_FAILURES,
    AUTH_SUCCESS,
    BACKEND_HEALTH,
    HEALTH_SWEEPS,
    NO_BACKEND_AVAILABLE,
    PROXY_REQUEST_DURATION,
    PROXY_REQUESTS,
)
from .outcomes import MetricsStore, MetricsSummary, RequestOutcome

__all__ = [
    "AUTH_FAILURES",
    "AUTH_SUCCESS",
    "BACKEND_HEALTH",
    "HEALTH_SWEEPS",
    "MetricsStore",
    "MetricsSummary",
    "NO_BACKEND_AVAILABLE",
    "PROXY_REQUESTS",
    "PROXY_REQUEST_DURATION",
    "RequestOutcome",
]
