"""
Prometheus Metrics Collection

Gateway metrics exported for scraping:
- Proxied request counts and latency per backend
- Backend health flags and health sweep counts
- Authentication successes and failures
"""

from __future__ import annotations

from typing import Any

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

_REGISTRY: CollectorRegistry = REGISTRY
_metrics_cache: dict[str, Any] = {}


def clear_metrics_cache() -> None:
    """Clear the metrics cache. Useful for testing."""
    _metrics_cache.clear()


def _find_registered(name: str) -> Any:
    for collector in list(_REGISTRY._collector_to_names.keys()):
        if getattr(collector, "_name", None) == name:
            _metrics_cache[name] = collector
            return collector
    return None


def _get_or_create_counter(
    name: str, documentation: str, labelnames: list[str] | None = None
) -> Counter:
    """Get existing Counter metric or create new one, handling duplicates."""
    if name in _metrics_cache:
        return _metrics_cache[name]

    try:
        metric = Counter(name, documentation, labelnames or [], registry=_REGISTRY)
        _metrics_cache[name] = metric
        return metric
    except ValueError:
        # Counter names are registered without the _total suffix
        existing = _find_registered(name.removesuffix("_total"))
        if existing is None:
            raise
        return existing


def _get_or_create_gauge(
    name: str, documentation: str, labelnames: list[str] | None = None
) -> Gauge:
    """Get existing Gauge metric or create new one, handling duplicates."""
    if name in _metrics_cache:
        return _metrics_cache[name]

    try:
        metric = Gauge(name, documentation, labelnames or [], registry=_REGISTRY)
        _metrics_cache[name] = metric
        return metric
    except ValueError:
        existing = _find_registered(name)
        if existing is None:
            raise
        return existing


def _get_or_create_histogram(
    name: str,
    documentation: str,
    labelnames: list[str] | None = None,
    buckets: tuple[float, ...] | None = None,
) -> Histogram:
    """Get existing Histogram metric or create new one, handling duplicates."""
    if name in _metrics_cache:
        return _metrics_cache[name]

    try:
        kwargs = {"buckets": buckets} if buckets else {}
        metric = Histogram(
            name, documentation, labelnames or [], registry=_REGISTRY, **kwargs
        )
        _metrics_cache[name] = metric
        return metric
    except ValueError:
        existing = _find_registered(name)
        if existing is None:
            raise
        return existing


# Proxied request metrics
PROXY_REQUESTS = _get_or_create_counter(
    "proxy_gateway_forwarded_requests_total",
    "Total number of requests forwarded to backend cores",
    ["backend", "status_code"],
)

PROXY_REQUEST_DURATION = _get_or_create_histogram(
    "proxy_gateway_forward_duration_seconds",
    "Backend round trip duration in seconds",
    ["backend"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

NO_BACKEND_AVAILABLE = _get_or_create_counter(
    "proxy_gateway_no_backend_total",
    "Requests rejected because no healthy backend was available",
)

# Backend health metrics
BACKEND_HEALTH = _get_or_create_gauge(
    "proxy_gateway_backend_health_status",
    "Backend health status (1=healthy, 0=unhealthy)",
    ["backend"],
)

HEALTH_SWEEPS = _get_or_create_counter(
    "proxy_gateway_health_sweeps_total",
    "Total number of backend health sweeps",
    ["trigger"],
)

# Authentication metrics
AUTH_SUCCESS = _get_or_create_counter(
    "proxy_gateway_auth_success_total",
    "Total number of successful authentications",
    ["auth_method"],
)

AUTH_FAILURES = _get_or_create_counter(
    "proxy_gateway_auth_failures_total",
    "Total number of failed authentications",
    ["auth_method", "failure_reason"],
)
