"""
Proxy Gateway - FastAPI Application

Main application entry point for the core proxy gateway.
Routes /api traffic to healthy backend cores with session and token auth.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncGenerator

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from proxy_gateway.auth.jwt import TokenManager
from proxy_gateway.auth.resolver import IdentityResolver
from proxy_gateway.auth.session import SessionStore
from proxy_gateway.auth.users import InMemoryUserStore
from proxy_gateway.config import ProxySettings, settings as default_settings
from proxy_gateway.errors import BadRequest, GatewayError, InternalError, SessionExpired
from proxy_gateway.middleware.logging import configure_logging, logging_middleware
from proxy_gateway.monitoring.outcomes import MetricsStore
from proxy_gateway.routes import auth, health, proxy
from proxy_gateway.routing.health import HealthMonitor
from proxy_gateway.routing.proxy import ForwardingEngine
from proxy_gateway.routing.registry import BackendRegistry
from proxy_gateway.routing.selector import CoreSelector

logger = structlog.get_logger()

_HTTP_ERROR_KINDS = {404: "not_found", 405: "method_not_allowed"}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: ProxySettings = app.state.settings
    monitor: HealthMonitor = app.state.health_monitor

    try:
        logger.info(
            "Starting proxy gateway",
            version=settings.GATEWAY_VERSION,
            name=settings.GATEWAY_NAME,
            backends=[b.name for b in app.state.registry.list()],
        )

        if settings.HEALTH_CHECK_ON_STARTUP:
            statuses = await monitor.sweep(trigger="startup")
            logger.info("Initial health check completed", statuses=statuses)

        await monitor.start()

        yield
    finally:
        logger.info("Shutting down proxy gateway")

        await monitor.close()
        logger.info("Health monitor closed")

        await app.state.forwarding_engine.close()
        logger.info("Forwarding engine closed")


def _setup_exception_handlers(app: FastAPI) -> None:
    """Render every error as ``{"error": kind, "message": text}``."""

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        response = JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers=exc.headers,
        )
        if isinstance(exc, SessionExpired):
            response.delete_cookie(request.app.state.settings.SESSION_COOKIE_NAME)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        message = "; ".join(
            f"{'.'.join(str(p) for p in e['loc'] if p != 'body')}: {e['msg']}" for e in errors
        )
        logger.info("Malformed request", errors=len(errors))
        error = BadRequest(message or None)
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": _HTTP_ERROR_KINDS.get(exc.status_code, "http_error"),
                "message": str(exc.detail),
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", error_type=type(exc).__name__)
        error = InternalError()
        return JSONResponse(status_code=error.status_code, content=error.to_dict())


def create_app(
    settings: ProxySettings | None = None,
    backend_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Configuration override (defaults to environment settings)
        backend_transport: HTTP transport for backend traffic (used by tests)
    """
    settings = settings or default_settings
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.GATEWAY_NAME,
        description="Reverse proxy routing API traffic to healthy backend cores",
        version=settings.GATEWAY_VERSION,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    # Components live on app.state so every app instance is self-contained
    registry = BackendRegistry.from_config(settings.BACKENDS)
    metrics_store = MetricsStore(capacity=settings.METRICS_CAPACITY)
    session_store = SessionStore(timeout=timedelta(seconds=settings.SESSION_TIMEOUT_SECONDS))
    token_manager = TokenManager.from_settings(settings)
    user_store = InMemoryUserStore()

    app.state.settings = settings
    app.state.started_at = time.monotonic()
    app.state.registry = registry
    app.state.metrics_store = metrics_store
    app.state.session_store = session_store
    app.state.token_manager = token_manager
    app.state.user_store = user_store
    app.state.identity_resolver = IdentityResolver(
        sessions=session_store,
        tokens=token_manager,
        users=user_store,
        cookie_name=settings.SESSION_COOKIE_NAME,
    )
    app.state.selector = CoreSelector(registry, settings.PATH_ROUTES)
    app.state.health_monitor = HealthMonitor(
        registry,
        interval_seconds=settings.HEALTH_CHECK_INTERVAL,
        timeout_seconds=settings.HEALTH_CHECK_TIMEOUT,
        sample_rate=settings.HEALTH_CHECK_SAMPLE_RATE,
        transport=backend_transport,
    )
    app.state.forwarding_engine = ForwardingEngine(
        metrics_store,
        request_timeout=settings.REQUEST_TIMEOUT,
        proxy_source=settings.PROXY_SOURCE,
        transport=backend_transport,
    )

    _setup_exception_handlers(app)

    # Add logging middleware
    @app.middleware("http")
    async def add_logging_middleware(request, call_next):
        return await logging_middleware(request, call_next)

    # Include routers
    app.include_router(health.router, tags=["health"])
    app.include_router(auth.router)
    app.include_router(proxy.router)
    app.include_router(proxy.api_router)

    # Prometheus instrumentation
    if settings.ENABLE_METRICS:
        Instrumentator().instrument(app).expose(app, endpoint="/metrics")

    return app


# Create the app instance
app = create_app()


def main() -> None:
    """Run the gateway with uvicorn."""
    import uvicorn

    uvicorn.run(
        "proxy_gateway.main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        reload=default_settings.DEBUG,
        log_level=default_settings.LOG_LEVEL.lower(),
        access_log=True,
    )


if __name__ == "__main__":
    main()
