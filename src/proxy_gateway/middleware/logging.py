"""
Logging Middleware

Request/response logging with structured logging and request tracing.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable

import structlog
from fastapi import Request, Response

logger = structlog.get_logger()


def configure_logging(level: str = "INFO") -> None:
    """Install a structlog level filter and merge request context into events."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        cache_logger_on_first_use=True,
    )


async def logging_middleware(request: Request, call_next: Callable) -> Response:
    """
    Add structured logging and request tracing.

    Generates a trace ID for the whole request. The forwarding engine binds
    its own correlation id on proxied requests.
    """
    trace_id = str(uuid.uuid4())

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        trace_id=trace_id,
        method=request.method,
        path=request.url.path,
        client_host=request.client.host if request.client else None,
    )

    start_time = time.time()

    try:
        response = await call_next(request)

        logger.info(
            "Request completed",
            status_code=response.status_code,
            duration=time.time() - start_time,
        )

        response.headers["X-Trace-ID"] = trace_id
        return response

    except Exception as exc:
        logger.error(
            "Request failed",
            error=str(exc),
            error_type=type(exc).__name__,
            duration=time.time() - start_time,
            exc_info=True,
        )
        raise
