"""
Forwarding Engine

Sends an inbound request to the selected backend core and relays the
response. Every forwarded request gets a correlation id and produces exactly
one :class:`RequestOutcome`, including when the backend fails.
"""

from __future__ import annotations

import asyncio
import time
from datetime import UTC, datetime
from uuid import uuid4

import httpx
import structlog
from fastapi import Request, Response

from proxy_gateway.errors import BadGateway
from proxy_gateway.monitoring.metrics import PROXY_REQUEST_DURATION, PROXY_REQUESTS
from proxy_gateway.monitoring.outcomes import (
    STATUS_CLIENT_CLOSED,
    STATUS_FORWARD_FAILED,
    MetricsStore,
    RequestOutcome,
)
from proxy_gateway.routing.registry import Backend

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)

# Not forwarded upstream; httpx and the backend recompute them
_REQUEST_SKIP_HEADERS = HOP_BY_HOP_HEADERS | {"host", "content-length"}
# Not relayed downstream; httpx already decoded the body
_RESPONSE_SKIP_HEADERS = HOP_BY_HOP_HEADERS | {"content-length", "content-encoding"}


class ClientDisconnected(Exception):
    """The client went away before the backend answered."""


class ForwardingEngine:
    """
    Forward requests to backend cores.

    Applies a total timeout to each backend round trip and cancels the
    in-flight call when the client disconnects.
    """

    def __init__(
        self,
        metrics_store: MetricsStore,
        request_timeout: float = 30.0,
        proxy_source: str = "core-proxy-gateway",
        transport: httpx.AsyncBaseTransport | None = None,
        disconnect_poll_interval: float = 0.1,
    ) -> None:
        """
        Initialize forwarding engine.

        Args:
            metrics_store: Store receiving one outcome per forwarded request
            request_timeout: Total timeout for the backend round trip in seconds
            proxy_source: Value of the X-Proxy-Source header
            transport: Optional HTTP transport (used by tests)
            disconnect_poll_interval: How often to check for client disconnects
        """
        self.metrics_store = metrics_store
        self.request_timeout = request_timeout
        self.proxy_source = proxy_source
        self.disconnect_poll_interval = disconnect_poll_interval
        self._http_client = httpx.AsyncClient(
            timeout=request_timeout,
            transport=transport,
            follow_redirects=False,
        )

    def _upstream_headers(self, request: Request, correlation_id: str) -> dict[str, str]:
        headers = {
            name: value
            for name, value in request.headers.items()
            if name.lower() not in _REQUEST_SKIP_HEADERS
        }

        client_ip = request.client.host if request.client else None
        if client_ip:
            prior = request.headers.get("x-forwarded-for")
            headers["x-forwarded-for"] = f"{prior}, {client_ip}" if prior else client_ip
        if "host" in request.headers:
            headers["x-forwarded-host"] = request.headers["host"]
        headers["x-forwarded-proto"] = request.url.scheme
        headers["x-proxy-source"] = self.proxy_source
        headers[REQUEST_ID_HEADER.lower()] = correlation_id
        return headers

    async def _watch_disconnect(self, request: Request) -> None:
        while not await request.is_disconnected():
            await asyncio.sleep(self.disconnect_poll_interval)

    async def _send(
        self,
        request: Request,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes,
    ) -> httpx.Response:
        """
        Perform the backend round trip, racing it against client disconnect.

        Raises:
            TimeoutError: If the round trip exceeds the total timeout
            httpx.HTTPError: On transport failures
            ClientDisconnected: If the client disconnected first
        """
        call = asyncio.create_task(
            self._http_client.request(
                method,
                url,
                headers=headers,
                content=body,
                params=request.url.query or None,
            )
        )
        watcher = asyncio.create_task(self._watch_disconnect(request))

        try:
            done, _ = await asyncio.wait(
                {call, watcher},
                timeout=self.request_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            # Also reached when the forwarding task itself is cancelled
            watcher.cancel()
            if not call.done():
                call.cancel()
                await asyncio.wait({call})

        if call in done:
            return call.result()
        if watcher in done:
            raise ClientDisconnected()
        raise TimeoutError(f"Backend did not respond within {self.request_timeout}s")

    def _record(
        self,
        correlation_id: str,
        request: Request,
        backend: Backend,
        started: float,
        status_code: int,
    ) -> RequestOutcome:
        elapsed = time.perf_counter() - started
        outcome = RequestOutcome(
            correlation_id=correlation_id,
            method=request.method,
            path=request.url.path,
            backend=backend.name,
            elapsed_ms=elapsed * 1000,
            status_code=status_code,
            timestamp=datetime.now(UTC),
        )
        self.metrics_store.record(outcome)

        PROXY_REQUESTS.labels(backend=backend.name, status_code=status_code).inc()
        PROXY_REQUEST_DURATION.labels(backend=backend.name).observe(elapsed)
        return outcome

    async def forward(self, request: Request, backend: Backend) -> Response:
        """
        Forward a request to a backend and relay its response.

        Args:
            request: Inbound request
            backend: Selected backend

        Returns:
            Response relaying the backend's status, headers and body

        Raises:
            BadGateway: If the backend timed out or could not be reached
        """
        correlation_id = str(uuid4())
        structlog.contextvars.bind_contextvars(request_id=correlation_id)

        url = f"{backend.url.rstrip('/')}{request.url.path}"
        headers = self._upstream_headers(request, correlation_id)
        body = await request.body()

        logger.info(
            "Proxying request",
            method=request.method,
            path=request.url.path,
            backend=backend.name,
        )

        started = time.perf_counter()
        try:
            upstream = await self._send(request, request.method, url, headers, body)

        except ClientDisconnected:
            self._record(correlation_id, request, backend, started, STATUS_CLIENT_CLOSED)
            logger.info("Client disconnected, backend call cancelled", backend=backend.name)
            return Response(status_code=STATUS_CLIENT_CLOSED)

        except asyncio.CancelledError:
            self._record(correlation_id, request, backend, started, STATUS_CLIENT_CLOSED)
            logger.info("Forwarding cancelled, backend call cancelled", backend=backend.name)
            raise

        except (TimeoutError, httpx.HTTPError) as e:
            self._record(correlation_id, request, backend, started, STATUS_FORWARD_FAILED)
            logger.error(
                "Proxy error",
                backend=backend.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise BadGateway(correlation_id) from e

        outcome = self._record(correlation_id, request, backend, started, upstream.status_code)
        logger.info(
            "Response from backend",
            backend=backend.name,
            status_code=upstream.status_code,
            elapsed_ms=round(outcome.elapsed_ms, 2),
        )

        response = Response(content=upstream.content, status_code=upstream.status_code)
        # multi_items keeps repeated headers such as Set-Cookie apart
        for name, value in upstream.headers.multi_items():
            if name.lower() not in _RESPONSE_SKIP_HEADERS:
                response.headers.append(name, value)
        response.headers[REQUEST_ID_HEADER] = correlation_id
        return response

    async def close(self) -> None:
        """Close HTTP client and cleanup resources."""
        await self._http_client.aclose()
