"""
Backend Health Monitoring

Probes backend cores and writes the results into the registry. Sweeps run
on a fixed interval, opportunistically from the request path, and on
explicit administrative request. All triggers share :meth:`HealthMonitor.sweep`.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Callable

import httpx
import structlog

from proxy_gateway.monitoring.metrics import BACKEND_HEALTH, HEALTH_SWEEPS
from proxy_gateway.routing.registry import Backend, BackendRegistry

logger = structlog.get_logger()


class HealthMonitor:
    """Monitor backend health with periodic and on-demand sweeps."""

    def __init__(
        self,
        registry: BackendRegistry,
        interval_seconds: float = 30.0,
        timeout_seconds: float = 5.0,
        sample_rate: float = 0.1,
        transport: httpx.AsyncBaseTransport | None = None,
        rng: Callable[[], float] = random.random,
    ) -> None:
        """
        Initialize health monitor.

        Args:
            registry: Backend registry to update
            interval_seconds: Interval between periodic sweeps
            timeout_seconds: Timeout applied to each probe independently
            sample_rate: Probability that a request schedules a sweep
            transport: Optional HTTP transport (used by tests)
            rng: Random source returning floats in [0, 1)
        """
        self.registry = registry
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self.sample_rate = sample_rate
        self._rng = rng
        self._http_client = httpx.AsyncClient(timeout=timeout_seconds, transport=transport)
        self._loop_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[dict[str, bool]]] = set()

    async def probe(self, backend: Backend) -> bool:
        """
        Check whether a backend is reachable.

        Args:
            backend: Backend to probe

        Returns:
            True iff a 2xx response arrived before the timeout
        """
        try:
            response = await asyncio.wait_for(
                self._http_client.get(backend.health_url),
                timeout=self.timeout_seconds,
            )
        except TimeoutError:
            logger.warning("Health check timed out", backend=backend.name)
            return False
        except httpx.HTTPError as e:
            logger.warning(
                "Health check failed",
                backend=backend.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        except Exception as e:
            # Anything else (bad URL, transport bug) still means unreachable
            logger.warning(
                "Health check errored",
                backend=backend.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        if not response.is_success:
            logger.warning(
                "Health check returned error status",
                backend=backend.name,
                status_code=response.status_code,
            )
            return False

        return True

    async def sweep(self, trigger: str = "manual") -> dict[str, bool]:
        """
        Probe every backend concurrently and update the registry.

        Args:
            trigger: What caused the sweep (periodic, request, manual, startup)

        Returns:
            Mapping of backend name to probe result
        """
        backends = self.registry.list()
        results = await asyncio.gather(
            *(self.probe(b) for b in backends), return_exceptions=True
        )

        statuses: dict[str, bool] = {}
        for backend, result in zip(backends, results, strict=True):
            if isinstance(result, asyncio.CancelledError):
                raise result
            healthy = result is True
            self.registry.set_healthy(backend.name, healthy)
            BACKEND_HEALTH.labels(backend=backend.name).set(1 if healthy else 0)
            statuses[backend.name] = healthy

        HEALTH_SWEEPS.labels(trigger=trigger).inc()
        logger.debug(
            "Health sweep completed",
            trigger=trigger,
            healthy=sum(statuses.values()),
            total=len(statuses),
        )
        return statuses

    def maybe_trigger_sweep(self) -> bool:
        """
        Schedule a background sweep with probability ``sample_rate``.

        The caller is never delayed; the sweep runs as its own task.

        Returns:
            True if a sweep was scheduled
        """
        if self._rng() >= self.sample_rate:
            return False

        task = asyncio.create_task(self.sweep(trigger="request"))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return True

    async def start(self) -> None:
        """Start the periodic sweep loop."""
        if self._loop_task is not None:
            return

        self._loop_task = asyncio.create_task(self._sweep_loop())
        logger.info("Health monitor started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Stop the periodic loop and any in-flight background sweeps."""
        tasks = list(self._background)
        if self._loop_task is not None:
            tasks.append(self._loop_task)
            self._loop_task = None

        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        logger.info("Health monitor stopped")

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def _sweep_loop(self) -> None:
        """Sweep all backends on a fixed interval."""
        while True:
            try:
                await asyncio.sleep(self.interval_seconds)
                await self.sweep(trigger="periodic")
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Health sweep loop error")

    async def close(self) -> None:
        """Stop monitoring and close the HTTP client."""
        await self.stop()
        await self._http_client.aclose()
