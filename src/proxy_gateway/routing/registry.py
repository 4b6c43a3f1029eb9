"""
Backend Registry

Fixed set of backend cores and their live health flags.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass

import httpx
import structlog

from proxy_gateway.config import BackendConfig

logger = structlog.get_logger()


@dataclass
class Backend:
    """Backend core instance."""

    name: str
    url: str
    health_check: str = "/health"
    weight: int = 1
    healthy: bool = True

    @property
    def health_url(self) -> str:
        """Get the full health check URL."""
        return f"{self.url.rstrip('/')}{self.health_check}"

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "url": self.url,
            "health_check": self.health_check,
            "weight": self.weight,
            "healthy": self.healthy,
        }


def _validate_url(name: str, url: str) -> None:
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise ValueError(f"Backend {name!r} has an invalid URL: {url!r}") from e

    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ValueError(f"Backend {name!r} URL must be an absolute http(s) URL: {url!r}")


class BackendRegistry:
    """
    Registry of backend cores.

    Membership is fixed at construction. Only the ``healthy`` flag of each
    backend changes at runtime, and only through :meth:`set_healthy`.
    """

    def __init__(self, backends: Iterable[Backend]) -> None:
        """
        Initialize registry.

        Args:
            backends: Backends in routing order

        Raises:
            ValueError: On duplicate names, non-absolute URLs or relative
                health check paths
        """
        self._backends: list[Backend] = []
        self._by_name: dict[str, Backend] = {}
        self._lock = threading.Lock()

        for backend in backends:
            if backend.name in self._by_name:
                raise ValueError(f"Duplicate backend name: {backend.name!r}")
            _validate_url(backend.name, backend.url)
            if not backend.health_check.startswith("/"):
                raise ValueError(
                    f"Backend {backend.name!r} health_check must start with '/': "
                    f"{backend.health_check!r}"
                )
            self._backends.append(backend)
            self._by_name[backend.name] = backend

    @classmethod
    def from_config(cls, configs: Iterable[BackendConfig]) -> BackendRegistry:
        """Build a registry from backend configuration entries."""
        return cls(
            Backend(
                name=config.name,
                url=config.url,
                health_check=config.health_check,
                weight=config.weight,
                healthy=config.healthy,
            )
            for config in configs
        )

    def list(self) -> list[Backend]:
        """Get all backends in configuration order."""
        return list(self._backends)

    def get(self, name: str) -> Backend | None:
        """Get a backend by name."""
        return self._by_name.get(name)

    def set_healthy(self, name: str, healthy: bool) -> None:
        """
        Update the health flag of a backend.

        Unknown names are ignored.

        Args:
            name: Backend name
            healthy: New health flag
        """
        backend = self._by_name.get(name)
        if backend is None:
            return

        with self._lock:
            previous = backend.healthy
            backend.healthy = healthy

        if previous != healthy:
            log = logger.info if healthy else logger.warning
            log("Backend health changed", backend=name, healthy=healthy)

    def healthy_backends(self) -> list[Backend]:
        """Get healthy backends, preserving configuration order."""
        return [b for b in self._backends if b.healthy]

    def __len__(self) -> int:
        return len(self._backends)
