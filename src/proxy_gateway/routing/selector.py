"""
Core Selector

Chooses one healthy backend core per request. Strategies are evaluated in
priority order against a single snapshot of the healthy set:

1. Path prefix: configured prefix routes to a named backend
2. User affinity: stable hash of the identity id over the healthy set
3. Round robin: shared counter over the healthy set
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

import structlog

from proxy_gateway.auth.models import Identity
from proxy_gateway.routing.registry import Backend, BackendRegistry

logger = structlog.get_logger()


class SelectionStrategyType(str, Enum):
    """Selection strategy types."""

    PATH_PREFIX = "path_prefix"
    USER_AFFINITY = "user_affinity"
    ROUND_ROBIN = "round_robin"


@dataclass(frozen=True)
class Selection:
    """Backend chosen for a request and the strategy that chose it."""

    backend: Backend
    strategy: SelectionStrategyType


def stable_hash(value: str) -> int:
    """
    Polynomial rolling hash over UTF-8 bytes, folded to unsigned 32 bits.

    Deterministic across processes, unlike the builtin ``hash``.
    """
    h = 0
    for byte in value.encode("utf-8"):
        h = (h * 31 + byte) & 0xFFFFFFFF
    return h


class SelectionStrategy(ABC):
    """Base class for selection strategies."""

    strategy_type: SelectionStrategyType

    @abstractmethod
    def select(
        self, healthy: list[Backend], path: str, identity: Identity | None
    ) -> Backend | None:
        """
        Select a backend, or None if the strategy does not apply.

        Args:
            healthy: Non-empty snapshot of healthy backends
            path: Request path
            identity: Authenticated identity, if any
        """


class PathPrefixStrategy(SelectionStrategy):
    """Route configured path prefixes to a named backend."""

    strategy_type = SelectionStrategyType.PATH_PREFIX

    def __init__(self, routes: Mapping[str, str]) -> None:
        # Longest prefix first so /api/v1/admin wins over /api/v1
        self._routes = sorted(
            ((prefix.rstrip("/"), name) for prefix, name in routes.items()),
            key=lambda item: len(item[0]),
            reverse=True,
        )

    def match(self, path: str) -> str | None:
        """Get the backend name configured for a path."""
        for prefix, name in self._routes:
            if path == prefix or path.startswith(prefix + "/"):
                return name
        return None

    def select(
        self, healthy: list[Backend], path: str, identity: Identity | None
    ) -> Backend | None:
        name = self.match(path)
        if name is None:
            return None

        backend = next((b for b in healthy if b.name == name), None)
        if backend is None:
            logger.debug("Path route target unhealthy", path=path, backend=name)
        return backend


class UserAffinityStrategy(SelectionStrategy):
    """
    Pin an identity to a backend by hashing its id over the healthy set.

    The assignment is stable only while the healthy set is unchanged. Any
    health flip changes ``len(healthy)`` and reshuffles every user.
    """

    strategy_type = SelectionStrategyType.USER_AFFINITY

    def select(
        self, healthy: list[Backend], path: str, identity: Identity | None
    ) -> Backend | None:
        if identity is None:
            return None
        return healthy[stable_hash(identity.id) % len(healthy)]


class RoundRobinStrategy(SelectionStrategy):
    """Round robin over the healthy set with a shared counter."""

    strategy_type = SelectionStrategyType.ROUND_ROBIN

    def __init__(self) -> None:
        self._counter = 0
        self._lock = threading.Lock()

    def select(
        self, healthy: list[Backend], path: str, identity: Identity | None
    ) -> Backend | None:
        with self._lock:
            index = self._counter
            self._counter += 1
        return healthy[index % len(healthy)]


class CoreSelector:
    """
    Select a healthy backend core for each request.

    Never returns an unhealthy backend and never mutates a backend; the
    round-robin counter is the only state it changes.
    """

    def __init__(
        self,
        registry: BackendRegistry,
        path_routes: Mapping[str, str] | None = None,
    ) -> None:
        """
        Initialize selector.

        Args:
            registry: Backend registry providing the healthy set
            path_routes: Path prefix to backend name mapping
        """
        self.registry = registry
        self.strategies: list[SelectionStrategy] = [
            PathPrefixStrategy(path_routes or {}),
            UserAffinityStrategy(),
            RoundRobinStrategy(),
        ]

    def select(self, path: str, identity: Identity | None = None) -> Selection | None:
        """
        Select a backend for a request.

        Args:
            path: Request path
            identity: Authenticated identity, if any

        Returns:
            Selection, or None if no backend is healthy
        """
        healthy = self.registry.healthy_backends()
        if not healthy:
            logger.warning("No healthy backends available", path=path)
            return None

        for strategy in self.strategies:
            backend = strategy.select(healthy, path, identity)
            if backend is not None:
                logger.debug(
                    "Backend selected",
                    backend=backend.name,
                    strategy=strategy.strategy_type.value,
                    path=path,
                )
                return Selection(backend=backend, strategy=strategy.strategy_type)

        return None
