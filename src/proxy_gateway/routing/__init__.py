"""
Backend Core Routing

Backend registry, health monitoring, core selection and request forwarding.
"""

from __future__ import annotations

from .health import HealthMonitor
from .proxy import ForwardingEngine
from .registry import Backend, BackendRegistry
from .selector import CoreSelector, Selection, SelectionStrategyType, stable_hash

__all__ = [
    "Backend",
    "BackendRegistry",
    "CoreSelector",
    "ForwardingEngine",
    "HealthMonitor",
    "Selection",
    "SelectionStrategyType",
    "stable_hash",
]
