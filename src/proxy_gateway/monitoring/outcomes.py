"""
Request Outcome Store

Bounded ring buffer of forwarded request outcomes with aggregate statistics.
"""

from __future__ import annotations

import threading
from collections import Counter, deque
from datetime import datetime

from pydantic import BaseModel, Field

# Status recorded when the backend timed out or could not be reached
STATUS_FORWARD_FAILED = 502
# Status recorded when the client went away before the backend answered
STATUS_CLIENT_CLOSED = 499


class RequestOutcome(BaseModel):
    """Outcome of one forwarded request."""

    correlation_id: str = Field(..., description="Per-request correlation id")
    method: str = Field(..., description="HTTP method")
    path: str = Field(..., description="Request path")
    backend: str = Field(..., description="Selected backend name")
    elapsed_ms: float = Field(..., ge=0, description="Backend round trip in milliseconds")
    status_code: int = Field(..., description="Response status or failure sentinel")
    timestamp: datetime = Field(..., description="When the outcome was recorded")

    model_config = {"frozen": True}


class MetricsSummary(BaseModel):
    """Aggregate statistics over the retained outcomes."""

    count: int = Field(..., description="Number of retained outcomes")
    average_elapsed_ms: float = Field(..., description="Mean round trip in milliseconds")
    status_codes: dict[int, int] = Field(..., description="Occurrences per status code")
    backends: dict[str, int] = Field(..., description="Requests per backend")


class MetricsStore:
    """Fixed-capacity store of request outcomes; oldest entries are evicted."""

    def __init__(self, capacity: int = 1000) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._records: deque[RequestOutcome] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def record(self, outcome: RequestOutcome) -> None:
        """Append an outcome, evicting the oldest one when full."""
        with self._lock:
            self._records.append(outcome)

    def snapshot(self) -> list[RequestOutcome]:
        """Get all retained outcomes in arrival order."""
        with self._lock:
            return list(self._records)

    def recent(self, n: int = 50) -> list[RequestOutcome]:
        """
        Get the most recent outcomes.

        Args:
            n: Maximum number of outcomes to return

        Returns:
            Last ``n`` outcomes in arrival order
        """
        if n <= 0:
            return []
        return self.snapshot()[-n:]

    def summarize(self) -> MetricsSummary:
        """Compute aggregate statistics over the retained window."""
        records = self.snapshot()
        count = len(records)
        average = sum(r.elapsed_ms for r in records) / count if count else 0.0

        return MetricsSummary(
            count=count,
            average_elapsed_ms=average,
            status_codes=dict(Counter(r.status_code for r in records)),
            backends=dict(Counter(r.backend for r in records)),
        )

    def __len__(self) -> int:
        return len(self._records)
