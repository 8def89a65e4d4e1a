"""Running request metrics for the Gateway Router.

Keeps an incrementally-updated mean instead of the raw latency history, so
memory stays constant regardless of traffic.
"""

import time
from collections import defaultdict
from collections.abc import Callable
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict

log = structlog.get_logger()


class MetricsSnapshot(BaseModel):
    """Immutable copy of the gateway counters.

    Attributes:
        requests: Requests dispatched to the transport.
        errors: Dispatched requests that failed.
        avg_response_time: Mean latency in milliseconds over all dispatched requests.
        rate_limited: Requests rejected before dispatch by the rate-limit check.
        per_service: Request counts by logical service name.
    """

    model_config = ConfigDict(frozen=True)

    requests: int = 0
    errors: int = 0
    avg_response_time: float = 0.0
    rate_limited: int = 0
    per_service: dict[str, int] = {}


class GatewayMetrics:
    """Request/error counters and a rolling mean of response time.

    After N recorded requests avg_response_time equals the arithmetic mean of
    the N latencies, successes and failures alike. record_request() performs
    the whole read-modify-write without awaiting, so concurrent requests on
    one event loop cannot lose updates.
    """

    def __init__(self) -> None:
        self._requests = 0
        self._errors = 0
        self._avg_response_time = 0.0
        self._rate_limited = 0
        self._per_service: dict[str, int] = defaultdict(int)

    def record_request(self, latency_ms: float, is_error: bool, service: str = "unknown") -> None:
        """Fold one completed request into the running aggregate.

        Args:
            latency_ms: Observed latency in milliseconds.
            is_error: Whether the request failed.
            service: Logical service the request was routed to.
        """
        self._requests += 1
        if is_error:
            self._errors += 1
        self._per_service[service] += 1
        self._avg_response_time += (latency_ms - self._avg_response_time) / self._requests

    def record_rate_limited(self, service: str) -> None:
        self._rate_limited += 1
        log.debug("metrics.rate_limited", service=service, total=self._rate_limited)

    def snapshot(self) -> MetricsSnapshot:
        return MetricsSnapshot(
            requests=self._requests,
            errors=self._errors,
            avg_response_time=self._avg_response_time,
            rate_limited=self._rate_limited,
            per_service=dict(self._per_service),
        )

    def error_rate(self) -> float:
        if self._requests == 0:
            return 0.0
        return self._errors / self._requests


class ExecutionTimer:
    """Context manager for timing a remote call."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self.start_time: float = 0.0
        self.end_time: float = 0.0

    def __enter__(self) -> "ExecutionTimer":
        self.start_time = self._clock()
        return self

    def __exit__(self, *args: Any) -> None:
        self.end_time = self._clock()

    @property
    def elapsed_ms(self) -> float:
        """Return elapsed time in milliseconds."""
        return (self.end_time - self.start_time) * 1000
