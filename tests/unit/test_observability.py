"""Unit tests for the observability layer."""

import pytest

from observability.metrics import ExecutionTimer, GatewayMetrics, MetricsSnapshot
from observability.tracing import SpanManager, new_request_id


class TestGatewayMetrics:
    def test_initial_state(self) -> None:
        assert GatewayMetrics().snapshot() == MetricsSnapshot()

    def test_rolling_mean_equals_arithmetic_mean(self) -> None:
        metrics = GatewayMetrics()
        metrics.record_request(100.0, is_error=False, service="openai")
        metrics.record_request(200.0, is_error=True, service="openai")
        metrics.record_request(300.0, is_error=False, service="amazon")

        snapshot = metrics.snapshot()
        assert snapshot.requests == 3
        assert snapshot.errors == 1
        assert snapshot.avg_response_time == 200.0
        assert snapshot.per_service == {"openai": 2, "amazon": 1}

    def test_mean_over_many_requests(self) -> None:
        metrics = GatewayMetrics()
        latencies = [float(i) for i in range(1, 101)]
        for latency in latencies:
            metrics.record_request(latency, is_error=False)
        assert metrics.snapshot().avg_response_time == pytest.approx(50.5)

    def test_error_rate(self) -> None:
        metrics = GatewayMetrics()
        assert metrics.error_rate() == 0.0
        metrics.record_request(10.0, is_error=True)
        metrics.record_request(10.0, is_error=False)
        assert metrics.error_rate() == 0.5

    def test_rate_limited_not_in_requests(self) -> None:
        metrics = GatewayMetrics()
        metrics.record_rate_limited("openai")
        snapshot = metrics.snapshot()
        assert snapshot.rate_limited == 1
        assert snapshot.requests == 0
        assert snapshot.avg_response_time == 0.0

    def test_snapshot_is_frozen(self) -> None:
        snapshot = GatewayMetrics().snapshot()
        with pytest.raises(Exception):
            snapshot.requests = 5  # type: ignore[misc]


class TestExecutionTimer:
    def test_measures_with_injected_clock(self) -> None:
        instants = iter([10.0, 10.25])
        with ExecutionTimer(lambda: next(instants)) as timer:
            pass
        assert timer.elapsed_ms == 250.0

    def test_real_clock_is_non_negative(self) -> None:
        with ExecutionTimer() as timer:
            sum(range(100))
        assert timer.elapsed_ms >= 0


class TestTracing:
    def test_request_ids_are_prefixed_and_unique(self) -> None:
        ids = {new_request_id() for _ in range(100)}
        assert len(ids) == 100
        assert all(i.startswith("req-") for i in ids)

    def test_span_lifecycle_without_sdk(self) -> None:
        manager = SpanManager("test-suite")
        span = manager.create_request_span("openai", "/openai/chat", "req-1", "POST")
        SpanManager.record_result(span, 12.5, status_code=503, error_type="ServiceUnavailableError")
        span.end()
