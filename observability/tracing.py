"""OpenTelemetry spans for routed gateway requests.

One span per outbound request, tagged with the logical service, endpoint and
request id so remote logs can be correlated with local traces.
"""

import uuid

from opentelemetry import trace


def new_request_id() -> str:
    """Unique per-request identifier sent as X-Request-ID."""
    return f"req-{uuid.uuid4().hex}"


class SpanManager:
    """Creates and annotates spans for gateway requests.

    Without an SDK configured the OpenTelemetry API hands out no-op spans,
    so instrumentation costs nothing in tests.
    """

    def __init__(self, service_name: str = "shopping-orchestrator") -> None:
        self.tracer = trace.get_tracer(service_name)

    def create_request_span(
        self,
        service: str,
        endpoint: str,
        request_id: str,
        method: str = "GET",
    ) -> trace.Span:
        """Start a span for one routed request.

        Args:
            service: Logical service name resolved from the endpoint.
            endpoint: Gateway path being called.
            request_id: The X-Request-ID attached to the request.
            method: HTTP method.

        Returns:
            An OpenTelemetry span. The caller must end it.
        """
        return self.tracer.start_span(
            name=f"gateway.{service}",
            attributes={
                "gateway.service": service,
                "gateway.endpoint": endpoint,
                "gateway.request_id": request_id,
                "http.method": method,
            },
        )

    @staticmethod
    def record_result(
        span: trace.Span,
        latency_ms: float,
        status_code: int | None = None,
        error_type: str | None = None,
    ) -> None:
        span.set_attribute("gateway.latency_ms", latency_ms)
        if status_code is not None:
            span.set_attribute("http.status_code", status_code)
        if error_type:
            span.set_attribute("gateway.error_type", error_type)
            span.set_status(trace.Status(trace.StatusCode.ERROR, error_type))
