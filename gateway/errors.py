"""Failure taxonomy for outbound gateway calls.

Every error raised by the Gateway Router is a GatewayError subclass carrying
the logical service name and, where known, the request id and HTTP status.
"""

from datetime import datetime


class GatewayError(Exception):
    """Base class for classified gateway failures."""

    retryable: bool = True

    def __init__(
        self,
        message: str,
        service: str = "unknown",
        request_id: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.service = service
        self.request_id = request_id
        self.status_code = status_code
        super().__init__(message)


class RateLimitedError(GatewayError):
    """Remote quota exhausted. Retry after reset_time."""

    def __init__(
        self,
        service: str,
        reset_time: datetime | None = None,
        request_id: str | None = None,
        status_code: int | None = 429,
    ) -> None:
        self.reset_time = reset_time
        if reset_time is not None:
            message = f"Rate limit exceeded for {service}. Resets at {reset_time:%H:%M:%S}"
        else:
            message = f"Rate limit exceeded for {service}. Please try again in a moment."
        super().__init__(message, service, request_id, status_code)


class ServiceUnavailableError(GatewayError):
    """Remote service is temporarily down (HTTP 503)."""

    def __init__(self, service: str, request_id: str | None = None) -> None:
        super().__init__(
            f"Service temporarily unavailable: {service}",
            service,
            request_id,
            503,
        )


class GatewayTimeoutError(GatewayError):
    """The call did not finish within the gateway's time bound."""

    def __init__(self, service: str, timeout_sec: float, request_id: str | None = None) -> None:
        self.timeout_sec = timeout_sec
        super().__init__(
            f"Request to {service} timed out after {timeout_sec}s",
            service,
            request_id,
        )


class GenericGatewayError(GatewayError):
    """Any failure that is not rate limiting, unavailability or timeout."""


class MalformedResponseError(GenericGatewayError):
    """A remote answer did not match the expected response shape."""


class ConfigurationError(GatewayError):
    """Missing endpoint or credentials. Not retryable."""

    retryable = False
