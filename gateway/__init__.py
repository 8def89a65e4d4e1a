"""Gateway routing — rate limiting, timeouts, metrics and failure classification."""

from gateway.errors import (
    ConfigurationError,
    GatewayError,
    GatewayTimeoutError,
    GenericGatewayError,
    MalformedResponseError,
    RateLimitedError,
    ServiceUnavailableError,
)
from gateway.rate_limits import RateLimitPolicy, RateLimitState
from gateway.router import BatchRequest, GatewayRouter, RequestConfig
from gateway.transport import HttpxTransport, Transport, TransportRequest, TransportResponse

__all__ = [
    "BatchRequest",
    "ConfigurationError",
    "GatewayError",
    "GatewayRouter",
    "GatewayTimeoutError",
    "GenericGatewayError",
    "HttpxTransport",
    "MalformedResponseError",
    "RateLimitPolicy",
    "RateLimitState",
    "RateLimitedError",
    "RequestConfig",
    "ServiceUnavailableError",
    "Transport",
    "TransportRequest",
    "TransportResponse",
]
