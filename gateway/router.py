"""Gateway Router — uniform envelope for every outbound remote call.

Each call is attributed to a logical service (longest matching path prefix),
checked against that service's rate-limit budget, dispatched with a request
id under a fixed timeout, timed into the rolling metrics, and on failure
classified into the GatewayError taxonomy and re-raised. The router never
swallows a dispatch failure. The rate-limit check is fail-open: if the budget
authority cannot be reached, the call proceeds.
"""

import asyncio
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import BaseModel, Field, ValidationError

from gateway.errors import (
    ConfigurationError,
    GatewayError,
    GatewayTimeoutError,
    GenericGatewayError,
    MalformedResponseError,
    RateLimitedError,
    ServiceUnavailableError,
)
from gateway.rate_limits import RateLimitPolicy, RateLimitState, RateLimitStatusBody
from gateway.transport import Transport, TransportRequest, TransportResponse
from observability.metrics import ExecutionTimer, GatewayMetrics, MetricsSnapshot
from observability.tracing import SpanManager, new_request_id

log = structlog.get_logger()

DEFAULT_ROUTES_PATH = Path(__file__).resolve().parent.parent / "config" / "gateway.yaml"
UNKNOWN_SERVICE = "unknown"


class RequestConfig(BaseModel):
    """Caller-supplied part of a routed request."""

    method: str = "GET"
    params: dict[str, Any] = Field(default_factory=dict)
    json_body: Any = None
    headers: dict[str, str] = Field(default_factory=dict)


class BatchRequest(BaseModel):
    """One entry of a batch dispatch."""

    endpoint: str
    config: RequestConfig = Field(default_factory=RequestConfig)


class GatewayRouter:
    """Routes requests through the API gateway with rate limiting and metrics.

    One instance owns one metrics accumulator and one rate-limit cache.
    """

    def __init__(
        self,
        transport: Transport,
        base_url: str,
        api_key: str | None = None,
        routes: dict[str, str] | None = None,
        rate_limits: dict[str, RateLimitPolicy] | None = None,
        timeout_sec: float = 30.0,
        health_timeout_sec: float = 5.0,
        batch_stagger_sec: float = 0.1,
        client_name: str = "shopping-orchestrator",
        api_key_header: str = "apikey",
        admin_token_header: str = "Kong-Admin-Token",
        clock: Callable[[], float] = time.monotonic,
        span_manager: SpanManager | None = None,
    ) -> None:
        self._transport = transport
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.routes: dict[str, str] = dict(routes or {})
        self.rate_limits: dict[str, RateLimitPolicy] = dict(rate_limits or {})
        self.timeout_sec = timeout_sec
        self.health_timeout_sec = health_timeout_sec
        self.batch_stagger_sec = batch_stagger_sec
        self.client_name = client_name
        self.api_key_header = api_key_header
        self.admin_token_header = admin_token_header
        self._clock = clock
        self._spans = span_manager or SpanManager()
        self._metrics = GatewayMetrics()
        self._rate_limit_cache: dict[str, RateLimitState] = {}

    @classmethod
    def from_yaml(
        cls,
        transport: Transport,
        base_url: str,
        routes_yaml_path: str | Path | None = None,
        **kwargs: Any,
    ) -> "GatewayRouter":
        """Create a router whose route table and budgets come from YAML.

        Args:
            transport: Transport used for every outbound call.
            base_url: Gateway base URL.
            routes_yaml_path: Path to a gateway.yaml file. Defaults to the
                bundled config/gateway.yaml.
            **kwargs: Forwarded to the constructor.

        Returns:
            Configured GatewayRouter instance.
        """
        path = Path(routes_yaml_path) if routes_yaml_path else DEFAULT_ROUTES_PATH
        with open(path) as f:
            config = yaml.safe_load(f) or {}
        rate_limits = {
            service: RateLimitPolicy(**policy)
            for service, policy in (config.get("rate_limits") or {}).items()
        }
        return cls(
            transport=transport,
            base_url=base_url,
            routes=config.get("routes") or {},
            rate_limits=rate_limits,
            **kwargs,
        )

    def resolve_service(self, endpoint: str) -> str:
        """Map an endpoint to its logical service by longest path-prefix match.

        A prefix matches on whole path segments only, so "/openai" matches
        "/openai/chat" but not "/openai-beta".
        """
        path = endpoint.split("?", 1)[0]
        best_prefix = ""
        service = UNKNOWN_SERVICE
        for prefix, name in self.routes.items():
            normalized = prefix.rstrip("/")
            if path != normalized and not path.startswith(normalized + "/"):
                continue
            if len(normalized) > len(best_prefix):
                best_prefix = normalized
                service = name
        return service

    async def route_request(self, endpoint: str, config: RequestConfig | None = None) -> Any:
        """Dispatch one request through the gateway.

        Args:
            endpoint: Gateway path, e.g. "/openai/chat".
            config: Method, params, body and extra headers.

        Returns:
            The decoded response body.

        Raises:
            ConfigurationError: The gateway base URL is not configured.
            RateLimitedError: Budget exhausted, or the remote answered 429.
            ServiceUnavailableError: The remote answered 503.
            GatewayTimeoutError: No answer within timeout_sec.
            GenericGatewayError: Any other failure.
        """
        config = config or RequestConfig()
        service = self.resolve_service(endpoint)
        if not self.base_url:
            raise ConfigurationError("Gateway base URL is not configured", service=service)

        await self.check_and_enforce_rate_limit(service)

        request_id = new_request_id()
        headers = {
            **config.headers,
            "X-Request-ID": request_id,
            "X-Service": service,
            "X-Client": self.client_name,
        }
        if self.api_key:
            headers[self.api_key_header] = self.api_key

        request = TransportRequest(
            method=config.method,
            url=f"{self.base_url}{endpoint}",
            headers=headers,
            params=config.params,
            json_body=config.json_body,
            timeout_sec=self.timeout_sec,
        )
        span = self._spans.create_request_span(service, endpoint, request_id, config.method)
        response: TransportResponse | None = None
        error: GatewayError | None = None

        with ExecutionTimer(self._clock) as timer:
            try:
                response = await asyncio.wait_for(
                    self._transport.send(request),
                    timeout=self.timeout_sec,
                )
            except (asyncio.TimeoutError, TimeoutError):
                error = GatewayTimeoutError(service, self.timeout_sec, request_id)
            except Exception as exc:
                error = GenericGatewayError(
                    f"Request to {service} failed: {type(exc).__name__}",
                    service=service,
                    request_id=request_id,
                )
                error.__cause__ = exc

        if response is not None and not response.is_success:
            error = self._classify_status(service, request_id, response)
        elif response is None and error is None:
            error = GenericGatewayError(
                f"Request to {service} returned no response",
                service=service,
                request_id=request_id,
            )

        # No await between here and the raise/return: the metrics update is atomic
        self._metrics.record_request(timer.elapsed_ms, is_error=error is not None, service=service)
        self._spans.record_result(
            span,
            timer.elapsed_ms,
            status_code=response.status_code if response is not None else None,
            error_type=type(error).__name__ if error is not None else None,
        )
        span.end()

        if response is not None and error is None:
            log.debug(
                "gateway.request_completed",
                service=service,
                endpoint=endpoint,
                request_id=request_id,
                latency_ms=round(timer.elapsed_ms, 2),
            )
            return response.data

        log.warning(
            "gateway.request_failed",
            service=service,
            endpoint=endpoint,
            request_id=request_id,
            error_type=type(error).__name__,
            status_code=error.status_code,
            latency_ms=round(timer.elapsed_ms, 2),
        )
        raise error

    async def batch_route_requests(self, requests: list[BatchRequest]) -> list[Any | None]:
        """Dispatch several requests with a staggered start.

        Request i starts batch_stagger_sec * i after the batch. A failing
        request yields None in its slot; the result list always matches the
        input order and length.
        """

        async def run(index: int, batch_request: BatchRequest) -> Any | None:
            if index and self.batch_stagger_sec > 0:
                await asyncio.sleep(self.batch_stagger_sec * index)
            config = batch_request.config.model_copy(
                update={
                    "headers": {
                        **batch_request.config.headers,
                        "X-Batch-Request": "true",
                        "X-Batch-Index": str(index),
                    }
                }
            )
            try:
                return await self.route_request(batch_request.endpoint, config)
            except Exception as exc:
                log.warning(
                    "gateway.batch_request_failed",
                    index=index,
                    endpoint=batch_request.endpoint,
                    error_type=type(exc).__name__,
                )
                return None

        results = await asyncio.gather(*(run(i, r) for i, r in enumerate(requests)))
        return list(results)

    def get_metrics(self) -> MetricsSnapshot:
        """Return a copy of the current counters."""
        return self._metrics.snapshot()

    async def aclose(self) -> None:
        """Close the underlying transport."""
        await self._transport.aclose()

    def cached_rate_limit(self, service: str) -> RateLimitState | None:
        return self._rate_limit_cache.get(service)

    async def check_and_enforce_rate_limit(self, service: str) -> None:
        """Fail fast when a service's budget is known to be exhausted.

        Services without a configured policy are not checked. If the
        authority cannot be queried, or answers with something unreadable,
        the call is allowed to proceed.

        Raises:
            RateLimitedError: The budget is exhausted until reset_time.
        """
        if service not in self.rate_limits:
            return

        cached = self._rate_limit_cache.get(service)
        if cached is not None and cached.is_exhausted():
            self._metrics.record_rate_limited(service)
            raise RateLimitedError(service, cached.reset_time, status_code=None)

        try:
            state = await self._query_rate_limit(service)
        except Exception as exc:
            log.warning(
                "gateway.rate_limit_check_failed",
                service=service,
                error_type=type(exc).__name__,
            )
            return

        self._rate_limit_cache[service] = state
        if state.remaining <= 0:
            self._metrics.record_rate_limited(service)
            log.warning(
                "gateway.rate_limited",
                service=service,
                reset_time=state.reset_time.isoformat(),
            )
            raise RateLimitedError(service, state.reset_time, status_code=None)

    async def check_rate_limit(self, service: str | None = None) -> RateLimitState:
        """Query the remaining budget. Never raises.

        Falls back to a conservative estimate when the authority is
        unreachable: one window of the service's configured budget, or a
        fixed default for services without a policy.
        """
        target = service or "global"
        try:
            state = await self._query_rate_limit(target)
        except Exception as exc:
            log.warning(
                "gateway.rate_limit_query_failed",
                service=target,
                error_type=type(exc).__name__,
            )
            return RateLimitState.conservative(target, self.rate_limits.get(target))
        self._rate_limit_cache[target] = state
        return state

    async def check_gateway_health(self) -> bool:
        """Probe the gateway status endpoint. Any failure means unhealthy."""
        if not self.base_url:
            return False
        try:
            response = await asyncio.wait_for(
                self._transport.send(
                    TransportRequest(
                        url=f"{self.base_url}/status",
                        headers=self._admin_headers(),
                        timeout_sec=self.health_timeout_sec,
                    )
                ),
                timeout=self.health_timeout_sec,
            )
        except Exception as exc:
            log.warning("gateway.health_check_failed", error_type=type(exc).__name__)
            return False
        data = response.data if isinstance(response.data, dict) else {}
        return response.status_code == 200 and data.get("status") == "healthy"

    async def _query_rate_limit(self, service: str) -> RateLimitState:
        response = await asyncio.wait_for(
            self._transport.send(
                TransportRequest(
                    url=f"{self.base_url}/status/rate-limits/{service}",
                    headers=self._admin_headers(),
                    timeout_sec=self.health_timeout_sec,
                )
            ),
            timeout=self.health_timeout_sec,
        )
        if not response.is_success:
            raise GenericGatewayError(
                f"Rate-limit authority answered HTTP {response.status_code}",
                service=service,
                status_code=response.status_code,
            )
        try:
            body = RateLimitStatusBody.model_validate(response.data)
        except ValidationError as exc:
            raise MalformedResponseError(
                f"Unreadable rate-limit status for {service}", service=service
            ) from exc
        return RateLimitState(service=service, remaining=body.remaining, reset_time=body.reset_time)

    def _admin_headers(self) -> dict[str, str]:
        headers = {"X-Client": self.client_name}
        if self.api_key:
            headers[self.admin_token_header] = self.api_key
        return headers

    def _classify_status(
        self,
        service: str,
        request_id: str,
        response: TransportResponse,
    ) -> GatewayError:
        status = response.status_code
        if status == 429:
            reset_time = _retry_after(response.headers)
            if reset_time is not None:
                self._rate_limit_cache[service] = RateLimitState(
                    service=service, remaining=0, reset_time=reset_time
                )
            return RateLimitedError(service, reset_time, request_id=request_id)
        if status == 503:
            return ServiceUnavailableError(service, request_id=request_id)
        return GenericGatewayError(
            f"{service} responded with HTTP {status}",
            service=service,
            request_id=request_id,
            status_code=status,
        )


def _retry_after(headers: dict[str, str]) -> datetime | None:
    value = next((v for k, v in headers.items() if k.lower() == "retry-after"), None)
    if value is None:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return datetime.now(timezone.utc) + timedelta(seconds=seconds)
