"""FastAPI application — the inbound surface for the UI.

All route handlers are async. Background work is queued on the TaskQueue and
never awaited inline. Classified gateway failures are mapped to HTTP status
codes by a single exception handler.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.models import ErrorResponse, HealthResponse, ShoppingRequest, TaskRequest, TaskResponse
from gateway.errors import (
    ConfigurationError,
    GatewayError,
    GatewayTimeoutError,
    RateLimitedError,
    ServiceUnavailableError,
)
from gateway.rate_limits import RateLimitState
from observability.metrics import MetricsSnapshot
from orchestrator.factory import System
from orchestrator.pipeline import ShoppingResult
from taskqueue.models import Notification, QueueStatus, Task

log = structlog.get_logger()

_STATUS_BY_ERROR: list[tuple[type[GatewayError], int]] = [
    (RateLimitedError, 429),
    (ServiceUnavailableError, 503),
    (GatewayTimeoutError, 504),
    (ConfigurationError, 500),
]


def status_for(error: GatewayError) -> int:
    """HTTP status returned to the UI for a classified gateway failure."""
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return 502


def create_app(system: System, manage_lifecycle: bool = True) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        system: The wired orchestration core.
        manage_lifecycle: Initialize the orchestrator, run the health
            monitor for the lifetime of the app, and on shutdown announce
            the end of the session and close the outbound clients.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if manage_lifecycle:
            await system.orchestrator.initialize()
            system.orchestrator.start_health_monitor()
        yield
        system.orchestrator.stop_health_monitor()
        if manage_lifecycle:
            system.orchestrator.shutdown()
            await system.aclose()

    app = FastAPI(
        title="Shopping Orchestrator",
        description="Task queue, gateway routing and orchestration for aesthetic shopping",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        log.warning(
            "api.gateway_error",
            path=request.url.path,
            error_type=type(exc).__name__,
            service=exc.service,
        )
        body = ErrorResponse(error=type(exc).__name__, detail=str(exc))
        return JSONResponse(status_code=status_for(exc), content=body.model_dump())

    @app.post("/v1/tasks", response_model=TaskResponse)
    async def create_task(request: TaskRequest) -> TaskResponse:
        """Queue a background task. Returns immediately with its id."""
        task_id = system.queue.add_task(request.description, request.priority)
        return TaskResponse(task_id=task_id)

    @app.get("/v1/queue/status", response_model=QueueStatus)
    async def queue_status() -> QueueStatus:
        return system.queue.get_status()

    @app.get("/v1/queue/tasks", response_model=list[Task])
    async def queue_tasks() -> list[Task]:
        return system.queue.list_tasks()

    @app.delete("/v1/queue/failed")
    async def clear_failed() -> dict[str, int]:
        return {"removed": system.queue.clear_failed()}

    @app.get("/v1/notifications", response_model=list[Notification])
    async def notifications() -> list[Notification]:
        return system.notifications.recent()

    @app.post(
        "/v1/shopping",
        response_model=ShoppingResult,
        responses={429: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    )
    async def shopping(request: ShoppingRequest) -> ShoppingResult:
        return await system.orchestrator.process_shopping_request(
            request.user_input, request.user_id
        )

    @app.post(
        "/v1/shopping/enhanced",
        response_model=ShoppingResult,
        responses={429: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    )
    async def enhanced_shopping(request: ShoppingRequest) -> ShoppingResult:
        return await system.orchestrator.process_enhanced_shopping_request(
            request.user_input, request.user_id
        )

    @app.get("/v1/metrics", response_model=MetricsSnapshot)
    async def metrics() -> MetricsSnapshot:
        return system.router.get_metrics()

    @app.get("/v1/rate-limits/{service}", response_model=RateLimitState)
    async def rate_limit(service: str) -> RateLimitState:
        return await system.router.check_rate_limit(service)

    @app.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """System health across gateway, queue bus and model service."""
        status = await system.orchestrator.get_system_status()
        return HealthResponse(
            status=status.overall,
            gateway=status.gateway,
            queue=status.queue,
            model_service=status.model_service,
        )

    return app
