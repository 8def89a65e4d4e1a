"""System health aggregation across gateway, queue bus and model service.

Probes run concurrently. A probe that raises or answers anything but True
counts as unhealthy; check() itself never raises.
"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog
from pydantic import BaseModel

from gateway.router import GatewayRouter
from observability.metrics import MetricsSnapshot
from services.analysis import AestheticAnalysisClient
from taskqueue.models import QueueStatus
from taskqueue.queue import TaskQueue

log = structlog.get_logger()


class SystemStatus(BaseModel):
    """Combined health record.

    Attributes:
        gateway: API gateway reachable and reporting healthy.
        queue: Notification bus reachable.
        model_service: Language-model service answering through the gateway.
        metrics: Gateway metrics at probe time.
        queue_status: Task queue counts at probe time.
    """

    gateway: bool
    queue: bool
    model_service: bool
    metrics: MetricsSnapshot
    queue_status: QueueStatus

    @property
    def critical_unreachable(self) -> bool:
        """Both dependencies the enhanced path cannot run without are down."""
        return not self.gateway and not self.model_service

    @property
    def overall(self) -> str:
        if self.gateway and self.queue and self.model_service:
            return "healthy"
        if self.critical_unreachable:
            return "unhealthy"
        return "degraded"


class SystemHealthChecker:
    """Runs the three probes and folds in the current snapshots."""

    def __init__(
        self,
        router: GatewayRouter,
        queue: TaskQueue,
        analysis: AestheticAnalysisClient,
    ) -> None:
        self._router = router
        self._queue = queue
        self._analysis = analysis

    async def check(self) -> SystemStatus:
        gateway, queue, model_service = await asyncio.gather(
            self._probe("gateway", self._router.check_gateway_health),
            self._probe("queue", self._queue.check_queue_health),
            self._probe("model_service", self._analysis.check_service_health),
        )
        return SystemStatus(
            gateway=gateway,
            queue=queue,
            model_service=model_service,
            metrics=self._router.get_metrics(),
            queue_status=self._queue.get_status(),
        )

    @staticmethod
    async def _probe(name: str, probe: Callable[[], Awaitable[bool]]) -> bool:
        try:
            return (await probe()) is True
        except Exception as exc:
            log.error("health.probe_failed", probe=name, error_type=type(exc).__name__)
            return False
