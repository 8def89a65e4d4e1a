"""Explicit composition of the orchestration core.

Every component is constructed here and handed its collaborators; the
returned System is the only place they are held together.
"""

from dataclasses import dataclass

from config.settings import AppSettings
from gateway.router import GatewayRouter
from gateway.transport import HttpxTransport, Transport
from orchestrator.health import SystemHealthChecker
from orchestrator.pipeline import ShoppingOrchestrator
from services.analysis import AestheticAnalysisClient
from services.documents import DocumentClient
from services.products import ProductSearchClient
from taskqueue.notifications import HttpNotificationBus, NotificationBus, NotificationChannel
from taskqueue.queue import TaskQueue
from taskqueue.scheduler import LoopScheduler, Scheduler


@dataclass
class System:
    """Wired components for one application instance."""

    settings: AppSettings
    scheduler: Scheduler
    notifications: NotificationChannel
    queue: TaskQueue
    router: GatewayRouter
    analysis: AestheticAnalysisClient
    products: ProductSearchClient
    documents: DocumentClient
    health: SystemHealthChecker
    orchestrator: ShoppingOrchestrator

    async def aclose(self) -> None:
        """Flush pending notifications and close the outbound clients."""
        await self.notifications.aclose()
        await self.router.aclose()


def build_system(
    settings: AppSettings | None = None,
    transport: Transport | None = None,
    bus: NotificationBus | None = None,
    scheduler: Scheduler | None = None,
) -> System:
    """Construct and wire every component.

    Args:
        settings: Application settings. Loaded from the environment if omitted.
        transport: Outbound transport. Defaults to HttpxTransport.
        bus: Notification bus. Defaults to HttpNotificationBus when bus_url
            is configured, otherwise notifications stay local.
        scheduler: Timer source. Defaults to the running event loop.

    Returns:
        The assembled System.
    """
    settings = settings or AppSettings()
    scheduler = scheduler or LoopScheduler()
    if bus is None and settings.bus_url:
        bus = HttpNotificationBus(
            settings.bus_url,
            username=settings.bus_username,
            password=settings.bus_password,
            vhost=settings.bus_vhost,
            routing_key=settings.bus_routing_key,
        )

    notifications = NotificationChannel(
        scheduler,
        bus=bus,
        source=settings.notification_source,
        history_size=settings.notification_history,
        ttl_sec=settings.notification_ttl_sec,
    )
    queue = TaskQueue(
        scheduler,
        notifications,
        max_attempts=settings.task_max_attempts,
        retry_backoff_sec=settings.task_retry_backoff_sec,
        purge_delay_sec=settings.task_purge_delay_sec,
    )
    router = GatewayRouter.from_yaml(
        transport or HttpxTransport(),
        settings.gateway_url,
        routes_yaml_path=settings.gateway_routes_path,
        api_key=settings.gateway_api_key,
        timeout_sec=settings.gateway_timeout_sec,
        health_timeout_sec=settings.gateway_health_timeout_sec,
        batch_stagger_sec=settings.batch_stagger_sec,
        client_name=settings.client_name,
    )
    analysis = AestheticAnalysisClient(
        router,
        queue,
        description_stagger_sec=settings.description_stagger_sec,
    )
    products = ProductSearchClient(router, queue)
    documents = DocumentClient(router, queue)
    health = SystemHealthChecker(router, queue, analysis)
    orchestrator = ShoppingOrchestrator(
        queue,
        analysis,
        products,
        documents,
        health,
        scheduler,
        health_monitor_interval_sec=settings.health_monitor_interval_sec,
    )
    return System(
        settings=settings,
        scheduler=scheduler,
        notifications=notifications,
        queue=queue,
        router=router,
        analysis=analysis,
        products=products,
        documents=documents,
        health=health,
        orchestrator=orchestrator,
    )
