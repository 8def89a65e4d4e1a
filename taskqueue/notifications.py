"""Notification channel — fire-and-forget events for the UI.

Notifications are kept locally (last N, each expiring after a TTL) for
display and published to an external real-time bus. The bus is optional and
unreliable; when it is missing or failing, the structlog logger is the side
channel. Publishing never raises into the caller.
"""

import asyncio
import json
import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from taskqueue.models import Notification, NotificationType
from taskqueue.observers import ObserverRegistry
from taskqueue.scheduler import Scheduler

log = structlog.get_logger()


class NotificationBus(ABC):
    """External real-time bus that receives notification envelopes."""

    @abstractmethod
    async def publish(self, envelope: dict[str, Any]) -> None:
        """Publish one envelope. May raise on transport failure."""
        ...

    @abstractmethod
    async def health_probe(self) -> bool:
        """Return True when the bus is reachable and serving."""
        ...

    async def aclose(self) -> None:
        """Release the bus connection. No-op by default."""


class HttpNotificationBus(NotificationBus):
    """Publishes through a LavinMQ / RabbitMQ management API exchange.

    Uses the HTTP publish endpoint of the default direct exchange, so no AMQP
    connection is held open.
    """

    def __init__(
        self,
        base_url: str,
        username: str = "guest",
        password: str = "guest",
        vhost: str = "/",
        routing_key: str = "shopping.notifications",
        timeout_sec: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.vhost = vhost
        self.routing_key = routing_key
        self._client = client or httpx.AsyncClient(
            auth=(username, password),
            timeout=httpx.Timeout(timeout_sec),
        )

    async def publish(self, envelope: dict[str, Any]) -> None:
        response = await self._client.post(
            f"{self.base_url}/api/exchanges/{quote(self.vhost, safe='')}/amq.direct/publish",
            json={
                "properties": {},
                "routing_key": self.routing_key,
                "payload": json.dumps(envelope, sort_keys=True),
                "payload_encoding": "string",
            },
        )
        response.raise_for_status()

    async def health_probe(self) -> bool:
        try:
            response = await self._client.get(f"{self.base_url}/api/overview")
            return response.status_code == 200 and bool(
                response.json().get("management_version")
            )
        except (httpx.HTTPError, ValueError) as exc:
            log.warning("notification_bus.health_probe_failed", error_type=type(exc).__name__)
            return False

    async def aclose(self) -> None:
        await self._client.aclose()


class NotificationChannel:
    """Keeps recent notifications for display and forwards them to the bus."""

    def __init__(
        self,
        scheduler: Scheduler,
        bus: NotificationBus | None = None,
        source: str = "shopping-orchestrator",
        history_size: int = 5,
        ttl_sec: float = 5.0,
    ) -> None:
        self._scheduler = scheduler
        self._bus = bus
        self.source = source
        self.ttl_sec = ttl_sec
        self._recent: deque[Notification] = deque(maxlen=history_size)
        self._observers: ObserverRegistry[Notification] = ObserverRegistry("notifications")
        self._publishing: set[asyncio.Task[None]] = set()

    def notify(
        self,
        message: str,
        type: NotificationType | str = NotificationType.INFO,
    ) -> Notification:
        """Record a notification and publish it without waiting on the bus."""
        notification = Notification(
            message=message,
            type=NotificationType(type),
            timestamp=int(time.time() * 1000),
            source=self.source,
        )
        self._recent.append(notification)
        self._scheduler.call_later(self.ttl_sec, lambda: self._expire(notification))
        self._observers.publish(notification)
        task = self._scheduler.spawn(self._publish(notification))
        self._publishing.add(task)
        task.add_done_callback(self._publishing.discard)
        return notification

    def recent(self) -> list[Notification]:
        """Return the retained, unexpired notifications, oldest first."""
        return list(self._recent)

    def on_notification(self, callback: Callable[[Notification], None]) -> Callable[[], None]:
        """Subscribe to notifications as they are raised. Returns unsubscribe."""
        return self._observers.subscribe(callback)

    async def check_bus_health(self) -> bool:
        if self._bus is None:
            return False
        try:
            return await self._bus.health_probe()
        except Exception as exc:
            log.warning("notifications.bus_probe_failed", error_type=type(exc).__name__)
            return False

    async def aclose(self) -> None:
        """Wait for in-flight publishes, then close the bus."""
        if self._publishing:
            await asyncio.gather(*self._publishing, return_exceptions=True)
        if self._bus is not None:
            await self._bus.aclose()
        log.info("notifications.closed")

    def _expire(self, notification: Notification) -> None:
        # Identity, not equality: two identical messages are separate entries
        for index, item in enumerate(self._recent):
            if item is notification:
                del self._recent[index]
                return

    async def _publish(self, notification: Notification) -> None:
        if self._bus is None:
            log.info(
                "notifications.local",
                message=notification.message,
                type=notification.type.value,
            )
            return
        try:
            await self._bus.publish(notification.envelope())
        except Exception as exc:
            log.warning(
                "notifications.publish_failed",
                message=notification.message,
                type=notification.type.value,
                error_type=type(exc).__name__,
            )
