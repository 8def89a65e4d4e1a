"""Unit tests for the notification channel, bus adapter and observer registry."""

import json
from collections.abc import Callable

import httpx

from taskqueue.models import Notification, NotificationType
from taskqueue.notifications import HttpNotificationBus, NotificationChannel
from taskqueue.observers import ObserverRegistry
from taskqueue.scheduler import ManualScheduler
from tests.conftest import FakeBus


class TestNotificationChannel:
    async def test_keeps_only_the_last_five(self, scheduler: ManualScheduler) -> None:
        channel = NotificationChannel(scheduler, source="test-suite")
        for i in range(8):
            channel.notify(f"message {i}")

        assert [n.message for n in channel.recent()] == [f"message {i}" for i in range(3, 8)]

    async def test_each_notification_expires_after_ttl(self, scheduler: ManualScheduler) -> None:
        channel = NotificationChannel(scheduler, source="test-suite")
        channel.notify("first")
        await scheduler.advance(2.0)
        channel.notify("second")

        await scheduler.advance(2.5)
        assert [n.message for n in channel.recent()] == ["first", "second"]

        await scheduler.advance(0.5)
        assert [n.message for n in channel.recent()] == ["second"]

        await scheduler.advance(2.0)
        assert channel.recent() == []

    async def test_identical_messages_expire_independently(
        self, scheduler: ManualScheduler
    ) -> None:
        channel = NotificationChannel(scheduler, source="test-suite")
        channel.notify("same")
        await scheduler.advance(1.0)
        channel.notify("same")

        await scheduler.advance(4.0)
        assert len(channel.recent()) == 1

    async def test_publishes_envelope_to_bus(
        self, scheduler: ManualScheduler, bus: FakeBus
    ) -> None:
        channel = NotificationChannel(scheduler, bus=bus, source="test-suite")
        notification = channel.notify("Ready!", NotificationType.SUCCESS)
        await scheduler.advance()

        assert bus.envelopes == [
            {
                "message": "Ready!",
                "type": "success",
                "timestamp": notification.timestamp,
                "source": "test-suite",
            }
        ]

    async def test_aclose_flushes_pending_publishes_then_closes_bus(
        self, scheduler: ManualScheduler, bus: FakeBus
    ) -> None:
        channel = NotificationChannel(scheduler, bus=bus, source="test-suite")
        channel.notify("Session ended")

        await channel.aclose()

        assert [e["message"] for e in bus.envelopes] == ["Session ended"]
        assert bus.closed is True

    async def test_bus_failure_is_silent(self, scheduler: ManualScheduler) -> None:
        channel = NotificationChannel(scheduler, bus=FakeBus(fail_publish=True))

        notification = channel.notify("still shown", "warning")
        await scheduler.advance()

        assert channel.recent() == [notification]
        assert notification.type == NotificationType.WARNING

    async def test_without_bus_notifications_stay_local(self, scheduler: ManualScheduler) -> None:
        channel = NotificationChannel(scheduler)
        channel.notify("local only")
        await scheduler.advance()

        assert [n.message for n in channel.recent()] == ["local only"]
        assert await channel.check_bus_health() is False

    async def test_bus_health(self, scheduler: ManualScheduler) -> None:
        assert await NotificationChannel(scheduler, bus=FakeBus()).check_bus_health() is True
        unhealthy = NotificationChannel(scheduler, bus=FakeBus(healthy=False))
        assert await unhealthy.check_bus_health() is False

    async def test_observers_receive_each_notification(
        self, scheduler: ManualScheduler
    ) -> None:
        channel = NotificationChannel(scheduler)
        seen: list[Notification] = []
        unsubscribe = channel.on_notification(seen.append)

        channel.notify("one")
        unsubscribe()
        channel.notify("two")

        assert [n.message for n in seen] == ["one"]


class TestHttpNotificationBus:
    async def test_publish_posts_to_direct_exchange(self) -> None:
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"routed": True})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        bus = HttpNotificationBus("http://bus.test/", routing_key="ui", client=client)

        await bus.publish({"message": "hi", "type": "info"})

        assert len(captured) == 1
        assert captured[0].url.raw_path == b"/api/exchanges/%2F/amq.direct/publish"
        body = json.loads(captured[0].content)
        assert body["routing_key"] == "ui"
        assert json.loads(body["payload"]) == {"message": "hi", "type": "info"}
        await bus.aclose()

    async def test_health_probe_checks_management_api(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"management_version": "1.2.0"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        bus = HttpNotificationBus("http://bus.test", client=client)
        assert await bus.health_probe() is True

    async def test_health_probe_false_on_error_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="boom")

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        bus = HttpNotificationBus("http://bus.test", client=client)
        assert await bus.health_probe() is False


class TestObserverRegistry:
    def test_delivers_in_registration_order(self) -> None:
        registry: ObserverRegistry[int] = ObserverRegistry("test")
        seen: list[str] = []
        registry.subscribe(lambda v: seen.append(f"a{v}"))
        registry.subscribe(lambda v: seen.append(f"b{v}"))

        registry.publish(1)
        assert seen == ["a1", "b1"]
        assert len(registry) == 2

    def test_unsubscribe_during_publish_skips_removed_callback(self) -> None:
        registry: ObserverRegistry[int] = ObserverRegistry("test")
        seen: list[str] = []
        handles: dict[str, Callable[[], None]] = {}

        def first(value: int) -> None:
            seen.append("first")
            handles["second"]()

        registry.subscribe(first)
        handles["second"] = registry.subscribe(lambda v: seen.append("second"))

        registry.publish(1)
        assert seen == ["first"]
        assert len(registry) == 1

    def test_raising_callback_is_skipped(self) -> None:
        registry: ObserverRegistry[int] = ObserverRegistry("test")
        seen: list[int] = []

        def broken(value: int) -> None:
            raise RuntimeError("bad subscriber")

        registry.subscribe(broken)
        registry.subscribe(seen.append)

        registry.publish(7)
        assert seen == [7]
