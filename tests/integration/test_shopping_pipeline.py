"""Integration test: queue, notifications, gateway and orchestrator wired together."""

import pytest

from gateway.errors import ServiceUnavailableError
from gateway.transport import TransportResponse
from orchestrator.factory import System
from orchestrator.pipeline import PipelineMode
from taskqueue.models import QueueStatus, TaskStatus
from tests.conftest import FakeBus, FakeTransport, ok


class TestShoppingPipeline:
    async def test_enhanced_request_end_to_end(
        self, system: System, transport: FakeTransport, bus: FakeBus
    ) -> None:
        """Enhanced run, background work drained, completed tasks purged."""
        statuses: list[QueueStatus] = []
        system.queue.on_status_change(statuses.append)

        await system.orchestrator.initialize()
        result = await system.orchestrator.process_enhanced_shopping_request(
            "cottagecore vibes", user_id="user-42"
        )
        assert result.mode == PipelineMode.ENHANCED
        assert system.queue.get_status() == QueueStatus(pending=3)

        await system.scheduler.advance()
        assert system.queue.get_status() == QueueStatus(processing=1, completed=2)

        # the request task itself is simulated work lasting under 3 seconds
        await system.scheduler.advance(3.0)
        assert system.queue.get_status() == QueueStatus(completed=3)

        await system.scheduler.advance(30.0)
        assert system.queue.get_status() == QueueStatus()
        assert statuses[-1] == QueueStatus()
        assert all(s.total <= 3 for s in statuses)

        messages = [e["message"] for e in bus.envelopes]
        assert "Ready to find your perfect style!" in messages
        assert "Complete Cottagecore shopping experience ready!" in messages
        assert all(e["source"] == "test-suite" for e in bus.envelopes)

        premium = [
            r for r in transport.paths("/foxit/documents")
            if r.json_body["template"] == "premium-style-guide"
        ]
        assert len(premium) == 1
        assert premium[0].json_body["options"]["user_id"] == "user-42"

        routed = [
            r for r in transport.requests
            if not r.url.endswith("/status") and "/status/rate-limits/" not in r.url
        ]
        metrics = system.router.get_metrics()
        assert metrics.errors == 0
        assert metrics.requests == len(routed)

    async def test_degraded_run_retries_background_work(
        self, system: System, transport: FakeTransport
    ) -> None:
        """Model and search down: the request fails, its background search is retried."""
        transport.set("/openai/chat", TransportResponse(status_code=503))
        transport.set("/amazon/search", TransportResponse(status_code=503))

        with pytest.raises(ServiceUnavailableError):
            await system.orchestrator.process_enhanced_shopping_request("boho den")

        [task] = [
            t for t in system.queue.list_tasks() if t.description.startswith("amazon-search:")
        ]

        await system.scheduler.advance()
        assert system.queue.get_task(task.id).status == TaskStatus.FAILED

        transport.set("/amazon/search", ok({"responseStatus": "NO_RESULTS"}))
        await system.scheduler.advance(5.0)

        recovered = system.queue.get_task(task.id)
        assert recovered.status == TaskStatus.COMPLETED
        assert recovered.attempts == 2

    async def test_notifications_survive_bus_outage(
        self, system: System, bus: FakeBus
    ) -> None:
        bus.fail_publish = True
        result = await system.orchestrator.process_shopping_request("scandinavian flat")
        await system.scheduler.advance()

        assert result.mode == PipelineMode.SIMPLIFIED
        assert bus.envelopes == []
        assert len(system.notifications.recent()) == 5

        await system.scheduler.advance(5.0)
        assert system.notifications.recent() == []
