"""Shared test fixtures for the shopping orchestrator."""

import json
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from config.settings import AppSettings
from gateway.router import GatewayRouter
from gateway.transport import Transport, TransportRequest, TransportResponse
from orchestrator.factory import System, build_system
from taskqueue.notifications import NotificationBus, NotificationChannel
from taskqueue.queue import TaskQueue
from taskqueue.scheduler import ManualScheduler

GATEWAY_URL = "http://gateway.test"

ANALYSIS_JSON = {
    "style": "Cottagecore",
    "colors": ["sage green", "cream", "terracotta"],
    "keywords": ["rustic", "cozy", "floral"],
    "categories": ["home-kitchen", "garden"],
    "mood": "cozy rustic",
    "confidence": 0.9,
}

SEARCH_FOUND = {
    "responseStatus": "PRODUCT_FOUND_RESPONSE",
    "searchProductDetails": [
        {
            "asin": "B001",
            "productDescription": "Rustic floral ceramic vase",
            "price": "$24.99",
            "imgUrl": "https://img.test/b001.jpg",
            "productRating": "4.7 out of 5 stars",
            "dpUrl": "/dp/B001",
        },
        {
            "asin": "B002",
            "productDescription": "Plain steel bucket",
            "price": 12.5,
            "productRating": "3.9 out of 5 stars",
            "dpUrl": "/dp/B002",
        },
        {
            "asin": "B003",
            "productDescription": "Cozy linen throw blanket",
            "price": "$39.00",
            "productRating": 4.2,
        },
    ],
}

Responder = Callable[[TransportRequest], Awaitable[TransportResponse] | TransportResponse]


def chat_response(content: str) -> TransportResponse:
    return TransportResponse(
        status_code=200,
        data={"choices": [{"message": {"role": "assistant", "content": content}}]},
    )


def ok(data: Any = None) -> TransportResponse:
    return TransportResponse(status_code=200, data=data)


def rate_limit_status(remaining: int = 100, reset_in_sec: float = 60.0) -> TransportResponse:
    reset = datetime.now(timezone.utc) + timedelta(seconds=reset_in_sec)
    return ok({"remaining": remaining, "resetTime": reset.isoformat()})


def _default_chat(request: TransportRequest) -> TransportResponse:
    system_prompt = request.json_body["messages"][0]["content"]
    if "aesthetic analyst" in system_prompt:
        return chat_response(json.dumps(ANALYSIS_JSON))
    return chat_response("A lovely piece for a cozy home.")


def _default_document(request: TransportRequest) -> TransportResponse:
    if request.json_body["format"] == "html":
        return ok({"html": "<h1>Cottagecore</h1>"})
    return ok({"document_url": f"https://docs.test/{request.json_body['template']}.pdf"})


class FakeTransport(Transport):
    """Scripted transport keyed by gateway path.

    A script entry is a TransportResponse, an exception instance to raise, or
    a callable taking the request. The longest registered path prefix wins.
    Every request is recorded.
    """

    def __init__(self, base_url: str = GATEWAY_URL) -> None:
        self.base_url = base_url
        self.requests: list[TransportRequest] = []
        self.closed = False
        self.script: dict[str, Any] = {
            "/status": ok({"status": "healthy"}),
            "/status/rate-limits": lambda request: rate_limit_status(),
            "/openai/chat": _default_chat,
            "/openai/models": ok({"data": [{"id": "gpt-4"}]}),
            "/amazon/search": ok(SEARCH_FOUND),
            "/foxit/documents": _default_document,
        }

    def set(self, path: str, entry: Any) -> None:
        self.script[path] = entry

    def paths(self, prefix: str) -> list[TransportRequest]:
        return [r for r in self.requests if self._path(r).startswith(prefix)]

    async def send(self, request: TransportRequest) -> TransportResponse:
        self.requests.append(request)
        path = self._path(request)
        matches = [p for p in self.script if path == p or path.startswith(p + "/")]
        if not matches:
            return TransportResponse(status_code=404, data={"message": "no route"})
        entry = self.script[max(matches, key=len)]
        if isinstance(entry, BaseException):
            raise entry
        if callable(entry):
            entry = entry(request)
            if isinstance(entry, Awaitable):
                entry = await entry
        return entry

    async def aclose(self) -> None:
        self.closed = True

    def _path(self, request: TransportRequest) -> str:
        return request.url.removeprefix(self.base_url)


class FakeBus(NotificationBus):
    """In-memory bus recording every published envelope."""

    def __init__(self, healthy: bool = True, fail_publish: bool = False) -> None:
        self.healthy = healthy
        self.fail_publish = fail_publish
        self.envelopes: list[dict[str, Any]] = []
        self.closed = False

    async def publish(self, envelope: dict[str, Any]) -> None:
        if self.fail_publish:
            raise ConnectionError("bus unreachable")
        self.envelopes.append(envelope)

    async def health_probe(self) -> bool:
        if not self.healthy:
            raise ConnectionError("bus unreachable")
        return True

    async def aclose(self) -> None:
        self.closed = True


class SteppingClock:
    """Monotonic clock that returns scripted instants in order."""

    def __init__(self, instants: list[float]) -> None:
        self._instants = list(instants)

    def __call__(self) -> float:
        return self._instants.pop(0)


@pytest.fixture
def scheduler() -> ManualScheduler:
    """A virtual-clock scheduler starting at zero."""
    return ManualScheduler()


@pytest.fixture
def bus() -> FakeBus:
    return FakeBus()


@pytest.fixture
def notifications(scheduler: ManualScheduler, bus: FakeBus) -> NotificationChannel:
    return NotificationChannel(scheduler, bus=bus, source="test-suite")


@pytest.fixture
def queue(scheduler: ManualScheduler, notifications: NotificationChannel) -> TaskQueue:
    """A queue with the default retry and purge timings."""
    return TaskQueue(scheduler, notifications)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def router(transport: FakeTransport) -> GatewayRouter:
    """A router over the bundled route table with no batch stagger."""
    return GatewayRouter.from_yaml(transport, GATEWAY_URL, batch_stagger_sec=0.0)


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        gateway_url=GATEWAY_URL,
        batch_stagger_sec=0.0,
        description_stagger_sec=0.0,
        notification_source="test-suite",
    )


@pytest.fixture
def system(
    settings: AppSettings,
    transport: FakeTransport,
    bus: FakeBus,
    scheduler: ManualScheduler,
) -> System:
    """A fully wired system over the fake transport, bus and clock."""
    return build_system(settings, transport=transport, bus=bus, scheduler=scheduler)
