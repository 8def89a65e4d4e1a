"""Transport seam between the Gateway Router and the network.

The router never talks HTTP directly; it hands a TransportRequest to a
Transport and classifies the TransportResponse. HttpxTransport is the default
adapter. Tests inject scripted transports.
"""

from abc import ABC, abstractmethod
from typing import Any

import httpx
from pydantic import BaseModel, Field


class TransportRequest(BaseModel):
    """A fully-resolved outbound request."""

    method: str = "GET"
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    params: dict[str, Any] = Field(default_factory=dict)
    json_body: Any = None
    timeout_sec: float = 30.0


class TransportResponse(BaseModel):
    """Status code, decoded body and headers of a remote answer."""

    status_code: int
    data: Any = None
    headers: dict[str, str] = Field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class Transport(ABC):
    """Sends one request. Raises only for transport-level failures."""

    @abstractmethod
    async def send(self, request: TransportRequest) -> TransportResponse:
        ...

    async def aclose(self) -> None:
        """Release network resources. No-op unless the adapter holds any."""


class HttpxTransport(Transport):
    """Transport backed by a shared httpx.AsyncClient."""

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or httpx.AsyncClient(follow_redirects=True)

    async def send(self, request: TransportRequest) -> TransportResponse:
        try:
            response = await self._client.request(
                request.method,
                request.url,
                headers=request.headers,
                params=request.params or None,
                json=request.json_body,
                timeout=httpx.Timeout(request.timeout_sec),
            )
        except httpx.TimeoutException as exc:
            raise TimeoutError(str(exc) or "request timed out") from exc
        return TransportResponse(
            status_code=response.status_code,
            data=_decode(response),
            headers=dict(response.headers),
        )

    async def aclose(self) -> None:
        await self._client.aclose()


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    if "json" in response.headers.get("content-type", ""):
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text
