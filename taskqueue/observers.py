"""Observer registry keyed by subscription handle."""

import itertools
from collections.abc import Callable
from typing import Generic, TypeVar

import structlog

log = structlog.get_logger()

T = TypeVar("T")


class ObserverRegistry(Generic[T]):
    """Ordered set of callbacks addressed by an opaque handle.

    Removal is by handle, so subscribing the same callable twice yields two
    independent subscriptions and unsubscribing one leaves the other intact.
    A callback that raises is logged and skipped; later callbacks still run.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._callbacks: dict[int, Callable[[T], None]] = {}
        self._handles = itertools.count(1)

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register callback and return a function that removes it for good."""
        handle = next(self._handles)
        self._callbacks[handle] = callback

        def unsubscribe() -> None:
            self._callbacks.pop(handle, None)

        return unsubscribe

    def publish(self, value: T) -> None:
        """Deliver value to every subscriber in registration order."""
        for handle, callback in list(self._callbacks.items()):
            # Skip anything unsubscribed by an earlier callback in this round
            if handle not in self._callbacks:
                continue
            try:
                callback(value)
            except Exception as exc:
                log.error(
                    "observers.callback_failed",
                    registry=self.name,
                    handle=handle,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )

    def __len__(self) -> int:
        return len(self._callbacks)
