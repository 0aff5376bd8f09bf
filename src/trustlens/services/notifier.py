"""In-process publish/subscribe for completed verifications.

Callers that got a ``PENDING`` answer can subscribe to a username and be
woken as soon as the fetching request stores its result. Delivery is
best-effort and local to this process; polling the lookup endpoint is the
fallback.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from threading import Lock
from types import TracebackType
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationEvent:
    """A stored verification result for ``key``."""

    key: str
    report: dict[str, Any]


class Subscription:
    """One waiter's registration for a single username."""

    def __init__(self, notifier: VerificationNotifier, key: str) -> None:
        self.key = key
        self._notifier = notifier
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[VerificationEvent] | None = None

    async def __aenter__(self) -> Subscription:
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._notifier._register(self)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self._notifier._unregister(self)

    def _deliver(self, event: VerificationEvent) -> None:
        if self._loop is None or self._queue is None:
            return
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)
        except RuntimeError:
            # Loop already closed; the waiter is gone.
            logger.debug("Dropping event for %s: subscriber loop closed", self.key)

    async def wait(self, timeout: float) -> VerificationEvent | None:
        """Return the next event, or None if ``timeout`` seconds pass first."""
        if self._queue is None:
            raise RuntimeError("Subscription must be entered before waiting")
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=max(0.0, timeout))
        except TimeoutError:
            return None


class VerificationNotifier:
    """Fan-out of verification results to subscribers keyed by username."""

    def __init__(self) -> None:
        self._subscribers: dict[str, set[Subscription]] = {}
        self._lock = Lock()

    def subscribe(self, key: str) -> Subscription:
        """Return a subscription; it receives events once entered with ``async with``."""
        return Subscription(self, key)

    def _register(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers.setdefault(subscription.key, set()).add(subscription)

    def _unregister(self, subscription: Subscription) -> None:
        with self._lock:
            waiters = self._subscribers.get(subscription.key)
            if waiters is None:
                return
            waiters.discard(subscription)
            if not waiters:
                del self._subscribers[subscription.key]

    def subscriber_count(self, key: str) -> int:
        with self._lock:
            return len(self._subscribers.get(key, ()))

    def publish(self, key: str, report: dict[str, Any]) -> int:
        """Deliver ``report`` to every current subscriber of ``key``.

        Returns:
            Number of subscribers the event was handed to.
        """
        with self._lock:
            waiters = list(self._subscribers.get(key, ()))
        event = VerificationEvent(key=key, report=report)
        for subscription in waiters:
            subscription._deliver(event)
        if waiters:
            logger.debug("Published verification for %s to %d waiter(s)", key, len(waiters))
        return len(waiters)


class _NotifierSingleton:
    """Process-wide notifier instance."""

    _instance: VerificationNotifier | None = None

    @classmethod
    def get_instance(cls) -> VerificationNotifier:
        if cls._instance is None:
            cls._instance = VerificationNotifier()
        return cls._instance


def get_notifier() -> VerificationNotifier:
    """Return the shared verification notifier."""
    return _NotifierSingleton.get_instance()
