"""Free-lookup quota tracking per caller network address.

The ledger is deliberately best-effort: the default store lives in process
memory and is lost on restart, and the Redis store is not coordinated across
writers. The free tier is a convenience, not a security boundary.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Final, Protocol

import redis

from trustlens.core.settings import settings

logger = logging.getLogger(__name__)

DEFAULT_MAX_FREE_EVENTS: Final[int] = 3
DEFAULT_RESET_WINDOW_SECONDS: Final[float] = 3600.0


@dataclass
class QuotaWindow:
    """Events recorded for one address since its window opened."""

    first_event_time: float
    event_history: list[float] = field(default_factory=list)


@dataclass(frozen=True)
class QuotaSnapshot:
    """Read-only view of an address's quota, as reported to clients."""

    remaining: int
    next_reset_time_ms: int | None


class QuotaStore(Protocol):
    """Storage backend for quota windows."""

    def get(self, address: str) -> QuotaWindow | None: ...

    def put(self, address: str, window: QuotaWindow) -> None: ...

    def delete(self, address: str) -> None: ...


class InMemoryQuotaStore:
    """Process-local store; the ledger serializes access to it."""

    def __init__(self) -> None:
        self._windows: dict[str, QuotaWindow] = {}

    def get(self, address: str) -> QuotaWindow | None:
        window = self._windows.get(address)
        if window is None:
            return None
        return QuotaWindow(window.first_event_time, list(window.event_history))

    def put(self, address: str, window: QuotaWindow) -> None:
        self._windows[address] = QuotaWindow(window.first_event_time, list(window.event_history))

    def delete(self, address: str) -> None:
        self._windows.pop(address, None)

    def __len__(self) -> int:
        return len(self._windows)


class RedisQuotaStore:
    """Quota windows shared through Redis, expiring with the reset window.

    Falls back to an in-process store if Redis becomes unavailable.
    """

    def __init__(
        self,
        client: Any,
        *,
        ttl_seconds: float,
        prefix: str = "quota:",
    ) -> None:
        self._redis = client
        self._ttl = max(1, int(ttl_seconds))
        self._prefix = prefix
        self._fallback = InMemoryQuotaStore()

    def _key(self, address: str) -> str:
        return f"{self._prefix}{address}"

    def _disable(self, exc: Exception) -> None:
        logger.warning("Redis quota store unavailable, using in-process fallback: %s", exc)
        self._redis = None

    def get(self, address: str) -> QuotaWindow | None:
        if self._redis is not None:
            try:
                raw = self._redis.get(self._key(address))
            except redis.RedisError as exc:
                self._disable(exc)
            else:
                return _decode_window(raw) if raw else None
        return self._fallback.get(address)

    def put(self, address: str, window: QuotaWindow) -> None:
        if self._redis is not None:
            try:
                self._redis.set(self._key(address), _encode_window(window), ex=self._ttl)
                return
            except redis.RedisError as exc:
                self._disable(exc)
        self._fallback.put(address, window)

    def delete(self, address: str) -> None:
        if self._redis is not None:
            try:
                self._redis.delete(self._key(address))
                return
            except redis.RedisError as exc:
                self._disable(exc)
        self._fallback.delete(address)


def _encode_window(window: QuotaWindow) -> str:
    return json.dumps({"first": window.first_event_time, "events": window.event_history})


def _decode_window(raw: bytes | str) -> QuotaWindow | None:
    try:
        data = json.loads(raw)
        return QuotaWindow(float(data["first"]), [float(t) for t in data["events"]])
    except (ValueError, KeyError, TypeError):
        logger.warning("Discarding unreadable quota window: %r", raw)
        return None


class QuotaLedger:
    """Rolling free-lookup allowance keyed by caller address."""

    def __init__(
        self,
        store: QuotaStore | None = None,
        *,
        max_events: int = DEFAULT_MAX_FREE_EVENTS,
        reset_window: float = DEFAULT_RESET_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store: QuotaStore = store if store is not None else InMemoryQuotaStore()
        self.max_events = max(0, int(max_events))
        self.reset_window = float(reset_window)
        self._clock = clock
        self._lock = Lock()

    def _live_window(self, address: str, now: float) -> QuotaWindow | None:
        """Return the current window, expiring or pruning it lazily. Caller holds the lock."""
        window = self._store.get(address)
        if window is None:
            return None
        if now - window.first_event_time >= self.reset_window:
            self._store.delete(address)
            return None
        pruned = [t for t in window.event_history if now - t < self.reset_window]
        if len(pruned) != len(window.event_history):
            window = QuotaWindow(window.first_event_time, pruned)
            self._store.put(address, window)
        return window

    def _evaluate(self, address: str) -> tuple[int, float | None, float]:
        with self._lock:
            now = self._clock()
            window = self._live_window(address, now)
        if window is None:
            return self.max_events, None, now
        remaining = max(0, self.max_events - len(window.event_history))
        if remaining > 0:
            return remaining, None, now
        return 0, self.reset_window - (now - window.first_event_time), now

    def remaining(self, address: str) -> int:
        """Return how many free lookups the address has left in its window."""
        remaining, _, _ = self._evaluate(address)
        return remaining

    def time_until_reset(self, address: str) -> float | None:
        """Return seconds until an exhausted window reopens, or None if quota is available."""
        _, until_reset, _ = self._evaluate(address)
        return until_reset

    def next_reset_time_ms(self, address: str) -> int | None:
        """Return the epoch millisecond at which an exhausted window reopens."""
        return self.snapshot(address).next_reset_time_ms

    def snapshot(self, address: str) -> QuotaSnapshot:
        """Return remaining lookups and reset time computed from one clock reading."""
        remaining, until_reset, now = self._evaluate(address)
        if until_reset is None:
            return QuotaSnapshot(remaining=remaining, next_reset_time_ms=None)
        return QuotaSnapshot(
            remaining=remaining,
            next_reset_time_ms=int((now + until_reset) * 1000),
        )

    def record_event(self, address: str) -> bool:
        """Consume one free lookup. Returns False, without mutating, if the limit is hit."""
        if self.max_events == 0:
            return False
        with self._lock:
            now = self._clock()
            window = self._live_window(address, now)
            if window is None:
                self._store.put(address, QuotaWindow(now, [now]))
                return True
            if len(window.event_history) >= self.max_events:
                return False
            self._store.put(
                address,
                QuotaWindow(window.first_event_time, [*window.event_history, now]),
            )
            return True


def build_quota_ledger() -> QuotaLedger:
    """Construct a ledger from application settings."""
    store: QuotaStore
    if settings.quota_backend == "redis":
        store = RedisQuotaStore(
            redis.from_url(settings.redis_url),
            ttl_seconds=settings.free_lookup_window_seconds,
        )
    else:
        store = InMemoryQuotaStore()
    return QuotaLedger(
        store,
        max_events=settings.free_lookup_limit,
        reset_window=settings.free_lookup_window_seconds,
    )


class _QuotaLedgerSingleton:
    """Process-wide ledger instance."""

    _instance: QuotaLedger | None = None
    _lock = Lock()

    @classmethod
    def get_instance(cls) -> QuotaLedger:
        with cls._lock:
            if cls._instance is None:
                cls._instance = build_quota_ledger()
            return cls._instance


def get_quota_ledger() -> QuotaLedger:
    """Return the shared quota ledger."""
    return _QuotaLedgerSingleton.get_instance()
