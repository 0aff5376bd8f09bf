# tests/helpers.py
"""Test doubles and factories shared across the test suite."""
from __future__ import annotations

import asyncio
import hashlib
import hmac
import time
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from trustlens.schemas.trust import UserInfo
from trustlens.services.provider import XRawData
from trustlens.services.quota import QuotaLedger

# Fixed "now" for deterministic scoring.
SCORING_NOW = datetime(2026, 1, 1, tzinfo=UTC)


class FakeClock:
    """Manually advanced clock usable for both epoch seconds and datetimes."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def as_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.now, UTC)


class FakeProvider:
    """Profile provider double that records calls.

    Set ``error`` to make every fetch raise it. Set ``gate`` to an
    ``asyncio.Event`` to hold fetches until the test releases them.
    """

    def __init__(self, raw: XRawData | None = None) -> None:
        self.raw = raw
        self.error: BaseException | None = None
        self.gate: asyncio.Event | None = None
        self.calls: list[str] = []

    async def fetch_profile(self, username: str) -> XRawData:
        self.calls.append(username)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if self.raw is not None:
            return self.raw
        return make_raw(username=username)

    async def close(self) -> None:
        return None


def make_raw(username: str = "alice", **overrides: Any) -> XRawData:
    """Raw profile data for an established, active account."""
    created_at = "Mon Jan 01 12:00:00 +0000 2018"
    raw = XRawData(
        id=f"id-{username}",
        created_at=created_at,
        blue_verified=False,
        followers_count=5000,
        friends_count=500,
        listed_count=None,
        statuses_count=12000,
        media_count=300,
        favourites_count=8000,
        is_automated=False,
        protected=False,
        user_info=UserInfo(
            id=f"id-{username}",
            username=username,
            name=username.title(),
            followers_count=5000,
            following_count=500,
            created_at=created_at,
        ),
    )
    return replace(raw, **overrides)


def exhaust_quota(ledger: QuotaLedger, address: str) -> None:
    for _ in range(ledger.max_events):
        assert ledger.record_event(address)


def stripe_signature(payload: bytes, secret: str) -> str:
    """Build a ``stripe-signature`` header the way Stripe signs webhooks."""
    timestamp = int(time.time())
    signed = f"{timestamp}.{payload.decode()}".encode()
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"
