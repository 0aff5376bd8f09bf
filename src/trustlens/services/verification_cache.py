"""Persisted verification cache and the pending-claim protocol.

Rows move through ``pending -> completed`` on a successful fetch and
``pending -> error`` on a failed one. Whoever flips a row to ``pending``
owns the upstream fetch for that username; ``claim_pending`` is the only
place that transition happens and it is a single conditional statement on
the database, so it holds across worker processes and replicas.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Final

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session

from trustlens.core.settings import settings
from trustlens.db.session import dialect_insert
from trustlens.db.time import as_utc, utcnow
from trustlens.models import (
    VERIFICATION_STATUS_COMPLETED,
    VERIFICATION_STATUS_ERROR,
    VERIFICATION_STATUS_PENDING,
    Verification,
)

logger = logging.getLogger(__name__)

DEFAULT_FRESHNESS: Final[timedelta] = timedelta(hours=24)
DEFAULT_PENDING_EXPIRY: Final[timedelta] = timedelta(minutes=2)


class CacheState(str, Enum):
    """What a cache read found for a username."""

    FRESH = "fresh"
    STALE = "stale"
    PENDING = "pending"
    ABSENT = "absent"


@dataclass(frozen=True)
class CacheLookup:
    """Result of ``VerificationCache.lookup``.

    ``report`` is set for FRESH and STALE, and for PENDING when an earlier
    result is still on the row.
    """

    state: CacheState
    report: dict[str, Any] | None = None
    fetched_at: datetime | None = None


class VerificationCache:
    """Time-boxed username -> trust report mapping."""

    def __init__(
        self,
        db: Session,
        *,
        freshness: timedelta | None = None,
        pending_expiry: timedelta | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._db = db
        self.freshness = freshness or timedelta(seconds=settings.cache_freshness_seconds)
        self.pending_expiry = pending_expiry or timedelta(seconds=settings.pending_expiry_seconds)
        self._clock = clock

    def _insert(self) -> Callable[..., Any]:
        return dialect_insert(self._db)

    def _load(self, key: str) -> Verification | None:
        return self._db.execute(
            select(Verification)
            .where(Verification.username == key)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def lookup(self, key: str) -> CacheLookup:
        """Classify the cached entry for ``key`` as fresh, stale, pending or absent."""
        row = self._load(key)
        if row is None or row.status == VERIFICATION_STATUS_ERROR:
            return CacheLookup(CacheState.ABSENT)

        now = self._clock()
        fetched_at = as_utc(row.fetched_at) if row.fetched_at is not None else None

        if row.status == VERIFICATION_STATUS_PENDING:
            claimed_at = as_utc(row.claimed_at) if row.claimed_at is not None else None
            if claimed_at is not None and now - claimed_at < self.pending_expiry:
                return CacheLookup(CacheState.PENDING, row.trust_report, fetched_at)
            # Abandoned claim: judge the row by whatever result it still holds.
            logger.info("Ignoring expired pending claim for %s", key)

        if row.trust_report is None or fetched_at is None:
            return CacheLookup(CacheState.ABSENT)
        if now - fetched_at < self.freshness:
            return CacheLookup(CacheState.FRESH, row.trust_report, fetched_at)
        return CacheLookup(CacheState.STALE, row.trust_report, fetched_at)

    def claim_pending(self, key: str) -> bool:
        """Atomically take the right to fetch ``key`` from upstream.

        Succeeds for an absent key, an ``error`` row, a stale ``completed`` row
        or an expired ``pending`` row. A live ``pending`` row or a fresh
        ``completed`` row is left untouched and the claim fails.
        """
        now = self._clock()
        insert = self._insert()
        inserted = self._db.execute(
            insert(Verification)
            .values(
                username=key,
                status=VERIFICATION_STATUS_PENDING,
                claimed_at=now,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=[Verification.username])
        )
        if inserted.rowcount == 1:
            self._db.commit()
            return True

        claimable = or_(
            Verification.status == VERIFICATION_STATUS_ERROR,
            and_(
                Verification.status == VERIFICATION_STATUS_COMPLETED,
                or_(
                    Verification.fetched_at.is_(None),
                    Verification.fetched_at <= now - self.freshness,
                ),
            ),
            and_(
                Verification.status == VERIFICATION_STATUS_PENDING,
                or_(
                    Verification.claimed_at.is_(None),
                    Verification.claimed_at <= now - self.pending_expiry,
                ),
            ),
        )
        updated = self._db.execute(
            update(Verification)
            .where(Verification.username == key, claimable)
            .values(status=VERIFICATION_STATUS_PENDING, claimed_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        self._db.commit()
        return updated.rowcount == 1

    def store(
        self,
        key: str,
        report: dict[str, Any],
        raw_data: dict[str, Any] | None = None,
    ) -> None:
        """Record a completed result; works whether or not a claim exists."""
        now = self._clock()
        stmt = self._insert()(Verification).values(
            username=key,
            status=VERIFICATION_STATUS_COMPLETED,
            trust_report=report,
            raw_data=raw_data,
            fetched_at=now,
            claimed_at=None,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Verification.username],
            set_={
                "status": stmt.excluded.status,
                "trust_report": stmt.excluded.trust_report,
                "raw_data": stmt.excluded.raw_data,
                "fetched_at": stmt.excluded.fetched_at,
                "claimed_at": None,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        self._db.execute(stmt)
        self._db.commit()

    def mark_error(self, key: str) -> None:
        """Release a failed claim so the next request may retry immediately."""
        # A failed store leaves the transaction aborted on PostgreSQL; the claim
        # itself was committed by claim_pending, so only the failed work is lost.
        self._db.rollback()
        now = self._clock()
        stmt = self._insert()(Verification).values(
            username=key,
            status=VERIFICATION_STATUS_ERROR,
            trust_report=None,
            claimed_at=None,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Verification.username],
            set_={
                "status": VERIFICATION_STATUS_ERROR,
                "trust_report": None,
                "claimed_at": None,
                "updated_at": now,
            },
        )
        self._db.execute(stmt)
        self._db.commit()
