"""Account verification endpoints."""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Query, status

from trustlens.api.v1.dependencies import (
    CallerDep,
    CoordinatorDep,
    NotifierDep,
    QuotaLedgerDep,
    VerificationCacheDep,
)
from trustlens.core.settings import settings
from trustlens.schemas.verify import QuotaResponse, VerifyRequest
from trustlens.services.errors import InvalidInputError, PendingError
from trustlens.services.normalizer import normalize_username
from trustlens.services.responses import quota_payload, success_payload
from trustlens.services.verification_cache import CacheState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/verify", tags=["verify"])


def _require_key(username: str) -> str:
    key = normalize_username(username)
    if not key:
        raise InvalidInputError()
    return key


@router.post(
    "",
    responses={
        status.HTTP_202_ACCEPTED: {"description": "Another request is fetching this account"},
    },
)
async def verify_account(
    payload: VerifyRequest,
    caller: CallerDep,
    coordinator: CoordinatorDep,
    ledger: QuotaLedgerDep,
) -> dict[str, Any]:
    """Return a trust report for an X account.

    Fresh cached reports are free. Otherwise the lookup is paid for with a
    free quota event for the caller's address, or with one credit for a
    signed-in caller whose free lookups are exhausted.
    """
    key = _require_key(payload.username)
    outcome = await coordinator.verify(key, caller)
    logger.info(
        "Verified %s for %s (cached=%s, pending=%s, funding=%s)",
        key,
        caller,
        outcome.cached,
        outcome.pending,
        outcome.funding.value if outcome.funding else None,
    )
    return success_payload(
        outcome.report,
        ledger.snapshot(caller.address),
        cached=outcome.cached,
        pending=outcome.pending,
    )


@router.get("/quota", response_model=QuotaResponse)
async def get_quota(caller: CallerDep, ledger: QuotaLedgerDep) -> dict[str, Any]:
    """Report the caller's remaining free lookups without consuming any."""
    return quota_payload(ledger.snapshot(caller.address))


@router.get("/{username}/wait")
async def wait_for_verification(
    username: str,
    caller: CallerDep,
    cache: VerificationCacheDep,
    ledger: QuotaLedgerDep,
    notifier: NotifierDep,
    timeout: Annotated[float | None, Query(gt=0)] = None,
) -> dict[str, Any]:
    """Wait for a pending lookup to finish and return its report.

    Responds with ``202 PENDING`` if nothing arrives within the timeout; the
    client may then poll ``POST /verify`` instead.
    """
    key = _require_key(username)
    wait_seconds = min(timeout or settings.notify_max_wait_seconds, settings.notify_max_wait_seconds)

    async with notifier.subscribe(key) as subscription:
        # Subscribe before reading so a store between the two is not missed.
        lookup = cache.lookup(key)
        if lookup.state is CacheState.FRESH and lookup.report is not None:
            return success_payload(lookup.report, ledger.snapshot(caller.address), cached=True)
        event = await subscription.wait(wait_seconds)

    if event is None:
        raise PendingError()
    return success_payload(event.report, ledger.snapshot(caller.address), cached=True)
