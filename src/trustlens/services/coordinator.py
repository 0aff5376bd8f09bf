"""Lookup orchestration: cache, funding, claim, fetch, store, charge.

A request is charged only when it produced a new result, and only after the
result is stored. Fresh cache hits are always free. A caller that loses the
claim race gets whatever the cache already holds, flagged as pending, and is
never charged.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from sqlalchemy.exc import SQLAlchemyError

from trustlens.core.settings import settings
from trustlens.schemas.trust import TrustReport
from trustlens.services.balance import BalanceService, DecrementResult
from trustlens.services.errors import (
    AccountNotFoundError,
    AuthRequiredError,
    CreditDeductionFailedError,
    FreeLookupLimitExceededError,
    InsufficientCreditsError,
    PendingError,
    ProfileNotFoundError,
    UpstreamRateLimitedError,
)
from trustlens.services.notifier import VerificationNotifier
from trustlens.services.provider import ProfileProvider, ProviderRateLimitedError, XRawData
from trustlens.services.quota import QuotaLedger
from trustlens.services.trust_engine import calculate_trust
from trustlens.services.verification_cache import CacheState, VerificationCache

logger = logging.getLogger(__name__)

FundingPreference = Literal["quota_first", "credits_first"]

ACCOUNT_NOT_FOUND_MESSAGE = "Account not found or API error. Check server logs for details."


class FundingSource(str, Enum):
    """What pays for a lookup that reaches the provider."""

    QUOTA = "quota"
    CREDITS = "credits"


@dataclass(frozen=True)
class CallerIdentity:
    """Who is asking: network address always, account id when signed in."""

    address: str
    account_id: str | None = None

    def __str__(self) -> str:
        if self.account_id:
            return f"{self.address} (account {self.account_id})"
        return self.address


@dataclass(frozen=True)
class VerificationOutcome:
    """Successful lookup result handed to the response assembler."""

    report: dict[str, Any]
    cached: bool
    pending: bool = False
    funding: FundingSource | None = None


class VerificationCoordinator:
    """Runs one lookup against the cache, ledger, balance and provider."""

    def __init__(
        self,
        cache: VerificationCache,
        ledger: QuotaLedger,
        balances: BalanceService,
        provider: ProfileProvider,
        notifier: VerificationNotifier | None = None,
        *,
        funding_preference: FundingPreference | None = None,
        fetch_timeout: float | None = None,
        scorer: Callable[..., TrustReport] = calculate_trust,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._cache = cache
        self._ledger = ledger
        self._balances = balances
        self._provider = provider
        self._notifier = notifier
        self.funding_preference = funding_preference or settings.funding_preference
        self._fetch_timeout = fetch_timeout or settings.provider_timeout_seconds
        self._scorer = scorer
        self._now = now

    async def verify(self, key: str, caller: CallerIdentity) -> VerificationOutcome:
        """Return a report for the normalized ``key``.

        Raises:
            VerificationError: One subclass per failure the caller can observe.
        """
        lookup = self._cache.lookup(key)
        if lookup.state is CacheState.FRESH and lookup.report is not None:
            logger.debug("Fresh cache hit for %s", key)
            return VerificationOutcome(report=lookup.report, cached=True)

        funding = self._choose_funding(caller)

        if not self._cache.claim_pending(key):
            return self._follow_existing_fetch(key, caller)

        report = await self._fetch_and_store(key, caller)
        self._charge(key, caller, funding)
        return VerificationOutcome(report=report, cached=False, funding=funding)

    def _choose_funding(self, caller: CallerIdentity) -> FundingSource:
        """Decide what pays for this lookup without consuming anything yet."""
        if self.funding_preference == "credits_first" and caller.account_id:
            try:
                if self._balances.get_balance(caller.account_id) > 0:
                    return FundingSource.CREDITS
            except ProfileNotFoundError:
                logger.debug("No profile for %s, falling back to free quota", caller.account_id)

        if self._ledger.remaining(caller.address) > 0:
            return FundingSource.QUOTA

        next_reset = self._ledger.next_reset_time_ms(caller.address)
        if not caller.account_id:
            raise AuthRequiredError(next_reset_time=next_reset)
        try:
            balance = self._balances.get_balance(caller.account_id)
        except ProfileNotFoundError:
            logger.warning("Authenticated caller %s has no profile", caller)
            raise
        if balance <= 0:
            raise InsufficientCreditsError(next_reset_time=next_reset)
        return FundingSource.CREDITS

    def _follow_existing_fetch(self, key: str, caller: CallerIdentity) -> VerificationOutcome:
        """Serve a caller that lost the claim race from whatever is cached."""
        lookup = self._cache.lookup(key)
        if lookup.report is None:
            logger.info("Lookup for %s by %s is pending with nothing cached", key, caller)
            raise PendingError()
        if lookup.state is CacheState.FRESH:
            # The other fetch finished between our read and our claim.
            return VerificationOutcome(report=lookup.report, cached=True)
        return VerificationOutcome(report=lookup.report, cached=True, pending=True)

    async def _fetch_and_store(self, key: str, caller: CallerIdentity) -> dict[str, Any]:
        """Fetch, score and store while holding the claim; release it on any failure."""
        try:
            raw = await self._fetch(key, caller)
            report = self._score(raw)
            self._cache.store(key, report, raw.to_dict())
        except BaseException:
            self._release(key, caller)
            raise

        if self._notifier is not None:
            self._notifier.publish(key, report)
        return report

    async def _fetch(self, key: str, caller: CallerIdentity) -> XRawData:
        try:
            return await asyncio.wait_for(
                self._provider.fetch_profile(key),
                timeout=self._fetch_timeout,
            )
        except ProviderRateLimitedError as err:
            logger.warning("Provider rate limited lookup of %s for %s: %s", key, caller, err)
            raise UpstreamRateLimitedError() from err
        except asyncio.CancelledError:
            logger.warning("Lookup of %s for %s cancelled during fetch", key, caller)
            raise
        except Exception as err:  # provider is untrusted
            logger.warning(
                "Provider fetch failed for %s (caller %s): %s: %s",
                key,
                caller,
                type(err).__name__,
                err,
            )
            raise AccountNotFoundError(ACCOUNT_NOT_FOUND_MESSAGE) from err

    def _score(self, raw: XRawData) -> dict[str, Any]:
        if self._now is not None:
            return self._scorer(raw, now=self._now()).to_payload()
        return self._scorer(raw).to_payload()

    def _release(self, key: str, caller: CallerIdentity) -> None:
        try:
            self._cache.mark_error(key)
        except SQLAlchemyError:
            # The pending claim will expire on its own.
            logger.exception("Could not release claim on %s for %s", key, caller)

    def _charge(self, key: str, caller: CallerIdentity, funding: FundingSource) -> None:
        """Consume the funding chosen before the fetch."""
        if funding is FundingSource.QUOTA:
            if not self._ledger.record_event(caller.address):
                logger.error(
                    "Free quota for %s ran out while fetching %s; result cached but not charged",
                    caller,
                    key,
                )
                raise FreeLookupLimitExceededError(
                    next_reset_time=self._ledger.next_reset_time_ms(caller.address)
                )
            return

        if caller.account_id is None:
            logger.error("Credits chosen for anonymous caller %s fetching %s", caller, key)
            raise CreditDeductionFailedError()
        try:
            result = self._balances.decrement(caller.account_id)
        except ProfileNotFoundError as err:
            logger.error("Profile for %s vanished before charging for %s", caller, key)
            raise CreditDeductionFailedError() from err
        if result is not DecrementResult.SUCCESS:
            logger.error(
                "Credit deduction for %s after fetching %s failed: %s",
                caller,
                key,
                result.value,
            )
            raise CreditDeductionFailedError()
