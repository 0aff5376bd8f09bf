"""Shared API dependencies for authentication and service wiring."""

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from trustlens.core.security import InvalidTokenError, decode_account_id
from trustlens.core.settings import settings
from trustlens.db.session import get_db
from trustlens.services.balance import BalanceService
from trustlens.services.coordinator import CallerIdentity, VerificationCoordinator
from trustlens.services.errors import UnauthorizedError
from trustlens.services.notifier import VerificationNotifier, get_notifier
from trustlens.services.payments import PaymentService
from trustlens.services.provider import ProfileProvider, get_profile_provider
from trustlens.services.quota import QuotaLedger, get_quota_ledger
from trustlens.services.verification_cache import VerificationCache

# Sign-in is optional on most routes, so missing credentials are not an error here.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_optional_account_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str | None:
    """Return the signed-in account id, or None for anonymous callers.

    Raises:
        UnauthorizedError: If a bearer token is present but invalid.
    """
    if credentials is None:
        return None
    try:
        return decode_account_id(credentials.credentials)
    except InvalidTokenError as err:
        raise UnauthorizedError() from err


OptionalAccountDep = Annotated[str | None, Depends(get_optional_account_id)]


def get_current_account_id(account_id: OptionalAccountDep) -> str:
    """Require a signed-in caller."""
    if account_id is None:
        raise UnauthorizedError()
    return account_id


CurrentAccountDep = Annotated[str, Depends(get_current_account_id)]


def get_client_address(request: Request) -> str:
    """Return the caller's network address used to key the free quota."""
    if settings.trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first_hop = forwarded.split(",")[0].strip()
            if first_hop:
                return first_hop
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"


def get_caller(
    address: Annotated[str, Depends(get_client_address)],
    account_id: OptionalAccountDep,
) -> CallerIdentity:
    return CallerIdentity(address=address, account_id=account_id)


CallerDep = Annotated[CallerIdentity, Depends(get_caller)]


def get_quota_ledger_dep() -> QuotaLedger:
    """Get QuotaLedger dependency for dependency injection."""
    return get_quota_ledger()


def get_profile_provider_dep() -> ProfileProvider:
    """Get the upstream profile provider for dependency injection."""
    return get_profile_provider()


def get_notifier_dep() -> VerificationNotifier:
    """Get VerificationNotifier dependency for dependency injection."""
    return get_notifier()


QuotaLedgerDep = Annotated[QuotaLedger, Depends(get_quota_ledger_dep)]
ProviderDep = Annotated[ProfileProvider, Depends(get_profile_provider_dep)]
NotifierDep = Annotated[VerificationNotifier, Depends(get_notifier_dep)]


def get_verification_cache(db: SessionDep) -> VerificationCache:
    return VerificationCache(db)


VerificationCacheDep = Annotated[VerificationCache, Depends(get_verification_cache)]


def get_coordinator(
    db: SessionDep,
    cache: VerificationCacheDep,
    ledger: QuotaLedgerDep,
    provider: ProviderDep,
    notifier: NotifierDep,
) -> VerificationCoordinator:
    """Assemble a coordinator around the request's database session."""
    return VerificationCoordinator(
        cache,
        ledger,
        BalanceService(db),
        provider,
        notifier,
    )


CoordinatorDep = Annotated[VerificationCoordinator, Depends(get_coordinator)]


def get_payment_service(db: SessionDep) -> PaymentService:
    return PaymentService(db)


PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]
