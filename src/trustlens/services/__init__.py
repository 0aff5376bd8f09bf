"""Business logic services for the TrustLens application."""

from .balance import BalanceService, DecrementResult
from .coordinator import CallerIdentity, FundingSource, VerificationCoordinator, VerificationOutcome
from .notifier import VerificationNotifier
from .payments import PaymentService
from .quota import QuotaLedger
from .verification_cache import CacheState, VerificationCache

__all__ = [
    "BalanceService",
    "DecrementResult",
    "CallerIdentity",
    "FundingSource",
    "VerificationCoordinator",
    "VerificationOutcome",
    "VerificationNotifier",
    "PaymentService",
    "QuotaLedger",
    "CacheState",
    "VerificationCache",
]
