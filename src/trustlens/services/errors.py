"""Error taxonomy surfaced by the verification flow.

Every failure a caller can observe maps to exactly one ``ErrorCode``. The
coordinator raises the matching ``VerificationError`` subclass and the API
layer renders it through the response assembler.
"""

from __future__ import annotations

from enum import Enum

from fastapi import status


class ErrorCode(str, Enum):
    """Machine-readable error codes returned to API clients."""

    INVALID_INPUT = "INVALID_INPUT"
    UNAUTHORIZED = "UNAUTHORIZED"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    PENDING = "PENDING"
    FREE_LOOKUP_LIMIT_EXCEEDED = "FREE_LOOKUP_LIMIT_EXCEEDED"
    CREDIT_DEDUCTION_FAILED = "CREDIT_DEDUCTION_FAILED"
    PROFILE_NOT_FOUND = "PROFILE_NOT_FOUND"
    INVALID_CREDIT_PACK = "INVALID_CREDIT_PACK"
    CHECKOUT_CREATION_FAILED = "CHECKOUT_CREATION_FAILED"
    BILLING_NOT_CONFIGURED = "BILLING_NOT_CONFIGURED"
    INVALID_WEBHOOK = "INVALID_WEBHOOK"
    WEBHOOK_PROCESSING_FAILED = "WEBHOOK_PROCESSING_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class VerificationError(Exception):
    """Base class for failures that are reported to the caller as a typed error."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, *, next_reset_time: int | None = None) -> None:
        self.message = message or self.default_message
        self.next_reset_time = next_reset_time
        super().__init__(self.message)

    @property
    def carries_quota_metadata(self) -> bool:
        """Return True if the error should expose ``nextResetTime`` to the client."""
        return False


class _QuotaAwareError(VerificationError):
    """Funding errors that tell the client when free lookups come back."""

    @property
    def carries_quota_metadata(self) -> bool:
        return True


class InvalidInputError(VerificationError):
    code = ErrorCode.INVALID_INPUT
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Username is required"


class UnauthorizedError(VerificationError):
    code = ErrorCode.UNAUTHORIZED
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Could not validate credentials"


class AuthRequiredError(_QuotaAwareError):
    code = ErrorCode.AUTH_REQUIRED
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Free lookups exhausted. Sign in to continue with credits."


class InsufficientCreditsError(_QuotaAwareError):
    code = ErrorCode.INSUFFICIENT_CREDITS
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_message = "Insufficient credits"


class ProfileNotFoundError(VerificationError):
    code = ErrorCode.PROFILE_NOT_FOUND
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Profile not found"


class AccountNotFoundError(VerificationError):
    code = ErrorCode.ACCOUNT_NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Account not found"


class UpstreamRateLimitedError(VerificationError):
    code = ErrorCode.RATE_LIMIT_EXCEEDED
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Lookup service is busy, please try again shortly"


class PendingError(VerificationError):
    """Another request is fetching this account and nothing is cached yet."""

    code = ErrorCode.PENDING
    status_code = status.HTTP_202_ACCEPTED
    default_message = "Verification in progress, please retry shortly"


class FreeLookupLimitExceededError(_QuotaAwareError):
    code = ErrorCode.FREE_LOOKUP_LIMIT_EXCEEDED
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Free lookup limit exceeded"


class CreditDeductionFailedError(VerificationError):
    code = ErrorCode.CREDIT_DEDUCTION_FAILED
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Failed to deduct credit"


class InvalidCreditPackError(VerificationError):
    code = ErrorCode.INVALID_CREDIT_PACK
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid credit pack"


class CheckoutCreationFailedError(VerificationError):
    code = ErrorCode.CHECKOUT_CREATION_FAILED
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Failed to create checkout session"


class BillingNotConfiguredError(VerificationError):
    """Stripe keys are missing from configuration."""

    code = ErrorCode.BILLING_NOT_CONFIGURED
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Billing is not configured"


class InvalidWebhookError(VerificationError):
    """Signature, payload or metadata could not be trusted; Stripe should not retry."""

    code = ErrorCode.INVALID_WEBHOOK
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid webhook"


class WebhookProcessingError(VerificationError):
    """The event was valid but credits could not be granted; Stripe should retry."""

    code = ErrorCode.WEBHOOK_PROCESSING_FAILED
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Failed to update credits"
