"""SQLAlchemy models for the TrustLens application."""

from .payment_event import PaymentEvent
from .profile import Profile
from .verification import (
    VERIFICATION_STATUS_COMPLETED,
    VERIFICATION_STATUS_ERROR,
    VERIFICATION_STATUS_PENDING,
    Verification,
)

__all__ = [
    "PaymentEvent",
    "Profile",
    "Verification",
    "VERIFICATION_STATUS_COMPLETED",
    "VERIFICATION_STATUS_ERROR",
    "VERIFICATION_STATUS_PENDING",
]
